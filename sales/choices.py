"""
Sale-related choices and constants
"""

from django.db import models


class RecordTypeChoices(models.TextChoices):
    """Kind of financial document"""

    SALE = "SALE", "Sale"
    RETURN_TRANSACTION = "RETURN_TRANSACTION", "Return Transaction"


class SaleStatusChoices(models.TextChoices):
    """Lifecycle state of a sale record"""

    COMPLETED_ORIGINAL = "COMPLETED_ORIGINAL", "Completed Original"
    ADJUSTED_ACTIVE = "ADJUSTED_ACTIVE", "Adjusted Active"
    RETURN_TRANSACTION_COMPLETED = "RETURN_TRANSACTION_COMPLETED", "Return Completed"


class PaymentMethodChoices(models.TextChoices):
    """Payment method choices"""

    CASH = "CASH", "Cash"
    CARD = "CARD", "Card"
    UPI = "UPI", "UPI"
    CREDIT = "CREDIT", "Credit"
    REFUND = "REFUND", "Refund"


class CreditPaymentStatusChoices(models.TextChoices):
    """Credit payment status choices"""

    PENDING = "PENDING", "Pending"
    PARTIALLY_PAID = "PARTIALLY_PAID", "Partially Paid"
    FULLY_PAID = "FULLY_PAID", "Fully Paid"


class CreditFilterChoices(models.TextChoices):
    """Credit sale list filters"""

    OPEN = "open", "Open"
    PAID = "paid", "Paid"
    ALL = "all", "All"


SALE_PAYMENT_METHODS = [
    PaymentMethodChoices.CASH,
    PaymentMethodChoices.CARD,
    PaymentMethodChoices.UPI,
    PaymentMethodChoices.CREDIT,
]

OPEN_CREDIT_STATUSES = [
    CreditPaymentStatusChoices.PENDING,
    CreditPaymentStatusChoices.PARTIALLY_PAID,
]
