"""
Customer and installment choices
"""

from django.db import models


class InstallmentMethodChoices(models.TextChoices):
    """How a credit installment was paid"""

    CASH = "CASH", "Cash"
    CARD = "CARD", "Card"
    UPI = "UPI", "UPI"
    CREDIT = "CREDIT", "Credit"
    OTHER = "OTHER", "Other"


INITIAL_PAYMENT_NOTE = "Initial payment made during credit sale."
