"""
Mixins for SaleRecord to organize related functionality
"""

from base.money import ZERO, clamp, is_zero, to_decimal
from .choices import (
    CreditPaymentStatusChoices,
    RecordTypeChoices,
    SaleStatusChoices,
)
from .documents import decode_items, decode_return_log


class SaleLifecycleMixin:
    """Which state of the bill lifecycle a record represents"""

    @property
    def is_pristine(self):
        return (
            self.record_type == RecordTypeChoices.SALE
            and self.status == SaleStatusChoices.COMPLETED_ORIGINAL
        )

    @property
    def is_adjusted_active(self):
        return self.status == SaleStatusChoices.ADJUSTED_ACTIVE

    @property
    def is_return_transaction(self):
        return self.record_type == RecordTypeChoices.RETURN_TRANSACTION

    @property
    def line_items(self):
        return decode_items(self.items)

    @property
    def return_log(self):
        return decode_return_log(self.returned_items_log)

    @property
    def active_return_entries(self):
        return [entry for entry in self.return_log if not entry.is_undone]


class SaleCreditMixin:
    """Credit ledger fields derived from the installment total"""

    @staticmethod
    def derive_credit_status(outstanding, paid):
        if is_zero(outstanding) or outstanding < 0:
            return CreditPaymentStatusChoices.FULLY_PAID
        if paid > 0:
            return CreditPaymentStatusChoices.PARTIALLY_PAID
        return CreditPaymentStatusChoices.PENDING

    def apply_credit_totals(self, paid_total, last_payment_date=None):
        """Set paid/outstanding/status from the sum of installments"""
        if not self.is_credit_sale:
            return
        paid_total = to_decimal(paid_total)
        outstanding = clamp(to_decimal(self.total_amount) - paid_total)
        self.amount_paid_by_customer = paid_total
        self.credit_outstanding_amount = outstanding
        self.credit_payment_status = self.derive_credit_status(outstanding, paid_total)
        self.credit_last_payment_date = last_payment_date

    @property
    def outstanding(self):
        return self.credit_outstanding_amount or ZERO
