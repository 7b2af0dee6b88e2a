"""
Custom managers for SaleRecord
"""

from django.db import models
from django.db.models import Exists, OuterRef

from .choices import (
    CreditPaymentStatusChoices,
    OPEN_CREDIT_STATUSES,
    RecordTypeChoices,
    SaleStatusChoices,
)


class SaleRecordQuerySet(models.QuerySet):
    def originals(self):
        """Pristine original sales"""
        return self.filter(
            record_type=RecordTypeChoices.SALE,
            status=SaleStatusChoices.COMPLETED_ORIGINAL,
        )

    def adjusted(self):
        return self.filter(status=SaleStatusChoices.ADJUSTED_ACTIVE)

    def return_transactions(self):
        return self.filter(record_type=RecordTypeChoices.RETURN_TRANSACTION)

    def credit(self):
        return self.filter(is_credit_sale=True)

    def open_credit(self):
        return self.credit().filter(credit_payment_status__in=OPEN_CREDIT_STATUSES)

    def paid_credit(self):
        return self.credit().filter(credit_payment_status=CreditPaymentStatusChoices.FULLY_PAID)

    def by_customer(self, customer_id):
        return self.filter(customer_id=customer_id)

    def with_return_flag(self):
        """Annotate has_returns: any return transaction recorded against the sale"""
        returns = self.model.objects.filter(
            original_sale=OuterRef("pk"),
            record_type=RecordTypeChoices.RETURN_TRANSACTION,
        )
        return self.annotate(has_returns=Exists(returns))


class SaleRecordManager(models.Manager.from_queryset(SaleRecordQuerySet)):
    def get_queryset(self):
        return super().get_queryset().select_related("customer", "created_by")
