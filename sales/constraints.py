"""
SaleRecord constraints and indexes
"""

from django.db import models

from .choices import RecordTypeChoices, SaleStatusChoices


class SaleRecordConstraints:
    """SaleRecord model constraints"""

    @staticmethod
    def get_all_constraints():
        return [
            # At most one adjusted-active state per original
            models.UniqueConstraint(
                fields=["original_sale"],
                condition=models.Q(status=SaleStatusChoices.ADJUSTED_ACTIVE),
                name="unique_adjusted_active_per_original",
            ),
            # Sales are original or adjusted; return records only completed
            models.CheckConstraint(
                condition=models.Q(
                    record_type=RecordTypeChoices.SALE,
                    status__in=[
                        SaleStatusChoices.COMPLETED_ORIGINAL,
                        SaleStatusChoices.ADJUSTED_ACTIVE,
                    ],
                )
                | models.Q(
                    record_type=RecordTypeChoices.RETURN_TRANSACTION,
                    status=SaleStatusChoices.RETURN_TRANSACTION_COMPLETED,
                ),
                name="sale_record_type_status_check",
            ),
            # Only pristine originals stand alone
            models.CheckConstraint(
                condition=models.Q(
                    status=SaleStatusChoices.COMPLETED_ORIGINAL,
                    original_sale__isnull=True,
                )
                | (
                    ~models.Q(status=SaleStatusChoices.COMPLETED_ORIGINAL)
                    & models.Q(original_sale__isnull=False)
                ),
                name="sale_record_original_link_check",
            ),
            models.CheckConstraint(
                condition=models.Q(total_amount__gte=0),
                name="sale_record_total_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(credit_outstanding_amount__isnull=True)
                | models.Q(credit_outstanding_amount__gte=0),
                name="sale_record_outstanding_non_negative",
            ),
        ]


class SaleRecordIndexes:
    """SaleRecord model indexes"""

    @staticmethod
    def get_all_indexes():
        return [
            models.Index(fields=["company", "status"], name="sale_company_status_idx"),
            models.Index(fields=["date"], name="sale_date_idx"),
            models.Index(fields=["customer"], name="sale_customer_idx"),
            models.Index(fields=["is_credit_sale", "credit_payment_status"], name="sale_credit_status_idx"),
            models.Index(fields=["original_sale", "record_type"], name="sale_original_type_idx"),
        ]
