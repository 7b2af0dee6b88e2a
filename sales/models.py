from django.db import models, transaction
from django.conf import settings
from django.core.validators import MinValueValidator
from django.utils import timezone
from decimal import Decimal

from base.utility import get_financial_year
from .choices import (
    CreditPaymentStatusChoices,
    PaymentMethodChoices,
    RecordTypeChoices,
    SaleStatusChoices,
)
from .constraints import SaleRecordConstraints, SaleRecordIndexes
from .managers import SaleRecordManager
from .mixins import SaleCreditMixin, SaleLifecycleMixin

User = settings.AUTH_USER_MODEL


def money_field(help_text="", **kwargs):
    kwargs.setdefault("default", Decimal("0"))
    return models.DecimalField(
        max_digits=12, decimal_places=2, help_text=help_text, **kwargs
    )


def get_next_bill_number(company):
    """Atomically reserve the next bill number for a company"""
    financial_year = get_financial_year(timezone.localdate())
    with transaction.atomic():
        seq, _ = BillSequence.objects.select_for_update().get_or_create(
            company=company,
            financial_year=financial_year,
            defaults={"last_number": 0},
        )
        seq.last_number += 1
        seq.save(update_fields=["last_number"])

        return f"{company.bill_prefix}-{financial_year}-{str(seq.last_number).zfill(4)}"


class SaleRecord(SaleLifecycleMixin, SaleCreditMixin, models.Model):
    """
    One financial document in a bill's lifecycle.

    The pristine original (COMPLETED_ORIGINAL) is written once by sale
    creation. Returns produce one RETURN_TRANSACTION record each and keep a
    single ADJUSTED_ACTIVE record per original in step with the active
    return entries. Only the credit ledger fields of the active record
    change after creation.
    """

    RecordType = RecordTypeChoices
    Status = SaleStatusChoices
    PaymentMethod = PaymentMethodChoices
    CreditStatus = CreditPaymentStatusChoices

    company = models.ForeignKey(
        "user.Company", on_delete=models.PROTECT, related_name="sale_records"
    )
    customer = models.ForeignKey(
        "customer.Customer",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="sale_records",
    )
    record_type = models.CharField(
        max_length=20,
        choices=RecordTypeChoices.choices,
        default=RecordTypeChoices.SALE,
    )
    status = models.CharField(
        max_length=30,
        choices=SaleStatusChoices.choices,
        default=SaleStatusChoices.COMPLETED_ORIGINAL,
    )
    bill_number = models.CharField(max_length=80, unique=True)
    date = models.DateTimeField(default=timezone.now)

    items = models.JSONField(default=list)
    returned_items_log = models.JSONField(default=list, blank=True)
    applied_discount_summary = models.JSONField(default=list, blank=True)

    subtotal_original = money_field("Sum of price at sale x quantity")
    total_item_discount_amount = money_field("Line-level discounts")
    total_cart_discount_amount = money_field("Cart-level discounts")
    net_subtotal = money_field("Subtotal after all discounts")
    tax_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("0"),
        help_text="Global tax rate in force when the bill was priced",
    )
    tax_amount = money_field()
    total_amount = money_field(validators=[MinValueValidator(Decimal("0"))])

    payment_method = models.CharField(
        max_length=10,
        choices=PaymentMethodChoices.choices,
        default=PaymentMethodChoices.CASH,
    )
    amount_paid_by_customer = money_field()
    change_due_to_customer = money_field()

    is_credit_sale = models.BooleanField(default=False)
    credit_outstanding_amount = money_field(null=True, blank=True, default=None)
    credit_payment_status = models.CharField(
        max_length=20,
        choices=CreditPaymentStatusChoices.choices,
        null=True,
        blank=True,
    )
    credit_last_payment_date = models.DateTimeField(null=True, blank=True)

    campaign = models.ForeignKey(
        "discount.DiscountCampaign",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="sale_records",
    )
    campaign_snapshot = models.JSONField(
        null=True,
        blank=True,
        help_text="Campaign rules as they were when the sale was made",
    )
    original_sale = models.ForeignKey(
        "self",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="derived_records",
        help_text="Pristine original this adjusted or return record belongs to",
    )

    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="sale_records_created",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = SaleRecordManager()

    class Meta:
        ordering = ["-date", "-id"]
        indexes = SaleRecordIndexes.get_all_indexes()
        constraints = SaleRecordConstraints.get_all_constraints()

    def __str__(self):
        return self.bill_number

    def adjusted_record(self):
        """The ADJUSTED_ACTIVE record derived from this original, if any"""
        return self.derived_records.filter(status=SaleStatusChoices.ADJUSTED_ACTIVE).first()

    def active_record(self):
        return self.adjusted_record() or self


class BillSequence(models.Model):
    company = models.ForeignKey("user.Company", on_delete=models.CASCADE)
    financial_year = models.CharField(max_length=10)
    last_number = models.PositiveIntegerField(default=0)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["company", "financial_year"],
                name="unique_bill_sequence_per_company_year",
            ),
        ]

    def __str__(self):
        return f"{self.company} {self.financial_year}: {self.last_number}"
