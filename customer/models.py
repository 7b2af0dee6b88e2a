from django.db import models
from django.conf import settings
from base.utility import StringProcessor
from base.manager import SoftDeleteModel, phone_regex
from decimal import Decimal
from django.core.validators import MinValueValidator
from django.utils import timezone
from django.core.exceptions import ValidationError

from .choices import InstallmentMethodChoices

User = settings.AUTH_USER_MODEL


class Customer(SoftDeleteModel):
    """Customer model for storing customer information."""

    company = models.ForeignKey(
        "user.Company", on_delete=models.PROTECT, related_name="customers"
    )
    name = models.CharField(
        max_length=255, null=True, blank=True, help_text="Customer's full name"
    )
    phone_number = models.CharField(
        max_length=20,
        validators=[phone_regex],
        help_text="Customer's phone number (unique per company)",
    )
    email = models.EmailField(
        blank=True, null=True, help_text="Customer's email address"
    )
    address = models.TextField(blank=True, null=True, help_text="Customer's address")
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="customers",
        help_text="User who created this customer record",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["name"], name="customer_name_idx"),
            models.Index(fields=["phone_number"], name="customer_phone_number_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "phone_number"],
                name="unique_customer_phone_per_company",
            ),
        ]
        verbose_name = "Customer"
        verbose_name_plural = "Customers"

    def __str__(self):
        return f"{self.display_name} ({self.phone_number})"

    @property
    def display_name(self):
        return self.name or "Unknown Customer"

    def save(self, *args, **kwargs):
        self.phone_number = StringProcessor(self.phone_number).cleaned_string
        self.name = StringProcessor(self.name).toTitle() or None
        self.email = StringProcessor(self.email).toLowercase() or None
        self.address = StringProcessor(self.address).toTitle() or None
        super().save(*args, **kwargs)

    def clean(self):
        if not self.phone_number:
            raise ValidationError({"phone_number": "Phone number is required."})

    def credit_bills(self):
        """(pristine, active) record pairs for every credit sale of this customer"""
        from sales.models import SaleRecord

        originals = SaleRecord.objects.originals().credit().by_customer(self.pk)
        return [(pristine, pristine.active_record()) for pristine in originals]


class PaymentInstallment(models.Model):
    """
    One credit payment against a sale.

    Always attached to the pristine original of the bill. Installments are
    never edited; removing one is an explicit delete that re-derives the
    ledger.
    """

    Method = InstallmentMethodChoices

    sale = models.ForeignKey(
        "sales.SaleRecord", on_delete=models.CASCADE, related_name="installments"
    )
    amount_paid = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
        help_text="Enter the Amount",
    )
    payment_date = models.DateTimeField(default=timezone.now)
    method = models.CharField(
        max_length=10,
        choices=InstallmentMethodChoices.choices,
        default=InstallmentMethodChoices.CASH,
        help_text="Payment method used",
    )
    notes = models.TextField(blank=True, null=True)
    recorded_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="recorded_installments",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["payment_date", "id"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount_paid__gt=0),
                name="installment_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.sale} - ₹{self.amount_paid} via {self.get_method_display()}"
