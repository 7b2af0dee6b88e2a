from django.db import models
from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db.models import Sum
from django.db.models.functions import Coalesce
from decimal import Decimal

from base.manager import SoftDeleteModel
from base.utility import StringProcessor
from .manager import ProductManager, ProductBatchManager, InventoryLogManager
from .units import default_unit_definition

User = settings.AUTH_USER_MODEL

RETURNED_STOCK_BATCH = "RETURNED_STOCK"


class Product(SoftDeleteModel):
    company = models.ForeignKey(
        "user.Company", on_delete=models.PROTECT, related_name="products"
    )
    name = models.CharField(max_length=255)
    code = models.CharField(max_length=50, blank=True, null=True)
    selling_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0"),
        validators=[MinValueValidator(Decimal("0"))],
    )
    cost_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0"),
        validators=[MinValueValidator(Decimal("0"))],
    )
    units = models.JSONField(
        default=default_unit_definition,
        help_text="Base unit plus derived units with conversion factors",
    )
    tax_rate_override = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[
            MinValueValidator(Decimal("0.00")),
            MaxValueValidator(Decimal("100.00")),
        ],
        help_text="Overrides the global tax rate when set",
    )
    is_service = models.BooleanField(
        default=False, help_text="Services never carry stock"
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ProductManager()

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "code"],
                condition=models.Q(code__isnull=False),
                name="unique_product_code_per_company",
            ),
        ]

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        self.name = StringProcessor(self.name).toTitle()
        if self.code:
            self.code = StringProcessor(self.code).toUppercase()
        super().save(*args, **kwargs)

    @property
    def stock(self):
        """Stock is the sum of batch quantities"""
        if self.is_service:
            return Decimal("0")
        return self.batches.aggregate(total=Coalesce(Sum("quantity"), Decimal("0")))[
            "total"
        ]


class ProductBatch(models.Model):
    product = models.ForeignKey(
        Product, on_delete=models.CASCADE, related_name="batches"
    )
    batch_number = models.CharField(max_length=50)
    quantity = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        default=Decimal("0"),
        validators=[MinValueValidator(Decimal("0"))],
    )
    cost_price = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0")
    )
    selling_price = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True
    )
    expiry_date = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ProductBatchManager()

    class Meta:
        ordering = ["created_at"]
        verbose_name_plural = "Product Batches"
        constraints = [
            models.UniqueConstraint(
                fields=["product", "batch_number"],
                name="unique_batch_number_per_product",
            ),
            models.CheckConstraint(
                condition=models.Q(quantity__gte=0),
                name="batch_quantity_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.product.name} [{self.batch_number}]"

    @property
    def effective_selling_price(self):
        return self.selling_price if self.selling_price is not None else self.product.selling_price


class InventoryLog(models.Model):
    class TransactionTypes(models.TextChoices):
        INITIAL = "INITIAL", "Initial Stock"
        SALE = "SALE", "Sale"
        RETURN = "RETURN", "Customer Return"
        RETURN_UNDO = "RETURN_UNDO", "Return Undone"

    batch = models.ForeignKey(
        ProductBatch, on_delete=models.CASCADE, related_name="inventory_logs"
    )
    transaction_type = models.CharField(max_length=20, choices=TransactionTypes.choices)
    quantity_change = models.DecimalField(
        max_digits=12, decimal_places=3, default=Decimal("0")
    )
    new_quantity = models.DecimalField(
        max_digits=12, decimal_places=3, default=Decimal("0")
    )
    reference = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Bill number or return log entry that caused the movement",
    )
    notes = models.TextField(blank=True, null=True)
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="inventory_logs",
    )
    timestamp = models.DateTimeField(auto_now_add=True)

    objects = InventoryLogManager()

    class Meta:
        ordering = ["-timestamp"]
        indexes = [
            models.Index(fields=["batch", "transaction_type"], name="invlog_batch_type_idx"),
            models.Index(fields=["reference"], name="invlog_reference_idx"),
        ]

    def __str__(self):
        return f"{self.get_transaction_type_display()} {self.quantity_change} of {self.batch}"
