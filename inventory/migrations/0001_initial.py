import django.core.validators
import django.db.models.deletion
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models

import inventory.units


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("user", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("is_deleted", models.BooleanField(default=False)),
                ("deleted_at", models.DateTimeField(blank=True, null=True)),
                ("name", models.CharField(max_length=255)),
                ("code", models.CharField(blank=True, max_length=50, null=True)),
                ("selling_price", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal("0"))])),
                ("cost_price", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal("0"))])),
                ("units", models.JSONField(default=inventory.units.default_unit_definition, help_text="Base unit plus derived units with conversion factors")),
                ("tax_rate_override", models.DecimalField(blank=True, decimal_places=2, help_text="Overrides the global tax rate when set", max_digits=5, null=True, validators=[django.core.validators.MinValueValidator(Decimal("0.00")), django.core.validators.MaxValueValidator(Decimal("100.00"))])),
                ("is_service", models.BooleanField(default=False, help_text="Services never carry stock")),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="products", to="user.company")),
            ],
            options={
                "ordering": ["name"],
                "constraints": [
                    models.UniqueConstraint(condition=models.Q(("code__isnull", False)), fields=("company", "code"), name="unique_product_code_per_company"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ProductBatch",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("batch_number", models.CharField(max_length=50)),
                ("quantity", models.DecimalField(decimal_places=3, default=Decimal("0"), max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal("0"))])),
                ("cost_price", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=12)),
                ("selling_price", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("expiry_date", models.DateField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("product", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="batches", to="inventory.product")),
            ],
            options={
                "verbose_name_plural": "Product Batches",
                "ordering": ["created_at"],
                "constraints": [
                    models.UniqueConstraint(fields=("product", "batch_number"), name="unique_batch_number_per_product"),
                    models.CheckConstraint(condition=models.Q(("quantity__gte", 0)), name="batch_quantity_non_negative"),
                ],
            },
        ),
        migrations.CreateModel(
            name="InventoryLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("transaction_type", models.CharField(choices=[("INITIAL", "Initial Stock"), ("SALE", "Sale"), ("RETURN", "Customer Return"), ("RETURN_UNDO", "Return Undone")], max_length=20)),
                ("quantity_change", models.DecimalField(decimal_places=3, default=Decimal("0"), max_digits=12)),
                ("new_quantity", models.DecimalField(decimal_places=3, default=Decimal("0"), max_digits=12)),
                ("reference", models.CharField(blank=True, default="", help_text="Bill number or return log entry that caused the movement", max_length=100)),
                ("notes", models.TextField(blank=True, null=True)),
                ("timestamp", models.DateTimeField(auto_now_add=True)),
                ("batch", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="inventory_logs", to="inventory.productbatch")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="inventory_logs", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-timestamp"],
                "indexes": [
                    models.Index(fields=["batch", "transaction_type"], name="invlog_batch_type_idx"),
                    models.Index(fields=["reference"], name="invlog_reference_idx"),
                ],
            },
        ),
    ]
