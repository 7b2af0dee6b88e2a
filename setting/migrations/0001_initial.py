import django.core.validators
import django.db.models.deletion
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="TaxConfiguration",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("rate", models.DecimalField(decimal_places=2, default=Decimal("0.00"), help_text="Tax percentage applied when a product has no override", max_digits=5, validators=[django.core.validators.MinValueValidator(Decimal("0.00")), django.core.validators.MaxValueValidator(Decimal("100.00"))])),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("updated_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="tax_configs_updated", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Tax Configuration",
                "ordering": ["-updated_at"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("rate__gte", 0), ("rate__lte", 100)), name="tax_rate_range_check"),
                ],
            },
        ),
    ]
