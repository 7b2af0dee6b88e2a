import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("customer", "0001_initial"),
        ("sales", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="PaymentInstallment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount_paid", models.DecimalField(decimal_places=2, help_text="Enter the Amount", max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal("0.01"))])),
                ("payment_date", models.DateTimeField(default=django.utils.timezone.now)),
                ("method", models.CharField(choices=[("CASH", "Cash"), ("CARD", "Card"), ("UPI", "UPI"), ("CREDIT", "Credit"), ("OTHER", "Other")], default="CASH", help_text="Payment method used", max_length=10)),
                ("notes", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("recorded_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="recorded_installments", to=settings.AUTH_USER_MODEL)),
                ("sale", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="installments", to="sales.salerecord")),
            ],
            options={
                "ordering": ["payment_date", "id"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("amount_paid__gt", 0)), name="installment_amount_positive"),
                ],
            },
        ),
    ]
