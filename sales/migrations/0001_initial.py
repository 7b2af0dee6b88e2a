import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


def money(help_text="", **kwargs):
    kwargs.setdefault("default", Decimal("0"))
    return models.DecimalField(decimal_places=2, help_text=help_text, max_digits=12, **kwargs)


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("customer", "0001_initial"),
        ("discount", "0001_initial"),
        ("user", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="SaleRecord",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("record_type", models.CharField(choices=[("SALE", "Sale"), ("RETURN_TRANSACTION", "Return Transaction")], default="SALE", max_length=20)),
                ("status", models.CharField(choices=[("COMPLETED_ORIGINAL", "Completed Original"), ("ADJUSTED_ACTIVE", "Adjusted Active"), ("RETURN_TRANSACTION_COMPLETED", "Return Completed")], default="COMPLETED_ORIGINAL", max_length=30)),
                ("bill_number", models.CharField(max_length=80, unique=True)),
                ("date", models.DateTimeField(default=django.utils.timezone.now)),
                ("items", models.JSONField(default=list)),
                ("returned_items_log", models.JSONField(blank=True, default=list)),
                ("applied_discount_summary", models.JSONField(blank=True, default=list)),
                ("subtotal_original", money("Sum of price at sale x quantity")),
                ("total_item_discount_amount", money("Line-level discounts")),
                ("total_cart_discount_amount", money("Cart-level discounts")),
                ("net_subtotal", money("Subtotal after all discounts")),
                ("tax_rate", models.DecimalField(decimal_places=2, default=Decimal("0"), help_text="Global tax rate in force when the bill was priced", max_digits=5)),
                ("tax_amount", money()),
                ("total_amount", money(validators=[django.core.validators.MinValueValidator(Decimal("0"))])),
                ("payment_method", models.CharField(choices=[("CASH", "Cash"), ("CARD", "Card"), ("UPI", "UPI"), ("CREDIT", "Credit"), ("REFUND", "Refund")], default="CASH", max_length=10)),
                ("amount_paid_by_customer", money()),
                ("change_due_to_customer", money()),
                ("is_credit_sale", models.BooleanField(default=False)),
                ("credit_outstanding_amount", money(blank=True, default=None, null=True)),
                ("credit_payment_status", models.CharField(blank=True, choices=[("PENDING", "Pending"), ("PARTIALLY_PAID", "Partially Paid"), ("FULLY_PAID", "Fully Paid")], max_length=20, null=True)),
                ("credit_last_payment_date", models.DateTimeField(blank=True, null=True)),
                ("campaign_snapshot", models.JSONField(blank=True, help_text="Campaign rules as they were when the sale was made", null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("campaign", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="sale_records", to="discount.discountcampaign")),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="sale_records", to="user.company")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="sale_records_created", to=settings.AUTH_USER_MODEL)),
                ("customer", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="sale_records", to="customer.customer")),
                ("original_sale", models.ForeignKey(blank=True, help_text="Pristine original this adjusted or return record belongs to", null=True, on_delete=django.db.models.deletion.CASCADE, related_name="derived_records", to="sales.salerecord")),
            ],
            options={
                "ordering": ["-date", "-id"],
                "indexes": [
                    models.Index(fields=["company", "status"], name="sale_company_status_idx"),
                    models.Index(fields=["date"], name="sale_date_idx"),
                    models.Index(fields=["customer"], name="sale_customer_idx"),
                    models.Index(fields=["is_credit_sale", "credit_payment_status"], name="sale_credit_status_idx"),
                    models.Index(fields=["original_sale", "record_type"], name="sale_original_type_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(condition=models.Q(("status", "ADJUSTED_ACTIVE")), fields=("original_sale",), name="unique_adjusted_active_per_original"),
                    models.CheckConstraint(
                        condition=models.Q(record_type="SALE", status__in=["COMPLETED_ORIGINAL", "ADJUSTED_ACTIVE"])
                        | models.Q(record_type="RETURN_TRANSACTION", status="RETURN_TRANSACTION_COMPLETED"),
                        name="sale_record_type_status_check",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(status="COMPLETED_ORIGINAL", original_sale__isnull=True)
                        | (~models.Q(status="COMPLETED_ORIGINAL") & models.Q(original_sale__isnull=False)),
                        name="sale_record_original_link_check",
                    ),
                    models.CheckConstraint(condition=models.Q(("total_amount__gte", 0)), name="sale_record_total_non_negative"),
                    models.CheckConstraint(
                        condition=models.Q(credit_outstanding_amount__isnull=True)
                        | models.Q(credit_outstanding_amount__gte=0),
                        name="sale_record_outstanding_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="BillSequence",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("financial_year", models.CharField(max_length=10)),
                ("last_number", models.PositiveIntegerField(default=0)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="user.company")),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("company", "financial_year"), name="unique_bill_sequence_per_company_year"),
                ],
            },
        ),
    ]
