import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("user", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Customer",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("is_deleted", models.BooleanField(default=False)),
                ("deleted_at", models.DateTimeField(blank=True, null=True)),
                ("name", models.CharField(blank=True, help_text="Customer's full name", max_length=255, null=True)),
                ("phone_number", models.CharField(help_text="Customer's phone number (unique per company)", max_length=20, validators=[django.core.validators.RegexValidator(message="Phone number must be exactly 10 digits (e.g., 9876543210).", regex="^\\d{10}$")])),
                ("email", models.EmailField(blank=True, help_text="Customer's email address", max_length=254, null=True)),
                ("address", models.TextField(blank=True, help_text="Customer's address", null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="customers", to="user.company")),
                ("created_by", models.ForeignKey(blank=True, help_text="User who created this customer record", null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="customers", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Customer",
                "verbose_name_plural": "Customers",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["name"], name="customer_name_idx"),
                    models.Index(fields=["phone_number"], name="customer_phone_number_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("company", "phone_number"), name="unique_customer_phone_per_company"),
                ],
            },
        ),
    ]
