import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


def rule_field():
    return models.JSONField(blank=True, null=True)


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("inventory", "0001_initial"),
        ("user", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="DiscountCampaign",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("is_default", models.BooleanField(default=False, help_text="Applied to new sales when no campaign is chosen")),
                ("is_one_time_per_transaction", models.BooleanField(default=False, help_text="Only the single best-value rule applies instead of stacking")),
                ("valid_from", models.DateField(blank=True, null=True)),
                ("valid_to", models.DateField(blank=True, null=True)),
                ("global_cart_price_rule", rule_field()),
                ("global_cart_quantity_rule", rule_field()),
                ("default_line_item_value_rule", rule_field()),
                ("default_line_item_quantity_rule", rule_field()),
                ("default_specific_qty_threshold_rule", rule_field()),
                ("default_specific_unit_price_threshold_rule", rule_field()),
                ("buy_get_rules", models.JSONField(blank=True, default=list)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="discount_campaigns", to="user.company")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="discount_campaigns_created", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-is_default", "name"],
                "constraints": [
                    models.UniqueConstraint(condition=models.Q(("is_default", True)), fields=("company",), name="unique_default_campaign_per_company"),
                    models.UniqueConstraint(fields=("company", "name"), name="unique_campaign_name_per_company"),
                    models.CheckConstraint(condition=models.Q(("valid_to__isnull", True), ("valid_from__isnull", True), ("valid_to__gte", models.F("valid_from")), _connector="OR"), name="campaign_validity_window_check"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ProductDiscountConfiguration",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("is_active_for_product_in_campaign", models.BooleanField(default=True)),
                ("line_item_value_rule", rule_field()),
                ("line_item_quantity_rule", rule_field()),
                ("specific_qty_threshold_rule", rule_field()),
                ("specific_unit_price_threshold_rule", rule_field()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("batch", models.ForeignKey(blank=True, help_text="Set to target one batch only", null=True, on_delete=django.db.models.deletion.CASCADE, related_name="discount_configurations", to="inventory.productbatch")),
                ("campaign", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="product_configurations", to="discount.discountcampaign")),
                ("product", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="discount_configurations", to="inventory.product")),
            ],
            options={
                "ordering": ["id"],
                "constraints": [
                    models.UniqueConstraint(condition=models.Q(("batch__isnull", True)), fields=("campaign", "product"), name="unique_product_config_per_campaign"),
                    models.UniqueConstraint(condition=models.Q(("batch__isnull", False)), fields=("campaign", "batch"), name="unique_batch_config_per_campaign"),
                ],
            },
        ),
    ]
