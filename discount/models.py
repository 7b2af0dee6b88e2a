from django.db import models
from django.conf import settings

from .choices import LINE_RULE_ORDER, LineRuleCategoryChoices
from .constraints import (
    DiscountCampaignConstraints,
    ProductDiscountConfigurationConstraints,
)
from .managers import DiscountCampaignManager, ProductDiscountConfigurationManager
from .rules import Campaign

User = settings.AUTH_USER_MODEL

# model field holding each line rule category
LINE_RULE_FIELDS = {
    LineRuleCategoryChoices.SPECIFIC_QTY_THRESHOLD: "specific_qty_threshold_rule",
    LineRuleCategoryChoices.SPECIFIC_UNIT_PRICE: "specific_unit_price_threshold_rule",
    LineRuleCategoryChoices.LINE_ITEM_QUANTITY: "line_item_quantity_rule",
    LineRuleCategoryChoices.LINE_ITEM_VALUE: "line_item_value_rule",
}


def _line_rules(instance, prefix=""):
    return {
        category.value: getattr(instance, prefix + LINE_RULE_FIELDS[category])
        for category in LINE_RULE_ORDER
        if getattr(instance, prefix + LINE_RULE_FIELDS[category])
    }


class DiscountCampaign(models.Model):
    """A named, company-scoped set of discount rules ("discount set")."""

    company = models.ForeignKey(
        "user.Company", on_delete=models.CASCADE, related_name="discount_campaigns"
    )
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, null=True)
    is_active = models.BooleanField(default=True)
    is_default = models.BooleanField(
        default=False, help_text="Applied to new sales when no campaign is chosen"
    )
    is_one_time_per_transaction = models.BooleanField(
        default=False,
        help_text="Only the single best-value rule applies instead of stacking",
    )
    valid_from = models.DateField(null=True, blank=True)
    valid_to = models.DateField(null=True, blank=True)

    global_cart_price_rule = models.JSONField(null=True, blank=True)
    global_cart_quantity_rule = models.JSONField(null=True, blank=True)
    default_line_item_value_rule = models.JSONField(null=True, blank=True)
    default_line_item_quantity_rule = models.JSONField(null=True, blank=True)
    default_specific_qty_threshold_rule = models.JSONField(null=True, blank=True)
    default_specific_unit_price_threshold_rule = models.JSONField(null=True, blank=True)
    buy_get_rules = models.JSONField(default=list, blank=True)

    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="discount_campaigns_created",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = DiscountCampaignManager()

    class Meta:
        ordering = ["-is_default", "name"]
        constraints = DiscountCampaignConstraints.get_all_constraints()

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        """Only one default campaign per company."""
        self.name = (self.name or "").strip()
        if self.is_default:
            DiscountCampaign.objects.filter(
                company_id=self.company_id, is_default=True
            ).exclude(pk=self.pk).update(is_default=False)

        super().save(*args, **kwargs)

    def to_snapshot(self):
        """JSON copy of the campaign as the engine sees it"""
        return {
            "id": self.pk,
            "name": self.name,
            "isOneTimePerTransaction": self.is_one_time_per_transaction,
            "globalCartPriceRule": self.global_cart_price_rule,
            "globalCartQuantityRule": self.global_cart_quantity_rule,
            "defaultRules": _line_rules(self, prefix="default_"),
            "productConfigurations": [
                config.to_snapshot() for config in self.product_configurations.all()
            ],
            "buyGetRules": list(self.buy_get_rules or []),
        }

    def to_engine(self):
        return Campaign.from_snapshot(self.to_snapshot())


class ProductDiscountConfiguration(models.Model):
    """Per-product (or per-batch) rule overrides within a campaign."""

    campaign = models.ForeignKey(
        DiscountCampaign, on_delete=models.CASCADE, related_name="product_configurations"
    )
    product = models.ForeignKey(
        "inventory.Product", on_delete=models.CASCADE, related_name="discount_configurations"
    )
    batch = models.ForeignKey(
        "inventory.ProductBatch",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="discount_configurations",
        help_text="Set to target one batch only",
    )
    is_active_for_product_in_campaign = models.BooleanField(default=True)
    line_item_value_rule = models.JSONField(null=True, blank=True)
    line_item_quantity_rule = models.JSONField(null=True, blank=True)
    specific_qty_threshold_rule = models.JSONField(null=True, blank=True)
    specific_unit_price_threshold_rule = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ProductDiscountConfigurationManager()

    class Meta:
        ordering = ["id"]
        constraints = ProductDiscountConfigurationConstraints.get_all_constraints()

    def __str__(self):
        target = self.batch or self.product
        return f"{self.campaign.name}: {target}"

    def to_snapshot(self):
        return {
            "productId": self.product_id,
            "batchId": self.batch_id,
            "isActiveForProductInCampaign": self.is_active_for_product_in_campaign,
            "rules": _line_rules(self),
        }
