"""
Discount-related choices and constants
"""

from django.db import models


class DiscountTypeChoices(models.TextChoices):
    """How a rule's value is interpreted"""

    PERCENTAGE = "percentage", "Percentage"
    FIXED = "fixed", "Fixed Amount"


class RuleSourceChoices(models.TextChoices):
    """Which rule set a line rule was resolved from"""

    BATCH_CONFIG = "batch_config", "Batch Configuration"
    PRODUCT_CONFIG = "product_config", "Product Configuration"
    CAMPAIGN_DEFAULT = "campaign_default", "Campaign Default"


class LineRuleCategoryChoices(models.TextChoices):
    """Line rule categories, in evaluation order"""

    SPECIFIC_QTY_THRESHOLD = "specific_qty_threshold", "Specific Quantity Threshold"
    SPECIFIC_UNIT_PRICE = "specific_unit_price", "Specific Unit Price Threshold"
    LINE_ITEM_QUANTITY = "line_item_quantity", "Line Item Quantity"
    LINE_ITEM_VALUE = "line_item_value", "Line Item Value"


LINE_RULE_ORDER = [
    LineRuleCategoryChoices.SPECIFIC_QTY_THRESHOLD,
    LineRuleCategoryChoices.SPECIFIC_UNIT_PRICE,
    LineRuleCategoryChoices.LINE_ITEM_QUANTITY,
    LineRuleCategoryChoices.LINE_ITEM_VALUE,
]

# Fixed amounts scale by quantity for these categories unless applyFixedOnce
QUANTITY_CATEGORIES = {
    LineRuleCategoryChoices.SPECIFIC_QTY_THRESHOLD,
    LineRuleCategoryChoices.LINE_ITEM_QUANTITY,
}

CART_PRICE_RULE = "campaign_global_cart_price"
CART_QUANTITY_RULE = "campaign_global_cart_quantity"
BUY_GET_RULE = "buy_get_free"
CUSTOM_ITEM_RULE = "custom_item_discount"

CUSTOM_CAMPAIGN_NAME = "Custom"


def line_rule_type(source, category):
    source = getattr(source, "value", source)
    category = getattr(category, "value", category)
    return f"{source}_{category}"
