from rest_framework import serializers
from decimal import Decimal

from .choices import DiscountTypeChoices, LINE_RULE_ORDER


class RuleConfigSerializer(serializers.Serializer):
    """Write-path validation for a single rule config"""

    isEnabled = serializers.BooleanField(default=False)
    name = serializers.CharField(max_length=255, allow_blank=True, default="")
    type = serializers.ChoiceField(choices=DiscountTypeChoices.choices)
    value = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0")
    )
    conditionMin = serializers.DecimalField(
        max_digits=12, decimal_places=3, required=False, allow_null=True
    )
    conditionMax = serializers.DecimalField(
        max_digits=12, decimal_places=3, required=False, allow_null=True
    )
    applyFixedOnce = serializers.BooleanField(default=False)

    def validate(self, attrs):
        if attrs["isEnabled"] and not attrs["name"].strip():
            raise serializers.ValidationError({"name": "Rule name is required when enabled."})

        if attrs["type"] == DiscountTypeChoices.PERCENTAGE and attrs["value"] > Decimal("100"):
            raise serializers.ValidationError({"value": "Percentage cannot exceed 100."})

        low, high = attrs.get("conditionMin"), attrs.get("conditionMax")
        if low is not None and low < 0:
            raise serializers.ValidationError({"conditionMin": "Minimum cannot be negative."})
        if low is not None and high is not None and high < low:
            raise serializers.ValidationError(
                {"conditionMax": "Maximum must be greater than or equal to minimum."}
            )
        return attrs


class BuyGetRuleSerializer(serializers.Serializer):
    id = serializers.CharField(required=False, allow_blank=True, default="")
    buyProductId = serializers.IntegerField()
    buyQuantity = serializers.DecimalField(
        max_digits=12, decimal_places=3, min_value=Decimal("0.001")
    )
    getProductId = serializers.IntegerField()
    getQuantity = serializers.DecimalField(
        max_digits=12, decimal_places=3, min_value=Decimal("0.001")
    )
    discountType = serializers.ChoiceField(choices=DiscountTypeChoices.choices)
    discountValue = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0")
    )
    isRepeatable = serializers.BooleanField(default=False)

    def validate(self, attrs):
        if (
            attrs["discountType"] == DiscountTypeChoices.PERCENTAGE
            and attrs["discountValue"] > Decimal("100")
        ):
            raise serializers.ValidationError({"discountValue": "Percentage cannot exceed 100."})
        return attrs


class LineRulesField(serializers.DictField):
    """Mapping of line rule category -> rule config"""

    def __init__(self, **kwargs):
        kwargs.setdefault("child", RuleConfigSerializer(allow_null=True))
        kwargs.setdefault("required", False)
        kwargs.setdefault("default", dict)
        super().__init__(**kwargs)

    def to_internal_value(self, data):
        allowed = {category.value for category in LINE_RULE_ORDER}
        unknown = set(data or {}) - allowed
        if unknown:
            raise serializers.ValidationError(f"Unknown rule categories: {sorted(unknown)}")
        return super().to_internal_value(data or {})


class ProductConfigurationSerializer(serializers.Serializer):
    id = serializers.IntegerField(required=False, allow_null=True)
    productId = serializers.IntegerField()
    batchId = serializers.IntegerField(required=False, allow_null=True)
    isActiveForProductInCampaign = serializers.BooleanField(default=True)
    rules = LineRulesField()


class CampaignSerializer(serializers.Serializer):
    id = serializers.IntegerField(required=False, allow_null=True)
    companyId = serializers.IntegerField(required=False, allow_null=True)
    name = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    isActive = serializers.BooleanField(default=True)
    isDefault = serializers.BooleanField(default=False)
    isOneTimePerTransaction = serializers.BooleanField(default=False)
    validFrom = serializers.DateField(required=False, allow_null=True)
    validTo = serializers.DateField(required=False, allow_null=True)
    globalCartPriceRule = RuleConfigSerializer(required=False, allow_null=True)
    globalCartQuantityRule = RuleConfigSerializer(required=False, allow_null=True)
    defaultRules = LineRulesField()
    productConfigurations = ProductConfigurationSerializer(many=True, required=False, default=list)
    buyGetRules = BuyGetRuleSerializer(many=True, required=False, default=list)

    def validate(self, attrs):
        valid_from, valid_to = attrs.get("validFrom"), attrs.get("validTo")
        if valid_from and valid_to and valid_to < valid_from:
            raise serializers.ValidationError({"validTo": "End date cannot precede start date."})

        seen = set()
        for config in attrs.get("productConfigurations", []):
            key = (config["productId"], config.get("batchId"))
            if key in seen:
                raise serializers.ValidationError(
                    {"productConfigurations": f"Duplicate configuration for product {key[0]}."}
                )
            seen.add(key)
        return attrs


def rule_to_json(rule):
    """Validated rule attrs as stored JSON"""
    if not rule:
        return None
    return dict(RuleConfigSerializer(rule).data)


class CampaignReferenceSerializer(serializers.Serializer):
    campaignId = serializers.IntegerField()
