"""
Value types for campaign rule configuration.

Rule configs are stored as camelCase JSON on campaigns and copied into each
sale as a snapshot. Decoding is lenient (bad entries become disabled rules
with a logged warning); validation for writes lives in the serializers.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional
import logging

from base.money import to_decimal
from .choices import DiscountTypeChoices, LINE_RULE_ORDER, RuleSourceChoices

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuleConfig:
    name: str
    type: str
    value: Decimal
    is_enabled: bool = True
    condition_min: Optional[Decimal] = None
    condition_max: Optional[Decimal] = None
    apply_fixed_once: bool = False

    @property
    def is_percentage(self):
        return self.type == DiscountTypeChoices.PERCENTAGE

    def matches(self, metric):
        """True when metric lies within [conditionMin, conditionMax]"""
        low = self.condition_min if self.condition_min is not None else Decimal("0")
        if metric < low:
            return False
        return self.condition_max is None or metric <= self.condition_max

    @classmethod
    def from_dict(cls, raw):
        if not raw:
            return None
        if not isinstance(raw, dict):
            logger.warning(f"Ignoring malformed rule config: {raw!r}")
            return None

        rule_type = raw.get("type")
        if rule_type not in DiscountTypeChoices.values:
            logger.warning(f"Rule {raw.get('name')!r} has unknown type {rule_type!r}; disabled")
            return None

        return cls(
            name=str(raw.get("name") or ""),
            type=rule_type,
            value=to_decimal(raw.get("value")),
            is_enabled=bool(raw.get("isEnabled", False)),
            condition_min=to_decimal(raw.get("conditionMin"), default=None),
            condition_max=to_decimal(raw.get("conditionMax"), default=None),
            apply_fixed_once=bool(raw.get("applyFixedOnce", False)),
        )

    def to_dict(self):
        return {
            "isEnabled": self.is_enabled,
            "name": self.name,
            "type": self.type,
            "value": str(self.value),
            "conditionMin": None if self.condition_min is None else str(self.condition_min),
            "conditionMax": None if self.condition_max is None else str(self.condition_max),
            "applyFixedOnce": self.apply_fixed_once,
        }


def _enabled(rule):
    return rule if rule is not None and rule.is_enabled else None


@dataclass(frozen=True)
class LineRuleSet:
    """The four line rule slots of one configuration"""

    source: str
    rules: Dict[str, RuleConfig] = field(default_factory=dict)

    def get(self, category):
        return _enabled(self.rules.get(getattr(category, "value", category)))

    @classmethod
    def from_dict(cls, source, raw):
        raw = raw if isinstance(raw, dict) else {}
        rules = {}
        for category in LINE_RULE_ORDER:
            rule = RuleConfig.from_dict(raw.get(category.value))
            if rule is not None:
                rules[category.value] = rule
        return cls(source=source, rules=rules)

    def to_dict(self):
        return {category: rule.to_dict() for category, rule in self.rules.items()}


@dataclass(frozen=True)
class ProductRuleOverride:
    product_id: int
    rules: LineRuleSet
    batch_id: Optional[int] = None
    is_active: bool = True

    @classmethod
    def from_dict(cls, raw):
        batch_id = raw.get("batchId")
        source = (
            RuleSourceChoices.BATCH_CONFIG if batch_id else RuleSourceChoices.PRODUCT_CONFIG
        )
        return cls(
            product_id=raw["productId"],
            batch_id=batch_id,
            is_active=bool(raw.get("isActiveForProductInCampaign", True)),
            rules=LineRuleSet.from_dict(source.value, raw.get("rules")),
        )

    def to_dict(self):
        return {
            "productId": self.product_id,
            "batchId": self.batch_id,
            "isActiveForProductInCampaign": self.is_active,
            "rules": self.rules.to_dict(),
        }


@dataclass(frozen=True)
class BuyGetRule:
    buy_product_id: int
    buy_quantity: Decimal
    get_product_id: int
    get_quantity: Decimal
    discount_type: str
    discount_value: Decimal
    is_repeatable: bool = False
    id: str = ""

    @property
    def name(self):
        return f"Buy {self.buy_quantity.normalize():f} Get {self.get_quantity.normalize():f}"

    @classmethod
    def from_dict(cls, raw):
        try:
            rule = cls(
                id=str(raw.get("id") or ""),
                buy_product_id=raw["buyProductId"],
                buy_quantity=to_decimal(raw["buyQuantity"]),
                get_product_id=raw["getProductId"],
                get_quantity=to_decimal(raw["getQuantity"]),
                discount_type=raw.get("discountType", DiscountTypeChoices.PERCENTAGE.value),
                discount_value=to_decimal(raw.get("discountValue")),
                is_repeatable=bool(raw.get("isRepeatable", False)),
            )
        except (KeyError, TypeError, AttributeError):
            logger.warning(f"Ignoring malformed buy/get rule: {raw!r}")
            return None
        if rule.buy_quantity <= 0 or rule.get_quantity <= 0:
            logger.warning(f"Ignoring buy/get rule with non-positive quantities: {raw!r}")
            return None
        return rule

    def to_dict(self):
        return {
            "id": self.id,
            "buyProductId": self.buy_product_id,
            "buyQuantity": str(self.buy_quantity),
            "getProductId": self.get_product_id,
            "getQuantity": str(self.get_quantity),
            "discountType": self.discount_type,
            "discountValue": str(self.discount_value),
            "isRepeatable": self.is_repeatable,
        }


@dataclass(frozen=True)
class Campaign:
    """Everything the engine needs to know about one campaign"""

    name: str
    defaults: LineRuleSet
    id: Optional[int] = None
    is_one_time_per_transaction: bool = False
    cart_price_rule: Optional[RuleConfig] = None
    cart_quantity_rule: Optional[RuleConfig] = None
    overrides: List[ProductRuleOverride] = field(default_factory=list)
    buy_get_rules: List[BuyGetRule] = field(default_factory=list)

    def rule_sets_for(self, product_id, batch_id=None):
        """Rule sets for a line, most specific first"""
        batch_sets, product_sets = [], []
        for override in self.overrides:
            if not override.is_active or override.product_id != product_id:
                continue
            if override.batch_id is None:
                product_sets.append(override.rules)
            elif batch_id is not None and override.batch_id == batch_id:
                batch_sets.append(override.rules)
        return batch_sets[:1] + product_sets[:1] + [self.defaults]

    @classmethod
    def from_snapshot(cls, snapshot):
        if not snapshot:
            return None

        overrides = []
        for raw in snapshot.get("productConfigurations") or []:
            try:
                overrides.append(ProductRuleOverride.from_dict(raw))
            except (KeyError, TypeError, AttributeError):
                logger.warning(f"Ignoring malformed product configuration: {raw!r}")

        buy_get = [BuyGetRule.from_dict(raw) for raw in snapshot.get("buyGetRules") or []]

        return cls(
            id=snapshot.get("id"),
            name=str(snapshot.get("name") or ""),
            is_one_time_per_transaction=bool(snapshot.get("isOneTimePerTransaction")),
            cart_price_rule=_enabled(RuleConfig.from_dict(snapshot.get("globalCartPriceRule"))),
            cart_quantity_rule=_enabled(
                RuleConfig.from_dict(snapshot.get("globalCartQuantityRule"))
            ),
            defaults=LineRuleSet.from_dict(
                RuleSourceChoices.CAMPAIGN_DEFAULT.value, snapshot.get("defaultRules")
            ),
            overrides=overrides,
            buy_get_rules=[rule for rule in buy_get if rule is not None],
        )

    def to_snapshot(self):
        return {
            "id": self.id,
            "name": self.name,
            "isOneTimePerTransaction": self.is_one_time_per_transaction,
            "globalCartPriceRule": self.cart_price_rule.to_dict() if self.cart_price_rule else None,
            "globalCartQuantityRule": (
                self.cart_quantity_rule.to_dict() if self.cart_quantity_rule else None
            ),
            "defaultRules": self.defaults.to_dict(),
            "productConfigurations": [override.to_dict() for override in self.overrides],
            "buyGetRules": [rule.to_dict() for rule in self.buy_get_rules],
        }
