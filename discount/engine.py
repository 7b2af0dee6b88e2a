"""
Rule evaluation engine.

A pure function of (cart lines, campaign, catalog): no database access, no
logging, safe to call from any number of concurrent transactions. Amounts are
Decimals quantized to two places as they are recorded.

Evaluation order:
    1. custom overrides (replace campaign line rules for their line)
    2. line rules per line: specific-qty -> unit-price -> line-qty -> line-value,
       each slot resolved batch config -> product config -> campaign default
    3. global cart rules against the subtotal after line discounts
    4. buy X get Y
With ``is_one_time_per_transaction`` steps 2 and 3 collapse to the single
largest candidate. Custom overrides and buy X get Y are never capped.
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_FLOOR
from typing import Dict, List, Mapping, Optional, Sequence

from base import exceptions
from base.money import ZERO, clamp, is_zero, quantize, to_decimal
from .choices import (
    BUY_GET_RULE,
    CART_PRICE_RULE,
    CART_QUANTITY_RULE,
    CUSTOM_CAMPAIGN_NAME,
    CUSTOM_ITEM_RULE,
    DiscountTypeChoices,
    LINE_RULE_ORDER,
    LineRuleCategoryChoices,
    QUANTITY_CATEGORIES,
    line_rule_type,
)

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class CartLine:
    line_id: str
    product_id: int
    quantity: Decimal
    unit_price: Optional[Decimal] = None
    batch_id: Optional[int] = None
    custom_discount_type: Optional[str] = None
    custom_discount_value: Optional[Decimal] = None

    @property
    def has_custom_discount(self):
        return self.custom_discount_value is not None and self.custom_discount_value > 0


@dataclass(frozen=True)
class CatalogEntry:
    product_id: int
    selling_price: Decimal
    batch_prices: Mapping[int, Decimal] = field(default_factory=dict)

    def price_for(self, batch_id=None):
        price = self.batch_prices.get(batch_id) if batch_id is not None else None
        return price if price is not None else self.selling_price


@dataclass(frozen=True)
class AppliedRuleInfo:
    discount_campaign_name: str
    source_rule_name: str
    total_calculated_discount: Decimal
    rule_type: str
    product_id_affected: Optional[int] = None
    applied_once: bool = False
    line_id: Optional[str] = None

    @property
    def is_cart_level(self):
        return self.rule_type in (CART_PRICE_RULE, CART_QUANTITY_RULE)

    def with_amount(self, amount):
        return AppliedRuleInfo(
            discount_campaign_name=self.discount_campaign_name,
            source_rule_name=self.source_rule_name,
            total_calculated_discount=amount,
            rule_type=self.rule_type,
            product_id_affected=self.product_id_affected,
            applied_once=self.applied_once,
            line_id=self.line_id,
        )

    def to_dict(self):
        return {
            "discountCampaignName": self.discount_campaign_name,
            "sourceRuleName": self.source_rule_name,
            "totalCalculatedDiscount": str(self.total_calculated_discount),
            "ruleType": self.rule_type,
            "productIdAffected": self.product_id_affected,
            "appliedOnce": self.applied_once,
        }


@dataclass
class EvaluationResult:
    line_totals: Dict[str, Decimal]
    unit_prices: Dict[str, Decimal]
    per_line_discount: Dict[str, Decimal]
    cart_discount_amount: Decimal = ZERO
    applied_rules: List[AppliedRuleInfo] = field(default_factory=list)

    @property
    def subtotal(self):
        return sum(self.line_totals.values(), ZERO)

    @property
    def total_item_discount(self):
        return sum(self.per_line_discount.values(), ZERO)

    @property
    def total_discount(self):
        return self.total_item_discount + self.cart_discount_amount


@dataclass
class _Candidate:
    info: AppliedRuleInfo
    line: Optional[CartLine] = None


class _Evaluation:
    def __init__(self, lines, campaign, catalog):
        self.lines = list(lines)
        self.campaign = campaign
        self.catalog = catalog or {}
        self.result = EvaluationResult(line_totals={}, unit_prices={}, per_line_discount={})

        seen = set()
        for line in self.lines:
            if line.line_id in seen:
                raise exceptions.ValidationError(f"Duplicate cart line id {line.line_id}.")
            seen.add(line.line_id)

            price = self._resolve_price(line)
            self.result.unit_prices[line.line_id] = price
            self.result.line_totals[line.line_id] = quantize(price * line.quantity)
            self.result.per_line_discount[line.line_id] = ZERO

    def _resolve_price(self, line):
        if line.quantity is None or line.quantity <= 0:
            raise exceptions.ValidationError(
                f"Quantity for product {line.product_id} must be positive."
            )
        if line.unit_price is not None:
            return to_decimal(line.unit_price)
        entry = self.catalog.get(line.product_id)
        if entry is None:
            raise exceptions.ValidationError(f"No price known for product {line.product_id}.")
        return to_decimal(entry.price_for(line.batch_id))

    @property
    def campaign_name(self):
        return self.campaign.name if self.campaign else CUSTOM_CAMPAIGN_NAME

    def remaining_line_value(self, line):
        return self.result.line_totals[line.line_id] - self.result.per_line_discount[line.line_id]

    def subtotal_after_lines(self):
        return self.result.subtotal - self.result.total_item_discount

    def apply_line(self, line, info):
        amount = quantize(clamp(info.total_calculated_discount, high=self.remaining_line_value(line)))
        if is_zero(amount):
            return
        self.result.per_line_discount[line.line_id] += amount
        self.result.applied_rules.append(info.with_amount(amount))

    def apply_cart(self, info):
        room = self.subtotal_after_lines() - self.result.cart_discount_amount
        amount = quantize(clamp(info.total_calculated_discount, high=max(room, ZERO)))
        if is_zero(amount):
            return
        self.result.cart_discount_amount += amount
        self.result.applied_rules.append(info.with_amount(amount))

    # custom overrides

    def custom_overrides(self):
        for line in self.lines:
            if not line.has_custom_discount:
                continue
            value = to_decimal(line.custom_discount_value)
            if line.custom_discount_type == DiscountTypeChoices.FIXED:
                amount = value * line.quantity
            else:
                amount = self.result.line_totals[line.line_id] * value / HUNDRED
            self.apply_line(
                line,
                AppliedRuleInfo(
                    discount_campaign_name=CUSTOM_CAMPAIGN_NAME,
                    source_rule_name="Custom Discount",
                    total_calculated_discount=amount,
                    rule_type=CUSTOM_ITEM_RULE,
                    product_id_affected=line.product_id,
                    line_id=line.line_id,
                ),
            )

    # campaign line rules

    def _metric(self, category, line):
        if category == LineRuleCategoryChoices.LINE_ITEM_VALUE:
            return self.result.line_totals[line.line_id]
        if category == LineRuleCategoryChoices.SPECIFIC_UNIT_PRICE:
            return self.result.unit_prices[line.line_id]
        return line.quantity

    def _rule_set_candidates(self, line, rule_set):
        line_total = self.result.line_totals[line.line_id]
        candidates = []
        for category in LINE_RULE_ORDER:
            rule = rule_set.get(category)
            if rule is None or not rule.matches(self._metric(category, line)):
                continue

            scales = category in QUANTITY_CATEGORIES and not rule.apply_fixed_once
            if rule.is_percentage:
                amount = line_total * rule.value / HUNDRED
            elif scales:
                amount = rule.value * line.quantity
            else:
                amount = rule.value

            amount = quantize(clamp(amount, high=line_total))
            if is_zero(amount):
                continue
            candidates.append(
                _Candidate(
                    line=line,
                    info=AppliedRuleInfo(
                        discount_campaign_name=self.campaign_name,
                        source_rule_name=rule.name,
                        total_calculated_discount=amount,
                        rule_type=line_rule_type(rule_set.source, category),
                        product_id_affected=line.product_id,
                        applied_once=not rule.is_percentage and not scales,
                        line_id=line.line_id,
                    ),
                )
            )
        return candidates

    def line_candidates(self):
        candidates = []
        for line in self.lines:
            if line.has_custom_discount:
                continue
            # the most specific rule set that discounts the line replaces the rest
            for rule_set in self.campaign.rule_sets_for(line.product_id, line.batch_id):
                found = self._rule_set_candidates(line, rule_set)
                if found:
                    candidates.extend(found)
                    break
        return candidates

    # global cart rules

    def cart_candidates(self, basis):
        total_quantity = sum((line.quantity for line in self.lines), Decimal("0"))
        candidates = []
        for rule, rule_type, metric in (
            (self.campaign.cart_price_rule, CART_PRICE_RULE, basis),
            (self.campaign.cart_quantity_rule, CART_QUANTITY_RULE, total_quantity),
        ):
            if rule is None or not rule.matches(metric):
                continue
            amount = basis * rule.value / HUNDRED if rule.is_percentage else rule.value
            amount = quantize(clamp(amount, high=max(basis, ZERO)))
            if is_zero(amount):
                continue
            candidates.append(
                _Candidate(
                    info=AppliedRuleInfo(
                        discount_campaign_name=self.campaign_name,
                        source_rule_name=rule.name,
                        total_calculated_discount=amount,
                        rule_type=rule_type,
                        applied_once=not rule.is_percentage,
                    )
                )
            )
        return candidates

    def stacked_campaign_rules(self):
        for candidate in self.line_candidates():
            self.apply_line(candidate.line, candidate.info)
        for candidate in self.cart_candidates(self.subtotal_after_lines()):
            self.apply_cart(candidate.info)

    def capped_campaign_rules(self):
        candidates = self.line_candidates() + self.cart_candidates(self.subtotal_after_lines())
        best = None
        for candidate in candidates:
            # ties keep the earliest candidate
            if best is None or candidate.info.total_calculated_discount > best.info.total_calculated_discount:
                best = candidate
        if best is None:
            return
        if best.line is not None:
            self.apply_line(best.line, best.info)
        else:
            self.apply_cart(best.info)

    # buy X get Y

    def buy_get(self):
        for rule in self.campaign.buy_get_rules:
            bought = sum(
                (line.quantity for line in self.lines if line.product_id == rule.buy_product_id),
                Decimal("0"),
            )
            if bought < rule.buy_quantity:
                continue

            if rule.is_repeatable:
                occurrences = (bought / rule.buy_quantity).to_integral_value(rounding=ROUND_FLOOR)
            else:
                occurrences = Decimal("1")
            free_units = occurrences * rule.get_quantity

            for line in self.lines:
                if free_units <= 0:
                    break
                if line.product_id != rule.get_product_id or line.has_custom_discount:
                    continue
                if self.remaining_line_value(line) <= 0:
                    continue

                units = min(line.quantity, free_units)
                if rule.discount_type == DiscountTypeChoices.FIXED:
                    amount = rule.discount_value * units
                else:
                    amount = self.result.unit_prices[line.line_id] * rule.discount_value / HUNDRED * units

                before = self.result.per_line_discount[line.line_id]
                self.apply_line(
                    line,
                    AppliedRuleInfo(
                        discount_campaign_name=self.campaign_name,
                        source_rule_name=rule.name,
                        total_calculated_discount=amount,
                        rule_type=BUY_GET_RULE,
                        product_id_affected=line.product_id,
                        line_id=line.line_id,
                    ),
                )
                if self.result.per_line_discount[line.line_id] > before:
                    free_units -= units

    def final_clamp(self):
        """Cart discount never exceeds what line discounts left of the subtotal"""
        excess = self.result.cart_discount_amount - max(self.subtotal_after_lines(), ZERO)
        if excess <= 0:
            return
        rules = self.result.applied_rules
        for index in range(len(rules) - 1, -1, -1):
            if excess <= 0:
                break
            info = rules[index]
            if not info.is_cart_level:
                continue
            cut = min(excess, info.total_calculated_discount)
            excess -= cut
            self.result.cart_discount_amount -= cut
            remaining = info.total_calculated_discount - cut
            if is_zero(remaining):
                del rules[index]
            else:
                rules[index] = info.with_amount(remaining)

    def run(self):
        self.custom_overrides()
        if self.campaign is not None:
            if self.campaign.is_one_time_per_transaction:
                self.capped_campaign_rules()
            else:
                self.stacked_campaign_rules()
            self.buy_get()
            self.final_clamp()
        return self.result


def evaluate(
    lines: Sequence[CartLine],
    campaign=None,
    catalog: Optional[Mapping[int, CatalogEntry]] = None,
) -> EvaluationResult:
    """
    Compute line and cart discounts for a cart.

    Args:
        lines: cart lines; unit_price may be omitted when the catalog knows it
        campaign: a rules.Campaign, or None for no campaign discounts
        catalog: product id -> CatalogEntry, used for price lookup

    Returns:
        EvaluationResult with per-line discounts, the cart-level discount and
        the applied rule trail in evaluation order.
    """
    return _Evaluation(lines, campaign, catalog).run()
