"""
Discount audit summarizer.

Turns engine output into the ordered list stored on a sale as
``applied_discount_summary``. The list alone must explain the sale's
discount totals, which ``explain_totals`` checks without re-running the
engine.
"""

import logging

from base.money import ZERO, quantize, to_decimal
from .choices import BUY_GET_RULE, CUSTOM_ITEM_RULE, LINE_RULE_ORDER
from .engine import AppliedRuleInfo

logger = logging.getLogger(__name__)

_CATEGORY_RANK = {category.value: rank for rank, category in enumerate(LINE_RULE_ORDER)}


def _category_rank(rule_type):
    if rule_type == CUSTOM_ITEM_RULE:
        return -1
    for category, rank in _CATEGORY_RANK.items():
        if rule_type.endswith(category):
            return rank
    return len(_CATEGORY_RANK)


def _sort_key(info, line_order):
    if info.is_cart_level:
        return (1, 0, 0)
    if info.rule_type == BUY_GET_RULE:
        return (2, line_order.get(info.line_id, 0), 0)
    return (0, line_order.get(info.line_id, 0), _category_rank(info.rule_type))


def summarize(result):
    """
    Ordered, merged audit trail for an EvaluationResult.

    Line rules come first (by line, then category), then cart rules, then
    buy X get Y. Entries for the same rule on the same product (e.g. the
    product sold from two batches) are merged into one.
    """
    line_order = {line_id: index for index, line_id in enumerate(result.line_totals)}
    ordered = sorted(result.applied_rules, key=lambda info: _sort_key(info, line_order))

    merged = []
    positions = {}
    for info in ordered:
        key = (
            info.rule_type,
            info.source_rule_name,
            info.discount_campaign_name,
            info.product_id_affected,
        )
        if key in positions:
            index = positions[key]
            existing = merged[index]
            merged[index] = existing.with_amount(
                existing.total_calculated_discount + info.total_calculated_discount
            )
            continue
        positions[key] = len(merged)
        merged.append(info)
    return merged


def to_documents(summary):
    return [info.to_dict() for info in summary]


def from_documents(raw):
    """Lenient decoder for a stored summary"""
    if not isinstance(raw, list):
        if raw:
            logger.warning(f"Applied discount summary is not a list: {raw!r}")
        return []

    entries = []
    for entry in raw:
        if not isinstance(entry, dict) or not entry.get("ruleType"):
            logger.warning(f"Dropping malformed applied rule entry: {entry!r}")
            continue
        entries.append(
            AppliedRuleInfo(
                discount_campaign_name=str(entry.get("discountCampaignName") or ""),
                source_rule_name=str(entry.get("sourceRuleName") or ""),
                total_calculated_discount=quantize(entry.get("totalCalculatedDiscount")),
                rule_type=entry["ruleType"],
                product_id_affected=entry.get("productIdAffected"),
                applied_once=bool(entry.get("appliedOnce", False)),
            )
        )
    return entries


def explain_totals(summary):
    """Item, cart and total discount reconstructed from the summary alone"""
    if summary and isinstance(summary[0], dict):
        summary = from_documents(summary)

    item_discount, cart_discount = ZERO, ZERO
    for info in summary:
        amount = to_decimal(info.total_calculated_discount)
        if info.is_cart_level:
            cart_discount += amount
        else:
            item_discount += amount

    return {
        "item_discount": quantize(item_discount),
        "cart_discount": quantize(cart_discount),
        "total_discount": quantize(item_discount + cart_discount),
    }
