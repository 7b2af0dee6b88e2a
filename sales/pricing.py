"""
Shared pricing pipeline for new sales and return recomputation.

engine -> effective price per unit -> cart discount prorated over lines ->
per-line tax. Everything is derived from the line items and the campaign
snapshot, so recomputing the same inputs always yields the same bill.
"""

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import List

from base.money import ZERO, clamp, quantize
from discount.engine import CartLine, evaluate
from discount.rules import Campaign
from discount.summary import summarize, to_documents

HUNDRED = Decimal("100")


@dataclass
class PricedBill:
    items: list
    applied_discount_summary: List[dict] = field(default_factory=list)
    subtotal_original: Decimal = ZERO
    total_item_discount_amount: Decimal = ZERO
    total_cart_discount_amount: Decimal = ZERO
    net_subtotal: Decimal = ZERO
    tax_amount: Decimal = ZERO
    total_amount: Decimal = ZERO

    def rollups(self):
        """Field values for SaleRecord"""
        return {
            "applied_discount_summary": self.applied_discount_summary,
            "subtotal_original": self.subtotal_original,
            "total_item_discount_amount": self.total_item_discount_amount,
            "total_cart_discount_amount": self.total_cart_discount_amount,
            "net_subtotal": self.net_subtotal,
            "tax_amount": self.tax_amount,
            "total_amount": self.total_amount,
        }


def to_cart_line(item):
    return CartLine(
        line_id=item.line_id,
        product_id=item.product_id,
        quantity=item.quantity,
        unit_price=item.price_at_sale,
        batch_id=item.batch_id,
        custom_discount_type=item.custom_discount_type,
        custom_discount_value=item.custom_discount_value,
    )


def price_items(items, campaign_snapshot=None):
    """
    Price a list of SaleLineItems under a campaign snapshot.

    Returns a PricedBill whose items carry the recomputed per-line discount
    and effective price paid per unit.
    """
    if not items:
        return PricedBill(items=[])

    result = evaluate(
        [to_cart_line(item) for item in items], Campaign.from_snapshot(campaign_snapshot)
    )

    priced_items = []
    for item in items:
        discount = result.per_line_discount[item.line_id]
        effective = clamp(item.price_at_sale - discount / item.quantity)
        priced_items.append(
            replace(
                item,
                price=item.price_at_sale,
                total_discount_on_line=discount,
                effective_price_paid_per_unit=quantize(effective),
            )
        )

    subtotal = result.subtotal
    item_discount = result.total_item_discount
    cart_discount = result.cart_discount_amount
    after_items = subtotal - item_discount

    # cart discount is prorated by each line's share of the post-item subtotal
    tax = ZERO
    for item in priced_items:
        line_net = item.line_total - item.total_discount_on_line
        share = ZERO
        if after_items > 0 and cart_discount > 0:
            share = line_net / after_items * cart_discount
        tax += clamp(line_net - share) * item.tax_rate / HUNDRED
    tax = quantize(tax)

    net_subtotal = quantize(after_items - cart_discount)
    return PricedBill(
        items=priced_items,
        applied_discount_summary=to_documents(summarize(result)),
        subtotal_original=quantize(subtotal),
        total_item_discount_amount=quantize(item_discount),
        total_cart_discount_amount=quantize(cart_discount),
        net_subtotal=net_subtotal,
        tax_amount=tax,
        total_amount=quantize(net_subtotal + tax),
    )
