"""
Owned value types for the JSON collections stored on a SaleRecord.

Reads are lenient: stored entries that fail to parse are repaired with
defaults (or dropped when unusable) and a warning is logged, so old records
stay readable. Writes always go through ``to_dict`` on a fully built value.
"""

from dataclasses import dataclass, field, replace
from django.utils import timezone
from decimal import Decimal
from typing import List, Optional
import logging

from base.money import ZERO, quantize, to_decimal
from inventory.units import UnitDefinition

logger = logging.getLogger(__name__)


def _optional_decimal(value):
    return to_decimal(value, default=None)


def _str_or_none(value):
    return None if value is None else str(value)


def line_key(product_id, batch_id):
    """Identity of a sale line: (product, batch)"""
    return (product_id, batch_id or None)


@dataclass(frozen=True)
class SaleLineItem:
    product_id: int
    name: str
    quantity: Decimal
    price_at_sale: Decimal
    units: dict = field(default_factory=dict)
    price: Optional[Decimal] = None
    effective_price_paid_per_unit: Optional[Decimal] = None
    total_discount_on_line: Decimal = ZERO
    cost_price_at_sale: Decimal = ZERO
    tax_rate: Decimal = ZERO
    batch_id: Optional[int] = None
    batch_number: Optional[str] = None
    custom_discount_type: Optional[str] = None
    custom_discount_value: Optional[Decimal] = None

    @property
    def key(self):
        return line_key(self.product_id, self.batch_id)

    @property
    def line_id(self):
        return f"{self.product_id}:{self.batch_id or 'nobatch'}"

    @property
    def line_total(self):
        return quantize(self.price_at_sale * self.quantity)

    def with_quantity(self, quantity):
        return replace(self, quantity=quantity)

    def to_dict(self):
        return {
            "productId": self.product_id,
            "name": self.name,
            "price": str(self.price if self.price is not None else self.price_at_sale),
            "units": self.units,
            "quantity": str(self.quantity),
            "priceAtSale": str(self.price_at_sale),
            "effectivePricePaidPerUnit": _str_or_none(self.effective_price_paid_per_unit),
            "totalDiscountOnLine": str(self.total_discount_on_line),
            "costPriceAtSale": str(self.cost_price_at_sale),
            "taxRate": str(self.tax_rate),
            "batchId": self.batch_id,
            "batchNumber": self.batch_number,
            "customDiscountType": self.custom_discount_type,
            "customDiscountValue": _str_or_none(self.custom_discount_value),
        }

    @classmethod
    def from_dict(cls, raw):
        if not isinstance(raw, dict) or raw.get("productId") is None:
            logger.warning(f"Dropping unreadable sale line: {raw!r}")
            return None

        price_at_sale = to_decimal(raw.get("priceAtSale"), default=None)
        if price_at_sale is None:
            price_at_sale = to_decimal(raw.get("price"))
            logger.warning(f"Sale line {raw.get('productId')} missing priceAtSale; using price")

        units = raw.get("units")
        if not isinstance(units, dict) or not units.get("baseUnit"):
            units = UnitDefinition.from_stored(units).to_dict()

        return cls(
            product_id=raw["productId"],
            name=str(raw.get("name") or ""),
            quantity=to_decimal(raw.get("quantity")),
            price_at_sale=price_at_sale,
            units=units,
            price=_optional_decimal(raw.get("price")),
            effective_price_paid_per_unit=_optional_decimal(raw.get("effectivePricePaidPerUnit")),
            total_discount_on_line=to_decimal(raw.get("totalDiscountOnLine")),
            cost_price_at_sale=to_decimal(raw.get("costPriceAtSale")),
            tax_rate=to_decimal(raw.get("taxRate")),
            batch_id=raw.get("batchId") or None,
            batch_number=raw.get("batchNumber"),
            custom_discount_type=raw.get("customDiscountType"),
            custom_discount_value=_optional_decimal(raw.get("customDiscountValue")),
        )


@dataclass(frozen=True)
class ReturnedItemDetail:
    id: str
    item_id: int
    name: str
    returned_quantity: Decimal
    refund_amount_per_unit: Decimal
    total_refund_for_this_return_entry: Decimal
    return_transaction_id: int
    return_date: str
    units: dict = field(default_factory=dict)
    original_batch_id: Optional[int] = None
    restocked_batch_id: Optional[int] = None
    processed_by_user_id: Optional[int] = None
    is_undone: bool = False
    undone_at: Optional[str] = None
    undone_by_user_id: Optional[int] = None
    stock_reversed: Optional[bool] = None

    @property
    def key(self):
        return line_key(self.item_id, self.original_batch_id)

    def undone(self, user_id, stock_reversed, when=None):
        return replace(
            self,
            is_undone=True,
            undone_at=(when or timezone.now()).isoformat(),
            undone_by_user_id=user_id,
            stock_reversed=stock_reversed,
        )

    def to_dict(self):
        return {
            "id": self.id,
            "itemId": self.item_id,
            "name": self.name,
            "returnedQuantity": str(self.returned_quantity),
            "units": self.units,
            "refundAmountPerUnit": str(self.refund_amount_per_unit),
            "totalRefundForThisReturnEntry": str(self.total_refund_for_this_return_entry),
            "returnDate": self.return_date,
            "returnTransactionId": self.return_transaction_id,
            "isUndone": self.is_undone,
            "processedByUserId": self.processed_by_user_id,
            "originalBatchId": self.original_batch_id,
            "restockedBatchId": self.restocked_batch_id,
            "undoneAt": self.undone_at,
            "undoneByUserId": self.undone_by_user_id,
            "stockReversed": self.stock_reversed,
        }

    @classmethod
    def from_dict(cls, raw):
        if not isinstance(raw, dict) or not raw.get("id") or raw.get("itemId") is None:
            logger.warning(f"Dropping unreadable return log entry: {raw!r}")
            return None

        quantity = to_decimal(raw.get("returnedQuantity"))
        per_unit = to_decimal(raw.get("refundAmountPerUnit"))
        total = to_decimal(raw.get("totalRefundForThisReturnEntry"), default=None)
        if total is None:
            logger.warning(f"Return log entry {raw['id']} missing total refund; recomputed")
            total = quantize(per_unit * quantity)

        return cls(
            id=str(raw["id"]),
            item_id=raw["itemId"],
            name=str(raw.get("name") or ""),
            returned_quantity=quantity,
            refund_amount_per_unit=per_unit,
            total_refund_for_this_return_entry=total,
            return_transaction_id=raw.get("returnTransactionId"),
            return_date=str(raw.get("returnDate") or ""),
            units=raw.get("units") if isinstance(raw.get("units"), dict) else {},
            original_batch_id=raw.get("originalBatchId") or None,
            restocked_batch_id=raw.get("restockedBatchId") or None,
            processed_by_user_id=raw.get("processedByUserId"),
            is_undone=bool(raw.get("isUndone", False)),
            undone_at=raw.get("undoneAt"),
            undone_by_user_id=raw.get("undoneByUserId"),
            stock_reversed=raw.get("stockReversed"),
        )


def _decode_list(raw, decoder, label):
    if raw in (None, ""):
        return []
    if not isinstance(raw, list):
        logger.warning(f"Stored {label} is not a list; treated as empty")
        return []
    decoded = (decoder(entry) for entry in raw)
    return [entry for entry in decoded if entry is not None]


def decode_items(raw) -> List[SaleLineItem]:
    return _decode_list(raw, SaleLineItem.from_dict, "items")


def decode_return_log(raw) -> List[ReturnedItemDetail]:
    return _decode_list(raw, ReturnedItemDetail.from_dict, "returned items log")


def encode(values):
    return [value.to_dict() for value in values]
