"""
Return reconciliation for a bill.

A bill is a small state machine over SaleRecord rows that share one pristine
original:

    Pristine --apply--> AdjustedActive --apply/undo--> AdjustedActive
                              |
                              +--undo last active entry--> Pristine

Every apply also writes one ReturnTransaction row. The adjusted state is
always rebuilt from the pristine items minus the active (non-undone) return
entries, priced with the pristine campaign snapshot, so it depends only on
which entries are active and never on the order they were applied in.
"""

from collections import defaultdict
from django.utils import timezone
from decimal import Decimal
import logging

from base import exceptions
from base.money import ZERO, clamp, quantize
from base.transactions import service_transaction
from base.validation import validate_input
from customer.ledger import CreditLedger
from inventory.services import InventoryService
from .choices import PaymentMethodChoices, RecordTypeChoices, SaleStatusChoices
from .documents import ReturnedItemDetail, encode, line_key
from .models import SaleRecord
from .pricing import price_items
from .serializers import ReturnRequestSerializer, UndoReturnSerializer

logger = logging.getLogger(__name__)

ADJUSTED_SUFFIX = "-ADJ"


def adjusted_bill_number(pristine):
    return f"{pristine.bill_number}{ADJUSTED_SUFFIX}"


def return_bill_number(pristine, sequence):
    return f"RTN-{pristine.bill_number}-{sequence}"


def log_entry_id(return_transaction_id, product_id, batch_id):
    return f"log-{return_transaction_id}-{product_id}-{batch_id or 'nobatch'}"


def refund_per_unit(item):
    """Effective price paid per unit on the bill the units are returned from"""
    if item.effective_price_paid_per_unit is not None:
        return item.effective_price_paid_per_unit
    return quantize(clamp(item.price_at_sale - item.total_discount_on_line / item.quantity))


def kept_items(pristine_items, active_entries):
    """Pristine lines minus the cumulative active returned quantity per line"""
    returned = defaultdict(Decimal)
    for entry in active_entries:
        returned[entry.key] += entry.returned_quantity

    kept = []
    for item in pristine_items:
        remaining = item.quantity - returned.pop(item.key, ZERO)
        if remaining < 0:
            raise exceptions.ConsistencyError(
                f"Returned quantity for {item.name} exceeds the quantity sold."
            )
        if remaining > 0:
            kept.append(item.with_quantity(remaining))

    if returned:
        raise exceptions.ConsistencyError(
            f"Return entries reference lines not on the original bill: {sorted(map(str, returned))}"
        )
    return kept


class BillLifecycle:
    """Locked pristine original of a bill plus its adjusted-active record, if any"""

    def __init__(self, pristine, adjusted=None):
        self.pristine = pristine
        self.adjusted = adjusted

    @property
    def active(self):
        return self.adjusted or self.pristine

    @classmethod
    def load(cls, tenant, sale_id):
        """Lock and load the bill that sale_id belongs to"""
        record = (
            tenant.scope(SaleRecord.objects.select_for_update(of=("self",)))
            .filter(pk=sale_id)
            .first()
        )
        if record is None:
            raise exceptions.NotFoundError(f"Sale {sale_id} not found.")
        if record.is_return_transaction:
            raise exceptions.ConsistencyError(
                f"Sale {record.bill_number} is a return transaction, not a bill."
            )

        pristine = record
        if not record.is_pristine:
            pristine = (
                SaleRecord.objects.select_for_update(of=("self",))
                .filter(pk=record.original_sale_id)
                .first()
            )
            if pristine is None or not pristine.is_pristine:
                raise exceptions.ConsistencyError(
                    f"Sale {record.bill_number} has no pristine original."
                )

        adjusted = (
            SaleRecord.objects.select_for_update(of=("self",))
            .filter(original_sale=pristine, status=SaleStatusChoices.ADJUSTED_ACTIVE)
            .first()
        )
        return cls(pristine, adjusted)

    def _next_return_sequence(self):
        return (
            SaleRecord.objects.return_transactions().filter(original_sale=self.pristine).count()
            + 1
        )

    def _new_adjusted(self):
        pristine = self.pristine
        return SaleRecord(
            company_id=pristine.company_id,
            customer_id=pristine.customer_id,
            record_type=RecordTypeChoices.SALE,
            status=SaleStatusChoices.ADJUSTED_ACTIVE,
            bill_number=adjusted_bill_number(pristine),
            date=pristine.date,
            tax_rate=pristine.tax_rate,
            payment_method=pristine.payment_method,
            amount_paid_by_customer=pristine.amount_paid_by_customer,
            change_due_to_customer=pristine.change_due_to_customer,
            is_credit_sale=pristine.is_credit_sale,
            campaign_id=pristine.campaign_id,
            campaign_snapshot=pristine.campaign_snapshot,
            original_sale=pristine,
            created_by_id=pristine.created_by_id,
        )

    def rebuild(self, log):
        """
        Re-derive the adjusted state from the pristine items and the log.

        The full log, undone entries included, is stored on the adjusted
        record; only active entries reduce the kept quantities.
        """
        active_entries = [entry for entry in log if not entry.is_undone]
        kept = kept_items(self.pristine.line_items, active_entries)
        priced = price_items(kept, self.pristine.campaign_snapshot)

        adjusted = self.adjusted or self._new_adjusted()
        adjusted.items = encode(priced.items)
        adjusted.returned_items_log = encode(log)
        for field, value in priced.rollups().items():
            setattr(adjusted, field, value)
        if adjusted.is_credit_sale:
            CreditLedger.apply(self.pristine, adjusted)
        adjusted.save()

        self.adjusted = adjusted
        return adjusted

    def apply_return(self, lines, user=None):
        """Return units from the active bill; returns (return transaction, adjusted)"""
        active_items = {item.key: item for item in self.active.line_items}
        requested = []
        for line in lines:
            key = line_key(line["productId"], line.get("batchId"))
            item = active_items.get(key)
            if item is None:
                raise exceptions.ValidationError(
                    f"Product {line['productId']} is not on the active bill for that batch."
                )
            if line["quantity"] > item.quantity:
                raise exceptions.ConflictError(
                    f"Cannot return {line['quantity']} of {item.name}; "
                    f"only {item.quantity} remain on the bill."
                )
            requested.append((item, line["quantity"]))

        pristine = self.pristine
        return_record = SaleRecord.objects.create(
            company_id=pristine.company_id,
            customer_id=pristine.customer_id,
            record_type=RecordTypeChoices.RETURN_TRANSACTION,
            status=SaleStatusChoices.RETURN_TRANSACTION_COMPLETED,
            bill_number=return_bill_number(pristine, self._next_return_sequence()),
            tax_rate=pristine.tax_rate,
            payment_method=PaymentMethodChoices.REFUND,
            campaign_id=pristine.campaign_id,
            original_sale=pristine,
            created_by=user,
        )

        returned_at = timezone.now().isoformat()
        entries = []
        returned_lines = []
        for item, quantity in requested:
            per_unit = refund_per_unit(item)
            restocked_batch_id = InventoryService.restock_return(
                item.product_id,
                item.batch_id,
                quantity,
                reference=return_record.bill_number,
                user=user,
                cost_price=item.cost_price_at_sale,
                selling_price=item.price_at_sale,
            )
            entries.append(
                ReturnedItemDetail(
                    id=log_entry_id(return_record.pk, item.product_id, item.batch_id),
                    item_id=item.product_id,
                    name=item.name,
                    returned_quantity=quantity,
                    refund_amount_per_unit=per_unit,
                    total_refund_for_this_return_entry=quantize(per_unit * quantity),
                    return_transaction_id=return_record.pk,
                    return_date=returned_at,
                    units=item.units,
                    original_batch_id=item.batch_id,
                    restocked_batch_id=restocked_batch_id,
                    processed_by_user_id=getattr(user, "pk", None),
                )
            )
            returned_lines.append(item.with_quantity(quantity))

        subtotal = sum((line.line_total for line in returned_lines), ZERO)
        refund = sum((entry.total_refund_for_this_return_entry for entry in entries), ZERO)
        return_record.items = encode(returned_lines)
        return_record.returned_items_log = encode(entries)
        return_record.subtotal_original = quantize(subtotal)
        return_record.total_item_discount_amount = quantize(clamp(subtotal - refund))
        return_record.net_subtotal = refund
        return_record.total_amount = refund
        return_record.amount_paid_by_customer = refund
        return_record.save()

        adjusted = self.rebuild(self.active.return_log + entries)
        return return_record, adjusted

    def undo_return(self, entry_id, user=None):
        """Undo one return log entry; returns the bill's new active record"""
        log = self.active.return_log
        entry = next((candidate for candidate in log if candidate.id == entry_id), None)
        if entry is None:
            raise exceptions.NotFoundError(f"Return entry {entry_id} not found on this bill.")
        if entry.is_undone:
            raise exceptions.ConflictError(f"Return entry {entry_id} has already been undone.")

        stock_reversed = None
        if entry.restocked_batch_id:
            stock_reversed = InventoryService.reverse_return(
                entry.restocked_batch_id,
                entry.returned_quantity,
                reference=f"UNDO-{entry.id}",
                user=user,
            )
        undone = entry.undone(getattr(user, "pk", None), stock_reversed)
        log = [undone if candidate.id == entry_id else candidate for candidate in log]

        self._mark_on_return_transaction(undone)

        if not any(not candidate.is_undone for candidate in log):
            return self.collapse()
        return self.rebuild(log)

    def _mark_on_return_transaction(self, undone):
        record = (
            SaleRecord.objects.select_for_update(of=("self",))
            .filter(pk=undone.return_transaction_id, original_sale=self.pristine)
            .first()
        )
        if record is None:
            logger.warning(
                f"Return transaction {undone.return_transaction_id} for {undone.id} not found"
            )
            return
        record.returned_items_log = encode(
            [undone if entry.id == undone.id else entry for entry in record.return_log]
        )
        record.save(update_fields=["returned_items_log", "updated_at"])

    def collapse(self):
        """Drop the adjusted state; the pristine original is active again"""
        if self.adjusted is not None:
            self.adjusted.delete()
            self.adjusted = None

        pristine = self.pristine
        pristine.status = SaleStatusChoices.COMPLETED_ORIGINAL
        pristine.returned_items_log = []
        pristine.save(update_fields=["status", "returned_items_log", "updated_at"])
        return CreditLedger.recompute(pristine, pristine)


class ReturnService:
    """Caller-facing entry points for applying and undoing returns"""

    @staticmethod
    def process_return(tenant, data, user=None):
        """
        Apply a return against the bill's current active state.

        ``currentActiveSaleId`` must be the record the caller is looking at;
        a stale id means another return landed first and is rejected.
        """
        data = validate_input(ReturnRequestSerializer, data)

        with service_transaction(duplicate_message="Concurrent return on the same bill."):
            bill = BillLifecycle.load(tenant, data["pristineSaleId"])
            if bill.pristine.pk != data["pristineSaleId"]:
                raise exceptions.ConsistencyError(
                    f"Sale {data['pristineSaleId']} is not a pristine original."
                )
            if bill.active.pk != data["currentActiveSaleId"]:
                raise exceptions.ConsistencyError(
                    "The bill has changed since it was loaded; reload and try again."
                )
            return_record, adjusted = bill.apply_return(data["items"], user=user)

        logger.info(
            f"Return {return_record.bill_number} applied to {bill.pristine.bill_number}: "
            f"refund {return_record.total_amount}, new total {adjusted.total_amount}"
        )
        return return_record, adjusted

    @staticmethod
    def undo_return(tenant, master_sale_id, log_entry_id, user=None):
        data = validate_input(
            UndoReturnSerializer, {"masterSaleId": master_sale_id, "logEntryId": log_entry_id}
        )
        master_sale_id, log_entry_id = data["masterSaleId"], data["logEntryId"]

        with service_transaction():
            bill = BillLifecycle.load(tenant, master_sale_id)
            active = bill.undo_return(log_entry_id, user=user)

        logger.info(
            f"Return entry {log_entry_id} undone on {bill.pristine.bill_number}: "
            f"active bill {active.bill_number} total {active.total_amount}"
        )
        return active
