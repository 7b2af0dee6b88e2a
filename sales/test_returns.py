from decimal import Decimal
from django.test import TestCase

from base import exceptions
from customer.models import PaymentInstallment
from inventory.models import InventoryLog, ProductBatch, RETURNED_STOCK_BATCH
from . import actions
from .models import SaleRecord
from .returns import BillLifecycle, ReturnService, kept_items
from .tests import SaleFixtureMixin, rule


class ReturnFixtureMixin(SaleFixtureMixin):
    def make_return_fixtures(self):
        self.make_fixtures()
        # 10% off while at least 10 units are on the line
        self.make_campaign(
            defaultRules={"specific_qty_threshold": rule("Bulk 10%", 10, low=10)}
        )

    def return_items(self, sale, active, items):
        return ReturnService.process_return(
            self.tenant,
            {"pristineSaleId": sale.pk, "currentActiveSaleId": active.pk, "items": items},
            user=self.user,
        )

    def return_pens(self, sale, active, quantity):
        return self.return_items(
            sale,
            active,
            [{"productId": self.pen.pk, "batchId": self.pen_batch.pk, "quantity": str(quantity)}],
        )

    def undo(self, sale, entry_id):
        return ReturnService.undo_return(self.tenant, sale.pk, entry_id, user=self.user)


class ApplyReturnTestCase(ReturnFixtureMixin, TestCase):
    def setUp(self):
        self.make_return_fixtures()
        self.sale = self.sell([self.pen_line(10)])

    def test_quantity_threshold_return(self):
        self.assertEqual(self.sale.total_amount, Decimal("900"))

        return_record, adjusted = self.return_pens(self.sale, self.sale, 3)

        self.assertEqual(return_record.total_amount, Decimal("270"))
        self.assertEqual(return_record.payment_method, SaleRecord.PaymentMethod.REFUND)
        self.assertEqual(return_record.record_type, SaleRecord.RecordType.RETURN_TRANSACTION)
        self.assertEqual(return_record.original_sale_id, self.sale.pk)

        self.assertEqual(adjusted.status, SaleRecord.Status.ADJUSTED_ACTIVE)
        self.assertEqual(adjusted.bill_number, f"{self.sale.bill_number}-ADJ")
        self.assertEqual(adjusted.line_items[0].quantity, Decimal("7"))
        # below the threshold the discount no longer applies
        self.assertEqual(adjusted.total_item_discount_amount, Decimal("0"))
        self.assertEqual(adjusted.total_amount, Decimal("700"))
        self.assertEqual(adjusted.applied_discount_summary, [])
        self.assertEqual(self.stock(self.pen_batch), Decimal("43"))

        pristine = SaleRecord.objects.get(pk=self.sale.pk)
        self.assertEqual(pristine.status, SaleRecord.Status.COMPLETED_ORIGINAL)
        self.assertEqual(pristine.total_amount, Decimal("900"))
        self.assertEqual(pristine.active_record().pk, adjusted.pk)

    def test_return_log_entry_shape(self):
        return_record, adjusted = self.return_pens(self.sale, self.sale, 3)

        entry = adjusted.return_log[0]
        self.assertEqual(
            entry.id, f"log-{return_record.pk}-{self.pen.pk}-{self.pen_batch.pk}"
        )
        self.assertEqual(entry.refund_amount_per_unit, Decimal("90"))
        self.assertEqual(entry.total_refund_for_this_return_entry, Decimal("270"))
        self.assertEqual(entry.restocked_batch_id, self.pen_batch.pk)
        self.assertEqual(entry.processed_by_user_id, self.user.pk)
        self.assertFalse(entry.is_undone)
        self.assertEqual(return_record.return_log, [entry])
        self.assertTrue(
            InventoryLog.objects.filter(
                batch=self.pen_batch,
                transaction_type=InventoryLog.TransactionTypes.RETURN,
                reference=return_record.bill_number,
            ).exists()
        )

    def test_return_transactions_are_numbered(self):
        first, adjusted = self.return_pens(self.sale, self.sale, 1)
        second, _ = self.return_pens(self.sale, adjusted, 1)

        self.assertEqual(first.bill_number, f"RTN-{self.sale.bill_number}-1")
        self.assertEqual(second.bill_number, f"RTN-{self.sale.bill_number}-2")

    def test_refund_uses_active_effective_price(self):
        _, adjusted = self.return_pens(self.sale, self.sale, 3)

        return_record, adjusted = self.return_pens(self.sale, adjusted, 2)

        self.assertEqual(return_record.total_amount, Decimal("200"))
        self.assertEqual(adjusted.total_amount, Decimal("500"))
        self.assertEqual(len(adjusted.return_log), 2)

    def test_split_returns_match_single_return(self):
        other = self.sell([self.pen_line(10)])
        _, adjusted = self.return_pens(self.sale, self.sale, 2)
        _, split = self.return_pens(self.sale, adjusted, 3)

        _, single = self.return_pens(other, other, 5)

        self.assertEqual(split.total_amount, single.total_amount)
        self.assertEqual(split.net_subtotal, single.net_subtotal)
        self.assertEqual(split.line_items[0].quantity, single.line_items[0].quantity)

    def test_full_return_keeps_empty_adjusted_bill(self):
        _, adjusted = self.return_pens(self.sale, self.sale, 10)

        self.assertEqual(adjusted.status, SaleRecord.Status.ADJUSTED_ACTIVE)
        self.assertEqual(adjusted.items, [])
        self.assertEqual(adjusted.total_amount, Decimal("0"))
        self.assertEqual(self.stock(self.pen_batch), Decimal("50"))

    def test_over_return_is_a_conflict(self):
        with self.assertRaises(exceptions.ConflictError):
            self.return_pens(self.sale, self.sale, 11)

        self.assertFalse(SaleRecord.objects.return_transactions().exists())
        self.assertEqual(self.stock(self.pen_batch), Decimal("40"))

    def test_over_return_counts_earlier_returns(self):
        _, adjusted = self.return_pens(self.sale, self.sale, 8)

        with self.assertRaises(exceptions.ConflictError):
            self.return_pens(self.sale, adjusted, 3)

    def test_line_not_on_bill_is_rejected(self):
        with self.assertRaises(exceptions.ValidationError):
            self.return_items(
                self.sale,
                self.sale,
                [{"productId": self.ink.pk, "batchId": self.ink_batch.pk, "quantity": "1"}],
            )

    def test_stale_active_id_is_rejected(self):
        self.return_pens(self.sale, self.sale, 1)

        with self.assertRaises(exceptions.ConsistencyError):
            self.return_pens(self.sale, self.sale, 1)
        self.assertEqual(SaleRecord.objects.return_transactions().count(), 1)

    def test_adjusted_id_is_not_a_pristine_id(self):
        _, adjusted = self.return_pens(self.sale, self.sale, 1)

        with self.assertRaises(exceptions.ConsistencyError):
            self.return_pens(adjusted, adjusted, 1)

    def test_return_transaction_cannot_be_returned_against(self):
        return_record, _ = self.return_pens(self.sale, self.sale, 1)

        with self.assertRaises(exceptions.ConsistencyError):
            self.return_pens(return_record, return_record, 1)

    def test_missing_origin_batch_restocks_returned_stock(self):
        ProductBatch.objects.filter(pk=self.pen_batch.pk).delete()

        _, adjusted = self.return_pens(self.sale, self.sale, 2)

        returned = ProductBatch.objects.get(product=self.pen, batch_number=RETURNED_STOCK_BATCH)
        self.assertEqual(returned.quantity, Decimal("2"))
        self.assertEqual(adjusted.return_log[0].restocked_batch_id, returned.pk)

    def test_service_product_return_skips_stock(self):
        sale = self.sell([self.pen_line(1), {"productId": self.wrap.pk, "quantity": "2"}])

        return_record, adjusted = self.return_items(
            sale, sale, [{"productId": self.wrap.pk, "quantity": "1"}]
        )

        self.assertEqual(return_record.total_amount, Decimal("10"))
        self.assertIsNone(adjusted.return_log[0].restocked_batch_id)
        self.assertFalse(ProductBatch.objects.filter(product=self.wrap).exists())
        self.assertEqual(adjusted.total_amount, Decimal("110"))


class UndoReturnTestCase(ReturnFixtureMixin, TestCase):
    def setUp(self):
        self.make_return_fixtures()
        self.sale = self.sell([self.pen_line(10)])
        self.first_record, adjusted = self.return_pens(self.sale, self.sale, 3)
        self.second_record, self.adjusted = self.return_pens(self.sale, adjusted, 2)
        self.first_id, self.second_id = [entry.id for entry in self.adjusted.return_log]

    def test_undo_restores_state_without_that_entry(self):
        active = self.undo(self.sale, self.second_id)

        self.assertEqual(active.pk, self.adjusted.pk)
        self.assertEqual(active.total_amount, Decimal("700"))
        self.assertEqual(active.line_items[0].quantity, Decimal("7"))
        self.assertEqual(self.stock(self.pen_batch), Decimal("43"))

        undone = next(entry for entry in active.return_log if entry.id == self.second_id)
        self.assertTrue(undone.is_undone)
        self.assertTrue(undone.stock_reversed)
        self.assertEqual(undone.undone_by_user_id, self.user.pk)

    def test_undo_flags_entry_on_return_transaction(self):
        self.undo(self.sale, self.second_id)

        record = SaleRecord.objects.get(pk=self.second_record.pk)
        self.assertTrue(record.return_log[0].is_undone)
        first = SaleRecord.objects.get(pk=self.first_record.pk)
        self.assertFalse(first.return_log[0].is_undone)

    def test_undo_earlier_entry_out_of_order(self):
        active = self.undo(self.sale, self.first_id)

        self.assertEqual(active.line_items[0].quantity, Decimal("8"))
        self.assertEqual(active.total_amount, Decimal("800"))
        self.assertEqual(self.stock(self.pen_batch), Decimal("42"))

    def test_undoing_every_entry_collapses_to_pristine(self):
        self.undo(self.sale, self.second_id)
        active = self.undo(self.sale, self.first_id)

        self.assertEqual(active.pk, self.sale.pk)
        self.assertEqual(active.status, SaleRecord.Status.COMPLETED_ORIGINAL)
        self.assertEqual(active.returned_items_log, [])
        self.assertFalse(SaleRecord.objects.adjusted().exists())
        self.assertEqual(SaleRecord.objects.return_transactions().count(), 2)
        self.assertEqual(self.stock(self.pen_batch), Decimal("40"))

    def test_undo_via_adjusted_id(self):
        active = ReturnService.undo_return(self.tenant, self.adjusted.pk, self.second_id)

        self.assertEqual(active.total_amount, Decimal("700"))

    def test_undo_twice_is_a_conflict(self):
        self.undo(self.sale, self.second_id)

        with self.assertRaises(exceptions.ConflictError):
            self.undo(self.sale, self.second_id)

    def test_unknown_entry_is_not_found(self):
        with self.assertRaises(exceptions.NotFoundError):
            self.undo(self.sale, "log-0-0-nobatch")

    def test_undo_with_sold_out_batch_proceeds_without_stock(self):
        self.sell([self.pen_line(45)])
        self.assertEqual(self.stock(self.pen_batch), Decimal("0"))

        with self.assertLogs("inventory.services", level="WARNING"):
            active = self.undo(self.sale, self.second_id)

        undone = next(entry for entry in active.return_log if entry.id == self.second_id)
        self.assertTrue(undone.is_undone)
        self.assertFalse(undone.stock_reversed)
        self.assertEqual(active.total_amount, Decimal("700"))
        self.assertEqual(self.stock(self.pen_batch), Decimal("0"))

    def test_return_after_undo_uses_remaining_quantity(self):
        active = self.undo(self.sale, self.first_id)

        _, adjusted = self.return_pens(self.sale, active, 8)

        self.assertEqual(adjusted.items, [])
        self.assertEqual(len(adjusted.return_log), 3)


class CreditReturnTestCase(ReturnFixtureMixin, TestCase):
    def setUp(self):
        self.make_return_fixtures()
        self.sale = self.sell(
            [self.pen_line(10)],
            paymentMethod="CREDIT",
            customerId=self.customer.pk,
            amountPaid="200",
        )

    def test_return_recomputes_outstanding(self):
        _, adjusted = self.return_pens(self.sale, self.sale, 3)

        self.assertEqual(adjusted.total_amount, Decimal("700"))
        self.assertEqual(adjusted.amount_paid_by_customer, Decimal("200"))
        self.assertEqual(adjusted.credit_outstanding_amount, Decimal("500"))
        self.assertEqual(adjusted.credit_payment_status, SaleRecord.CreditStatus.PARTIALLY_PAID)
        self.assertEqual(PaymentInstallment.objects.get().sale_id, self.sale.pk)

    def test_return_below_paid_amount_settles_bill(self):
        _, adjusted = self.return_pens(self.sale, self.sale, 9)

        self.assertEqual(adjusted.total_amount, Decimal("100"))
        self.assertEqual(adjusted.credit_outstanding_amount, Decimal("0"))
        self.assertEqual(adjusted.credit_payment_status, SaleRecord.CreditStatus.FULLY_PAID)

    def test_collapse_restores_pristine_ledger(self):
        _, adjusted = self.return_pens(self.sale, self.sale, 3)

        active = self.undo(self.sale, adjusted.return_log[0].id)

        self.assertEqual(active.pk, self.sale.pk)
        self.assertEqual(active.credit_outstanding_amount, Decimal("700"))
        self.assertEqual(active.credit_payment_status, SaleRecord.CreditStatus.PARTIALLY_PAID)


class KeptItemsTestCase(ReturnFixtureMixin, TestCase):
    def setUp(self):
        self.make_return_fixtures()
        self.sale = self.sell([self.pen_line(4), self.ink_line(2)])

    def test_lines_fully_returned_are_dropped(self):
        _, adjusted = self.return_items(
            self.sale,
            self.sale,
            [{"productId": self.ink.pk, "batchId": self.ink_batch.pk, "quantity": "2"}],
        )

        kept = kept_items(self.sale.line_items, adjusted.active_return_entries)

        self.assertEqual([item.product_id for item in kept], [self.pen.pk])

    def test_corrupt_log_is_a_consistency_error(self):
        _, adjusted = self.return_pens(self.sale, self.sale, 1)
        entries = adjusted.active_return_entries * 5

        with self.assertRaises(exceptions.ConsistencyError):
            kept_items(self.sale.line_items, entries)

    def test_lifecycle_load_finds_adjusted(self):
        _, adjusted = self.return_pens(self.sale, self.sale, 1)

        bill = BillLifecycle.load(self.tenant, adjusted.pk)

        self.assertEqual(bill.pristine.pk, self.sale.pk)
        self.assertEqual(bill.active.pk, adjusted.pk)


class ReturnActionTestCase(ReturnFixtureMixin, TestCase):
    def setUp(self):
        self.make_return_fixtures()
        self.sale = self.sell([self.pen_line(10)])

    def test_process_and_undo_actions(self):
        result = actions.process_return(
            self.user,
            {
                "pristineSaleId": self.sale.pk,
                "currentActiveSaleId": self.sale.pk,
                "items": [
                    {"productId": self.pen.pk, "batchId": self.pen_batch.pk, "quantity": "3"}
                ],
            },
        )

        self.assertTrue(result["success"])
        data = result["data"]
        self.assertEqual(data["returnTransaction"]["total_amount"], "270.00")
        self.assertEqual(data["adjustedSale"]["total_amount"], "700.00")

        entry_id = data["adjustedSale"]["returned_items_log"][0]["id"]
        undone = actions.undo_return(self.user, self.sale.pk, entry_id)

        self.assertTrue(undone["success"])
        self.assertEqual(undone["data"]["id"], self.sale.pk)

    def test_stale_return_action_reports_consistency_error(self):
        result = actions.process_return(
            self.user,
            {
                "pristineSaleId": self.sale.pk,
                "currentActiveSaleId": self.sale.pk + 999,
                "items": [
                    {"productId": self.pen.pk, "batchId": self.pen_batch.pk, "quantity": "1"}
                ],
            },
        )

        self.assertFalse(result["success"])
        self.assertEqual(result["code"], "consistency_error")

    def test_non_numeric_sale_id_is_a_validation_error(self):
        result = actions.undo_return(self.user, "abc", "log-1-1-1")

        self.assertFalse(result["success"])
        self.assertEqual(result["code"], "validation_error")
        self.assertIn("masterSaleId", result["error"])
