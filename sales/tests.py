from decimal import Decimal
from django.test import TestCase
from unittest.mock import patch

from base import exceptions
from base.tenancy import Tenant
from customer.models import Customer, PaymentInstallment
from discount.services import CampaignService
from inventory.models import Product, ProductBatch
from inventory.services import InventoryService
from setting.services import set_tax_rate
from user.models import Company, CustomUser
from . import actions
from .documents import ReturnedItemDetail, SaleLineItem, decode_items, decode_return_log
from .models import SaleRecord
from .returns import ReturnService
from .services import SaleService


def rule(name, value, type="percentage", low=None, high=None):
    return {
        "isEnabled": True,
        "name": name,
        "type": type,
        "value": str(value),
        "conditionMin": None if low is None else str(low),
        "conditionMax": None if high is None else str(high),
        "applyFixedOnce": False,
    }


class SaleFixtureMixin:
    """Company, cashier, customer and stocked products shared by sales tests"""

    def make_fixtures(self):
        self.company = Company.objects.create(name="Sri Stores", bill_prefix="sri")
        self.user = CustomUser.objects.create_user(
            first_name="Ravi",
            phone_number="9876543210",
            password="pass",
            company=self.company,
        )
        self.tenant = Tenant(company_id=self.company.pk, user_id=self.user.pk)
        self.customer = Customer.objects.create(
            company=self.company, name="Lakshmi", phone_number="9123456780"
        )
        self.pen = Product.objects.create(
            company=self.company,
            name="pen",
            selling_price=Decimal("100"),
            cost_price=Decimal("60"),
        )
        self.pen_batch = InventoryService.receive(self.pen, "P1", Decimal("50"), Decimal("60"))
        self.ink = Product.objects.create(
            company=self.company,
            name="ink",
            selling_price=Decimal("20"),
            cost_price=Decimal("12"),
            tax_rate_override=Decimal("5"),
        )
        self.ink_batch = InventoryService.receive(self.ink, "I1", Decimal("100"), Decimal("12"))
        self.wrap = Product.objects.create(
            company=self.company,
            name="gift wrap",
            selling_price=Decimal("10"),
            is_service=True,
        )

    def make_campaign(self, **kwargs):
        data = {"name": "store offers", "isDefault": True}
        data.update(kwargs)
        return CampaignService.save_campaign(self.tenant, data, user=self.user)

    def pen_line(self, quantity, **kwargs):
        line = {"productId": self.pen.pk, "batchId": self.pen_batch.pk, "quantity": str(quantity)}
        line.update(kwargs)
        return line

    def ink_line(self, quantity, **kwargs):
        line = {"productId": self.ink.pk, "batchId": self.ink_batch.pk, "quantity": str(quantity)}
        line.update(kwargs)
        return line

    def sell(self, items, **kwargs):
        data = {"paymentMethod": "CASH", "items": items}
        data.update(kwargs)
        return SaleService.create_sale(self.tenant, data, user=self.user)

    def stock(self, batch):
        return ProductBatch.objects.get(pk=batch.pk).quantity


class CreateSaleTestCase(SaleFixtureMixin, TestCase):
    def setUp(self):
        self.make_fixtures()

    def test_line_value_campaign_example(self):
        self.make_campaign(defaultRules={"line_item_value": rule("Value 10%", 10)})

        sale = self.sell([self.pen_line(10)])

        self.assertEqual(sale.status, SaleRecord.Status.COMPLETED_ORIGINAL)
        self.assertEqual(sale.subtotal_original, Decimal("1000"))
        self.assertEqual(sale.total_item_discount_amount, Decimal("100"))
        self.assertEqual(sale.net_subtotal, Decimal("900"))
        self.assertEqual(sale.total_amount, Decimal("900"))
        item = sale.line_items[0]
        self.assertEqual(item.effective_price_paid_per_unit, Decimal("90"))
        self.assertEqual(item.cost_price_at_sale, Decimal("60"))
        self.assertEqual(len(sale.applied_discount_summary), 1)
        self.assertEqual(sale.campaign_snapshot["name"], "store offers")
        self.assertEqual(self.stock(self.pen_batch), Decimal("40"))

    def test_bill_number_is_generated_per_company(self):
        first = self.sell([self.pen_line(1)])
        second = self.sell([self.pen_line(1)])

        self.assertTrue(first.bill_number.startswith("SRI-"))
        self.assertTrue(first.bill_number.endswith("-0001"))
        self.assertTrue(second.bill_number.endswith("-0002"))

    def test_insufficient_stock_rolls_back_everything(self):
        with self.assertRaises(exceptions.ConflictError):
            self.sell([self.ink_line(5), self.pen_line(51)])

        self.assertEqual(self.stock(self.ink_batch), Decimal("100"))
        self.assertEqual(self.stock(self.pen_batch), Decimal("50"))
        self.assertFalse(SaleRecord.objects.exists())

    def test_unknown_batch_is_not_found(self):
        with self.assertRaises(exceptions.NotFoundError):
            self.sell([self.pen_line(1, batchId=self.ink_batch.pk)])

    def test_duplicate_lines_are_rejected(self):
        with self.assertRaises(exceptions.ValidationError):
            self.sell([self.pen_line(1), self.pen_line(2)])

    def test_duplicate_bill_number_is_a_conflict(self):
        self.sell([self.pen_line(1)], billNumber="B-100")

        with self.assertRaises(exceptions.ConflictError):
            self.sell([self.pen_line(1)], billNumber="B-100")
        self.assertEqual(self.stock(self.pen_batch), Decimal("49"))

    def test_cash_sale_change_due(self):
        sale = self.sell([self.pen_line(2)], amountPaid="500")

        self.assertEqual(sale.amount_paid_by_customer, Decimal("500"))
        self.assertEqual(sale.change_due_to_customer, Decimal("300"))
        self.assertFalse(sale.is_credit_sale)
        self.assertIsNone(sale.credit_payment_status)

    def test_cash_underpayment_is_rejected(self):
        with self.assertRaises(exceptions.ValidationError):
            self.sell([self.pen_line(2)], amountPaid="150")

    def test_credit_sale_with_initial_payment(self):
        sale = self.sell(
            [self.pen_line(10)],
            paymentMethod="CREDIT",
            customerId=self.customer.pk,
            amountPaid="200",
        )

        self.assertTrue(sale.is_credit_sale)
        self.assertEqual(sale.credit_payment_status, SaleRecord.CreditStatus.PARTIALLY_PAID)
        self.assertEqual(sale.credit_outstanding_amount, Decimal("800"))
        installment = PaymentInstallment.objects.get(sale=sale)
        self.assertEqual(installment.amount_paid, Decimal("200"))
        self.assertEqual(installment.method, PaymentInstallment.Method.CREDIT)
        self.assertEqual(installment.notes, "Initial payment made during credit sale.")

    def test_credit_sale_without_payment_is_pending(self):
        sale = self.sell([self.pen_line(1)], paymentMethod="CREDIT", customerId=self.customer.pk)

        self.assertEqual(sale.credit_payment_status, SaleRecord.CreditStatus.PENDING)
        self.assertEqual(sale.credit_outstanding_amount, Decimal("100"))
        self.assertFalse(PaymentInstallment.objects.exists())

    def test_credit_sale_needs_customer(self):
        with self.assertRaises(exceptions.ValidationError):
            self.sell([self.pen_line(1)], paymentMethod="CREDIT")

    def test_tax_uses_product_override_or_global_rate(self):
        set_tax_rate(Decimal("10"))

        sale = self.sell([self.pen_line(2), self.ink_line(5)])

        self.assertEqual(sale.tax_rate, Decimal("10"))
        self.assertEqual(sale.tax_amount, Decimal("25"))
        self.assertEqual(sale.total_amount, Decimal("325"))
        rates = {item.product_id: item.tax_rate for item in sale.line_items}
        self.assertEqual(rates[self.ink.pk], Decimal("5"))

    def test_cart_discount_is_prorated_before_tax(self):
        set_tax_rate(Decimal("10"))
        self.make_campaign(globalCartPriceRule=rule("Cart 10%", 10))

        sale = self.sell([self.pen_line(10)])

        self.assertEqual(sale.total_cart_discount_amount, Decimal("100"))
        self.assertEqual(sale.tax_amount, Decimal("90"))
        self.assertEqual(sale.total_amount, Decimal("990"))

    def test_explicit_null_campaign_skips_default(self):
        self.make_campaign(defaultRules={"line_item_value": rule("Value 10%", 10)})

        sale = self.sell([self.pen_line(1)], campaignId=None)

        self.assertIsNone(sale.campaign)
        self.assertEqual(sale.total_amount, Decimal("100"))

    def test_custom_price_and_discount(self):
        sale = self.sell(
            [self.pen_line(2, unitPrice="80", customDiscountType="fixed", customDiscountValue="5")]
        )

        self.assertEqual(sale.subtotal_original, Decimal("160"))
        self.assertEqual(sale.total_amount, Decimal("150"))
        self.assertEqual(sale.applied_discount_summary[0]["ruleType"], "custom_item_discount")

    def test_service_products_never_touch_stock(self):
        sale = self.sell([{"productId": self.wrap.pk, "quantity": "3"}])

        self.assertEqual(sale.total_amount, Decimal("30"))
        self.assertIsNone(sale.line_items[0].batch_id)
        self.assertFalse(ProductBatch.objects.filter(product=self.wrap).exists())

    def test_platform_operator_must_name_company(self):
        operator = Tenant(company_id=None)
        data = {"paymentMethod": "CASH", "items": [self.pen_line(1)]}

        with self.assertRaises(exceptions.ValidationError):
            SaleService.create_sale(operator, data)

        sale = SaleService.create_sale(operator, dict(data, companyId=self.company.pk))
        self.assertEqual(sale.company, self.company)

    def test_other_company_products_are_not_found(self):
        other = Company.objects.create(name="Other Mart")
        tenant = Tenant(company_id=other.pk)

        with self.assertRaises(exceptions.NotFoundError):
            SaleService.create_sale(
                tenant, {"paymentMethod": "CASH", "items": [self.pen_line(1)]}
            )

    @patch("sales.services.InventoryService.decrement_for_sale")
    def test_database_failure_becomes_integration_error(self, mock_decrement):
        from django.db import OperationalError

        mock_decrement.side_effect = OperationalError("canceling statement due to statement timeout")

        with self.assertRaises(exceptions.IntegrationError):
            self.sell([self.pen_line(1)])
        self.assertFalse(SaleRecord.objects.exists())


class SaleQueryTestCase(SaleFixtureMixin, TestCase):
    def setUp(self):
        self.make_fixtures()

    def test_sale_context_resolves_adjusted_state(self):
        sale = self.sell([self.pen_line(5)])
        ReturnService.process_return(
            self.tenant,
            {
                "pristineSaleId": sale.pk,
                "currentActiveSaleId": sale.pk,
                "items": [{"productId": self.pen.pk, "batchId": self.pen_batch.pk, "quantity": "1"}],
            },
        )

        context = SaleService.get_sale_context(self.tenant, sale.bill_number)

        self.assertEqual(context["pristine"].pk, sale.pk)
        self.assertEqual(context["active"].status, SaleRecord.Status.ADJUSTED_ACTIVE)
        self.assertEqual(context["active"].bill_number, f"{sale.bill_number}-ADJ")

    def test_sale_context_unknown_bill(self):
        with self.assertRaises(exceptions.NotFoundError):
            SaleService.get_sale_context(self.tenant, "NOPE")

    def test_list_sales_pages_originals_only(self):
        sales = [self.sell([self.pen_line(1)]) for _ in range(3)]
        ReturnService.process_return(
            self.tenant,
            {
                "pristineSaleId": sales[0].pk,
                "currentActiveSaleId": sales[0].pk,
                "items": [{"productId": self.pen.pk, "batchId": self.pen_batch.pk, "quantity": "1"}],
            },
        )

        page = SaleService.list_sales(self.tenant, page=1, page_size=2)

        self.assertEqual(page["total"], 3)
        self.assertEqual(page["total_pages"], 2)
        self.assertEqual(len(page["items"]), 2)
        last = SaleService.list_sales(self.tenant, page=2, page_size=2)["items"][0]
        self.assertEqual(last.pk, sales[0].pk)
        self.assertTrue(last.has_returns)

    def test_list_credit_sales_filters_by_active_status(self):
        paid = self.sell(
            [self.pen_line(1)], paymentMethod="CREDIT", customerId=self.customer.pk, amountPaid="100"
        )
        open_sale = self.sell([self.pen_line(2)], paymentMethod="CREDIT", customerId=self.customer.pk)
        self.sell([self.pen_line(1)])

        open_ids = [p.pk for p, _ in SaleService.list_credit_sales(self.tenant, status="open")]
        paid_ids = [p.pk for p, _ in SaleService.list_credit_sales(self.tenant, status="paid")]
        all_ids = [p.pk for p, _ in SaleService.list_credit_sales(self.tenant, status="all")]

        self.assertEqual(open_ids, [open_sale.pk])
        self.assertEqual(paid_ids, [paid.pk])
        self.assertEqual(set(all_ids), {paid.pk, open_sale.pk})

    def test_returned_credit_sale_is_listed_by_adjusted_status(self):
        sale = self.sell(
            [self.pen_line(2)], paymentMethod="CREDIT", customerId=self.customer.pk, amountPaid="100"
        )
        ReturnService.process_return(
            self.tenant,
            {
                "pristineSaleId": sale.pk,
                "currentActiveSaleId": sale.pk,
                "items": [{"productId": self.pen.pk, "batchId": self.pen_batch.pk, "quantity": "1"}],
            },
        )

        paid = SaleService.list_credit_sales(self.tenant, status="paid")

        self.assertEqual(len(paid), 1)
        pristine, active = paid[0]
        self.assertEqual(pristine.pk, sale.pk)
        self.assertEqual(active.credit_payment_status, SaleRecord.CreditStatus.FULLY_PAID)

    def test_credit_sale_filters_are_validated(self):
        for filters in (
            {"date_from": "not-a-date"},
            {"date_to": "2024-13-40"},
            {"date_from": "2024-05-02", "date_to": "2024-05-01"},
            {"customer_id": "abc"},
            {"status": "overdue"},
        ):
            with self.subTest(filters=filters):
                with self.assertRaises(exceptions.ValidationError):
                    SaleService.list_credit_sales(self.tenant, **filters)

    def test_list_sales_rejects_bad_page_size(self):
        with self.assertRaises(exceptions.ValidationError):
            SaleService.list_sales(self.tenant, page_size="ten")


class SaleActionTestCase(SaleFixtureMixin, TestCase):
    def setUp(self):
        self.make_fixtures()

    def test_create_sale_action(self):
        result = actions.create_sale(
            self.user, {"paymentMethod": "UPI", "items": [self.pen_line(1)]}
        )

        self.assertTrue(result["success"])
        self.assertEqual(result["data"]["payment_method"], "UPI")
        self.assertEqual(result["data"]["installments"], [])

    def test_create_sale_action_reports_conflict(self):
        result = actions.create_sale(
            self.user, {"paymentMethod": "CASH", "items": [self.pen_line(500)]}
        )

        self.assertFalse(result["success"])
        self.assertEqual(result["code"], "conflict")
        self.assertIn("Insufficient stock", result["error"])

    def test_list_sales_action(self):
        self.sell([self.pen_line(1)])

        result = actions.list_sales(self.user, page=1)

        self.assertEqual(result["data"]["total"], 1)
        self.assertFalse(result["data"]["items"][0]["has_returns"])


class SaleDocumentTestCase(TestCase):
    def test_items_decoder_repairs_bad_entries(self):
        stored = [
            {"productId": 1, "name": "Pen", "quantity": "2", "price": "10"},
            {"name": "no product id"},
            "garbage",
        ]

        with self.assertLogs("sales.documents", level="WARNING"):
            items = decode_items(stored)

        self.assertEqual(len(items), 1)
        self.assertEqual(items[0].price_at_sale, Decimal("10"))
        self.assertEqual(items[0].units["baseUnit"], "unknown_error_unit")

    def test_return_log_decoder_recomputes_missing_total(self):
        stored = [
            {
                "id": "log-1-1-nobatch",
                "itemId": 1,
                "returnedQuantity": "3",
                "refundAmountPerUnit": "90",
                "returnTransactionId": 1,
            }
        ]

        with self.assertLogs("sales.documents", level="WARNING"):
            entries = decode_return_log(stored)

        self.assertEqual(entries[0].total_refund_for_this_return_entry, Decimal("270"))
        self.assertFalse(entries[0].is_undone)

    def test_non_list_documents_read_as_empty(self):
        with self.assertLogs("sales.documents", level="WARNING"):
            self.assertEqual(decode_items({"productId": 1}), [])

    def test_line_item_round_trip_keeps_identity(self):
        item = SaleLineItem(
            product_id=4,
            name="Pen",
            quantity=Decimal("2"),
            price_at_sale=Decimal("10"),
            units={"baseUnit": "pcs", "derivedUnits": []},
            batch_id=9,
        )

        decoded = SaleLineItem.from_dict(item.to_dict())

        self.assertEqual(decoded.key, (4, 9))
        self.assertEqual(decoded.line_id, "4:9")

    def test_undone_entry_keeps_refund(self):
        entry = ReturnedItemDetail(
            id="log-1-4-nobatch",
            item_id=4,
            name="Pen",
            returned_quantity=Decimal("1"),
            refund_amount_per_unit=Decimal("90"),
            total_refund_for_this_return_entry=Decimal("90"),
            return_transaction_id=1,
            return_date="2024-05-01T10:00:00+00:00",
        )

        undone = entry.undone(user_id=3, stock_reversed=True)

        self.assertTrue(undone.is_undone)
        self.assertEqual(undone.undone_by_user_id, 3)
        self.assertEqual(undone.total_refund_for_this_return_entry, Decimal("90"))
        self.assertFalse(entry.is_undone)
