from decimal import Decimal
from django.test import TestCase
from django.urls import reverse
from unittest.mock import patch
import json

from sales.tests import SaleFixtureMixin


class ApiViewTestCase(SaleFixtureMixin, TestCase):
    def setUp(self):
        self.make_fixtures()
        self.client.force_login(self.user)

    def post(self, name, body):
        return self.client.post(
            reverse(f"api:{name}"), data=json.dumps(body), content_type="application/json"
        )

    def test_requires_authentication(self):
        self.client.logout()

        response = self.post("create_sale", {})

        self.assertEqual(response.status_code, 401)
        self.assertFalse(response.json()["success"])

    def test_get_is_not_allowed(self):
        response = self.client.get(reverse("api:list_sales"))

        self.assertEqual(response.status_code, 405)

    def test_malformed_json_is_rejected(self):
        response = self.client.post(
            reverse("api:create_sale"), data="{not json", content_type="application/json"
        )

        self.assertEqual(response.status_code, 400)
        self.assertIn("Invalid JSON", response.json()["error"])

    def test_non_object_body_is_rejected(self):
        response = self.post("create_sale", [1, 2])

        self.assertEqual(response.status_code, 400)

    def test_create_sale(self):
        response = self.post(
            "create_sale", {"paymentMethod": "CASH", "amountPaid": "250", "items": [self.pen_line(2)]}
        )

        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(Decimal(data["total_amount"]), Decimal("200"))
        self.assertEqual(Decimal(data["change_due_to_customer"]), Decimal("50"))

    def test_stock_conflict_maps_to_409(self):
        response = self.post(
            "create_sale", {"paymentMethod": "CASH", "items": [self.pen_line(51)]}
        )

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["code"], "conflict")

    def test_validation_error_maps_to_400(self):
        response = self.post("create_sale", {"paymentMethod": "BARTER", "items": []})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "validation_error")

    def test_unknown_bill_maps_to_404(self):
        response = self.post("sale_context", {"billNumber": "NOPE"})

        self.assertEqual(response.status_code, 404)

    def test_non_numeric_ids_map_to_400(self):
        undo = self.post("undo_return", {"masterSaleId": "abc", "logEntryId": "log-1-1-1"})
        summary = self.post("customer_credit", {"customerId": "lakshmi"})
        credit = self.post("credit_sales", {"dateFrom": "yesterday"})

        for response in (undo, summary, credit):
            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.json()["code"], "validation_error")

    def test_return_and_undo_round_trip(self):
        sale = self.sell([self.pen_line(4)])

        applied = self.post(
            "apply_return",
            {
                "pristineSaleId": sale.pk,
                "currentActiveSaleId": sale.pk,
                "items": [{"productId": self.pen.pk, "batchId": self.pen_batch.pk, "quantity": 1}],
            },
        )
        self.assertEqual(applied.status_code, 200)
        adjusted = applied.json()["data"]["adjustedSale"]
        self.assertEqual(Decimal(adjusted["total_amount"]), Decimal("300"))

        undone = self.post(
            "undo_return",
            {"masterSaleId": sale.pk, "logEntryId": adjusted["returned_items_log"][0]["id"]},
        )
        self.assertEqual(undone.status_code, 200)
        self.assertEqual(undone.json()["data"]["status"], "COMPLETED_ORIGINAL")

    def test_credit_payment_flow(self):
        sale = self.sell([self.pen_line(3)], paymentMethod="CREDIT", customerId=self.customer.pk)

        paid = self.post("record_payment", {"saleId": sale.pk, "amount": "100", "method": "CASH"})
        summary = self.post("customer_credit", {"customerId": self.customer.pk})

        self.assertEqual(paid.status_code, 200)
        self.assertEqual(paid.json()["data"]["credit_payment_status"], "PARTIALLY_PAID")
        self.assertEqual(summary.json()["data"]["totalOutstanding"], "200.00")

    @patch("api.views.sale_actions.list_sales")
    def test_list_sales_passes_paging(self, mock_list):
        mock_list.return_value = {"success": True, "data": {"items": []}}

        response = self.post("list_sales", {"page": 2, "pageSize": 5, "search": "SRI"})

        self.assertEqual(response.status_code, 200)
        mock_list.assert_called_once_with(self.user, page=2, page_size=5, search="SRI")
