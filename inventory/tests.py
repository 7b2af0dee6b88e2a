from decimal import Decimal
from django.db import transaction
from django.test import SimpleTestCase, TestCase

from base import exceptions
from user.models import Company
from .models import InventoryLog, Product, ProductBatch, RETURNED_STOCK_BATCH
from .services import InventoryService
from .units import UNKNOWN_UNIT, UnitDefinition, format_quantity, validate_unit_definition

DOZEN = {
    "baseUnit": "pcs",
    "derivedUnits": [
        {"name": "dozen", "conversionFactor": 12},
        {"name": "box", "conversionFactor": 144, "threshold": 100},
    ],
}


class UnitDefinitionTestCase(SimpleTestCase):
    def test_format_uses_largest_applicable_unit(self):
        self.assertEqual(format_quantity(24, DOZEN), "2 dozen")
        self.assertEqual(format_quantity(144, DOZEN), "1 box")
        self.assertEqual(format_quantity(18, DOZEN), "1.5 dozen")

    def test_threshold_lowers_the_switch_point(self):
        self.assertEqual(format_quantity(108, DOZEN), "0.75 box")

    def test_below_every_unit_shows_base_unit(self):
        self.assertEqual(format_quantity(Decimal("5.000"), DOZEN), "5 pcs")

    def test_malformed_definition_is_repaired(self):
        with self.assertLogs("inventory.units", level="WARNING"):
            units = UnitDefinition.from_stored({"derivedUnits": []})

        self.assertEqual(units.base_unit, UNKNOWN_UNIT)
        self.assertEqual(units.derived_units, [])

    def test_bad_derived_unit_is_dropped(self):
        raw = {
            "baseUnit": "kg",
            "derivedUnits": [{"name": "quintal"}, {"name": "ton", "conversionFactor": 1000}],
        }

        with self.assertLogs("inventory.units", level="WARNING"):
            units = UnitDefinition.from_stored(raw)

        self.assertEqual([unit.name for unit in units.derived_units], ["ton"])
        self.assertEqual(units.to_dict()["derivedUnits"][0]["conversionFactor"], 1000.0)

    def test_validation_reports_every_problem(self):
        errors = validate_unit_definition(
            {"derivedUnits": [{"name": "box", "conversionFactor": 0}, {}]}
        )

        self.assertEqual(len(errors), 3)
        self.assertEqual(validate_unit_definition(DOZEN), [])
        self.assertEqual(validate_unit_definition("pcs"), ["Unit definition must be an object."])


class InventoryServiceTestCase(TestCase):
    def setUp(self):
        self.company = Company.objects.create(name="Sri Stores")
        self.product = Product.objects.create(
            company=self.company, name="pen", selling_price=Decimal("100"), cost_price=Decimal("60")
        )
        self.batch = InventoryService.receive(self.product, "P1", Decimal("10"), Decimal("60"))

    def test_receive_logs_initial_stock(self):
        log = InventoryLog.objects.get(batch=self.batch)

        self.assertEqual(log.transaction_type, InventoryLog.TransactionTypes.INITIAL)
        self.assertEqual(log.new_quantity, Decimal("10"))
        self.assertEqual(self.product.stock, Decimal("10"))

    def test_decrement_for_sale(self):
        with transaction.atomic():
            InventoryService.decrement_for_sale(self.batch.pk, Decimal("4"), reference="SRI-1")

        self.batch.refresh_from_db()
        self.assertEqual(self.batch.quantity, Decimal("6"))
        log = InventoryLog.objects.get(reference="SRI-1")
        self.assertEqual(log.quantity_change, Decimal("-4"))
        self.assertEqual(log.new_quantity, Decimal("6"))
        self.assertEqual(InventoryLog.objects.net_change_for_batch(self.batch), Decimal("6"))

    def test_decrement_beyond_stock_is_a_conflict(self):
        with self.assertRaises(exceptions.ConflictError):
            InventoryService.decrement_for_sale(self.batch.pk, Decimal("11"))

        self.batch.refresh_from_db()
        self.assertEqual(self.batch.quantity, Decimal("10"))

    def test_decrement_unknown_batch(self):
        with self.assertRaises(exceptions.NotFoundError):
            InventoryService.decrement_for_sale(999999, Decimal("1"))

    def test_restock_to_origin_batch(self):
        batch_id = InventoryService.restock_return(self.product.pk, self.batch.pk, Decimal("2"))

        self.assertEqual(batch_id, self.batch.pk)
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.quantity, Decimal("12"))

    def test_restock_without_batch_uses_returned_stock(self):
        first = InventoryService.restock_return(
            self.product.pk, None, Decimal("2"), cost_price=Decimal("55")
        )
        second = InventoryService.restock_return(self.product.pk, None, Decimal("1"))

        self.assertEqual(first, second)
        returned = ProductBatch.objects.get(pk=first)
        self.assertEqual(returned.batch_number, RETURNED_STOCK_BATCH)
        self.assertEqual(returned.quantity, Decimal("3"))
        self.assertEqual(returned.cost_price, Decimal("55"))

    def test_restock_for_soft_deleted_product(self):
        self.product.delete()

        batch_id = InventoryService.restock_return(self.product.pk, self.batch.pk, Decimal("1"))

        self.assertEqual(batch_id, self.batch.pk)

    def test_service_products_are_not_restocked(self):
        service = Product.objects.create(company=self.company, name="wrap", is_service=True)

        self.assertIsNone(InventoryService.restock_return(service.pk, None, Decimal("1")))
        self.assertFalse(ProductBatch.objects.filter(product=service).exists())
        self.assertEqual(service.stock, Decimal("0"))

    def test_reverse_return(self):
        self.assertTrue(InventoryService.reverse_return(self.batch.pk, Decimal("3"), "UNDO-1"))

        self.batch.refresh_from_db()
        self.assertEqual(self.batch.quantity, Decimal("7"))
        self.assertTrue(
            InventoryLog.objects.filter(
                transaction_type=InventoryLog.TransactionTypes.RETURN_UNDO, reference="UNDO-1"
            ).exists()
        )

    def test_reverse_return_without_stock_is_lenient(self):
        with self.assertLogs("inventory.services", level="WARNING"):
            reversed_ = InventoryService.reverse_return(self.batch.pk, Decimal("11"), "UNDO-2")

        self.assertFalse(reversed_)
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.quantity, Decimal("10"))
