from datetime import date
from decimal import Decimal
from django.db import IntegrityError, OperationalError
from django.test import SimpleTestCase, TestCase
from rest_framework import serializers
from unittest.mock import Mock

from user.models import Company, CustomUser
from . import exceptions
from .decorators import service_action
from .money import clamp, is_zero, quantize, to_decimal
from .tenancy import Tenant, resolve_tenant
from .transactions import service_transaction
from .utility import StringProcessor, get_financial_year, paginate
from .validation import validate_input


class MoneyTestCase(SimpleTestCase):
    def test_quantize_rounds_half_up(self):
        self.assertEqual(quantize("2.345"), Decimal("2.35"))
        self.assertEqual(quantize("2.344"), Decimal("2.34"))
        self.assertEqual(quantize(None), Decimal("0.00"))

    def test_to_decimal_falls_back_to_default(self):
        self.assertEqual(to_decimal("abc"), Decimal("0"))
        self.assertIsNone(to_decimal("", default=None))
        self.assertEqual(to_decimal(1.5), Decimal("1.5"))

    def test_epsilon_comparisons(self):
        self.assertTrue(is_zero("0.009"))
        self.assertFalse(is_zero("0.01"))
        self.assertEqual(clamp("-3"), Decimal("0"))
        self.assertEqual(clamp("7", high=Decimal("5")), Decimal("5"))


class UtilityTestCase(SimpleTestCase):
    def test_financial_year_starts_in_april(self):
        self.assertEqual(get_financial_year(date(2024, 4, 1)), "24-25")
        self.assertEqual(get_financial_year("31/03/2024"), "23-24")

        with self.assertRaises(ValueError):
            get_financial_year("2024/13/45")

    def test_string_processor(self):
        self.assertEqual(StringProcessor("  sri   stores, ").toTitle(), "Sri Stores")
        self.assertEqual(StringProcessor(None).toUppercase(), "")

    def test_paginate_clamps_page(self):
        page = paginate(list(range(5)), page=9, per_page=2, serializer=str)

        self.assertEqual(page["page"], 3)
        self.assertEqual(page["items"], ["4"])
        self.assertEqual(page["total"], 5)
        self.assertEqual(page["total_pages"], 3)


class AmountSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=6, decimal_places=2)
    note = serializers.CharField()


class ValidationTestCase(SimpleTestCase):
    def test_errors_are_flattened_into_one_message(self):
        with self.assertRaises(exceptions.ValidationError) as ctx:
            validate_input(AmountSerializer, {"amount": "x"})

        self.assertIn("amount:", ctx.exception.message)
        self.assertIn("note:", ctx.exception.message)
        self.assertIn("amount", ctx.exception.context["errors"])

    def test_valid_input_is_returned(self):
        data = validate_input(AmountSerializer, {"amount": "1.50", "note": "ok"})

        self.assertEqual(data["amount"], Decimal("1.50"))


class TenantTestCase(TestCase):
    def setUp(self):
        self.company = Company.objects.create(name="Sri Stores")
        self.other = Company.objects.create(name="Other Mart")

    def test_scope_filters_by_company(self):
        scoped = Tenant(company_id=self.company.pk).scope(Company.objects.all(), field="pk")
        everything = Tenant(company_id=None).scope(Company.objects.all(), field="pk")

        self.assertEqual(list(scoped), [self.company])
        self.assertEqual(everything.count(), 2)

    def test_company_for_write(self):
        tenant = Tenant(company_id=self.company.pk)

        self.assertEqual(tenant.company_for_write(), self.company.pk)
        with self.assertRaises(exceptions.ValidationError):
            tenant.company_for_write(self.other.pk)
        with self.assertRaises(exceptions.ValidationError):
            Tenant(company_id=None).company_for_write()

    def test_check_owns(self):
        with self.assertRaises(exceptions.NotFoundError):
            Tenant(company_id=self.company.pk).check_owns(self.other.pk)
        Tenant(company_id=None).check_owns(self.other.pk)

    def test_resolve_tenant(self):
        cashier = CustomUser.objects.create_user(
            first_name="ravi", phone_number="9000000001", password="x", company=self.company
        )
        operator = CustomUser.objects.create_platform_operator(
            first_name="ops", phone_number="9000000002", password="x"
        )
        orphan = CustomUser.objects.create_user(
            first_name="lost", phone_number="9000000003", password="x"
        )

        self.assertEqual(resolve_tenant(cashier).company_id, self.company.pk)
        self.assertTrue(resolve_tenant(operator).is_platform_operator)
        with self.assertRaises(exceptions.ValidationError):
            resolve_tenant(orphan)
        with self.assertRaises(exceptions.ValidationError):
            resolve_tenant(None)
        self.assertEqual(list(CustomUser.objects.platform_operators()), [operator])
        self.assertEqual(list(CustomUser.objects.active().for_company(self.company.pk)), [cashier])


class ServiceTransactionTestCase(TestCase):
    def test_integrity_error_becomes_conflict(self):
        with self.assertRaises(exceptions.ConflictError) as ctx:
            with service_transaction(duplicate_message="Already exists."):
                raise IntegrityError("duplicate key")

        self.assertEqual(ctx.exception.message, "Already exists.")

    def test_other_database_errors_become_integration_errors(self):
        with self.assertLogs("base.transactions", level="ERROR"):
            with self.assertRaises(exceptions.IntegrationError):
                with service_transaction():
                    raise OperationalError("statement timeout")

    def test_service_errors_pass_through(self):
        with self.assertRaises(exceptions.NotFoundError):
            with service_transaction():
                raise exceptions.NotFoundError("missing")

    def test_work_is_rolled_back(self):
        with self.assertRaises(exceptions.ConflictError):
            with service_transaction():
                Company.objects.create(name="Rolled Back")
                raise exceptions.ConflictError("stop")

        self.assertFalse(Company.objects.filter(name="Rolled Back").exists())


class ServiceActionTestCase(TestCase):
    def setUp(self):
        self.company = Company.objects.create(name="Sri Stores")
        self.user = CustomUser.objects.create_user(
            first_name="ravi", phone_number="9000000001", password="x", company=self.company
        )

    def test_success_wraps_data(self):
        func = Mock(return_value={"id": 1})
        func.__name__ = "fetch"

        result = service_action(func)(self.user, 5, flag=True)

        self.assertEqual(result, {"success": True, "data": {"id": 1}})
        tenant = func.call_args.args[0]
        self.assertEqual(tenant.company_id, self.company.pk)
        func.assert_called_once_with(tenant, self.user, 5, flag=True)

    def test_service_error_becomes_failed_result(self):
        func = Mock(side_effect=exceptions.ConflictError("Out of stock"))
        func.__name__ = "sell"

        with self.assertLogs("base.decorators", level="WARNING"):
            result = service_action(func)(self.user)

        self.assertEqual(
            result, {"success": False, "error": "Out of stock", "code": "conflict"}
        )

    def test_unauthenticated_user_fails_validation(self):
        func = Mock()
        func.__name__ = "noop"

        result = service_action(func)(None)

        self.assertEqual(result["code"], "validation_error")
        func.assert_not_called()
