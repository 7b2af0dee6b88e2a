from decimal import Decimal
from django.test import TestCase

from base import exceptions
from base.tenancy import Tenant
from sales.models import SaleRecord
from sales.returns import ReturnService
from sales.tests import SaleFixtureMixin
from user.models import Company
from . import actions
from .ledger import CreditLedger
from .models import Customer, PaymentInstallment


class CreditLedgerTestCase(SaleFixtureMixin, TestCase):
    def setUp(self):
        self.make_fixtures()
        self.sale = self.sell(
            [self.pen_line(10)],
            paymentMethod="CREDIT",
            customerId=self.customer.pk,
            amountPaid="200",
        )

    def pay(self, amount, sale=None, **kwargs):
        data = {"saleId": (sale or self.sale).pk, "amount": str(amount)}
        data.update(kwargs)
        return CreditLedger.record_payment(self.tenant, data, user=self.user)

    def test_payment_reduces_outstanding(self):
        active = self.pay(300, method="UPI", notes="second visit")

        self.assertEqual(active.amount_paid_by_customer, Decimal("500"))
        self.assertEqual(active.credit_outstanding_amount, Decimal("500"))
        self.assertEqual(active.credit_payment_status, SaleRecord.CreditStatus.PARTIALLY_PAID)
        self.assertIsNotNone(active.credit_last_payment_date)
        installment = PaymentInstallment.objects.latest("id")
        self.assertEqual(installment.method, PaymentInstallment.Method.UPI)
        self.assertEqual(installment.recorded_by, self.user)

    def test_paid_plus_outstanding_equals_total(self):
        for amount in ("150", "49.99", "0.01"):
            active = self.pay(amount)
            self.assertEqual(
                active.amount_paid_by_customer + active.credit_outstanding_amount,
                active.total_amount,
            )

    def test_final_payment_settles_bill(self):
        active = self.pay(800)

        self.assertEqual(active.credit_outstanding_amount, Decimal("0"))
        self.assertEqual(active.credit_payment_status, SaleRecord.CreditStatus.FULLY_PAID)

        with self.assertRaises(exceptions.ConflictError):
            self.pay(1)

    def test_overpayment_is_rejected(self):
        with self.assertRaises(exceptions.ConflictError):
            self.pay("800.50")

        self.assertEqual(PaymentInstallment.objects.count(), 1)

    def test_non_positive_amount_is_rejected(self):
        with self.assertRaises(exceptions.ValidationError):
            self.pay(0)

    def test_cash_sale_takes_no_payments(self):
        cash_sale = self.sell([self.pen_line(1)])

        with self.assertRaises(exceptions.ConflictError):
            self.pay(10, sale=cash_sale)

    def test_unknown_sale_is_not_found(self):
        with self.assertRaises(exceptions.NotFoundError):
            self.pay(10, sale=SaleRecord(pk=self.sale.pk + 999))

    def test_delete_only_installment_returns_to_pending(self):
        installment = PaymentInstallment.objects.get(sale=self.sale)

        active = CreditLedger.delete_installment(self.tenant, installment.pk, user=self.user)

        self.assertEqual(active.amount_paid_by_customer, Decimal("0"))
        self.assertEqual(active.credit_outstanding_amount, Decimal("1000"))
        self.assertEqual(active.credit_payment_status, SaleRecord.CreditStatus.PENDING)
        self.assertIsNone(active.credit_last_payment_date)

    def test_delete_unknown_installment(self):
        with self.assertRaises(exceptions.NotFoundError):
            CreditLedger.delete_installment(self.tenant, 999999)

    def test_non_numeric_installment_id_is_a_validation_error(self):
        result = actions.delete_installment(self.user, "first")

        self.assertFalse(result["success"])
        self.assertEqual(result["code"], "validation_error")
        self.assertEqual(PaymentInstallment.objects.filter(sale=self.sale).count(), 1)

    def test_other_company_cannot_delete_installment(self):
        other = Company.objects.create(name="Other Mart")
        installment = PaymentInstallment.objects.get(sale=self.sale)

        with self.assertRaises(exceptions.NotFoundError):
            CreditLedger.delete_installment(Tenant(company_id=other.pk), installment.pk)
        self.assertTrue(PaymentInstallment.objects.filter(pk=installment.pk).exists())

    def test_payment_after_return_updates_adjusted_record(self):
        _, adjusted = ReturnService.process_return(
            self.tenant,
            {
                "pristineSaleId": self.sale.pk,
                "currentActiveSaleId": self.sale.pk,
                "items": [
                    {"productId": self.pen.pk, "batchId": self.pen_batch.pk, "quantity": "5"}
                ],
            },
        )
        self.assertEqual(adjusted.credit_outstanding_amount, Decimal("300"))

        active = self.pay(300, sale=adjusted)

        self.assertEqual(active.pk, adjusted.pk)
        self.assertEqual(active.credit_payment_status, SaleRecord.CreditStatus.FULLY_PAID)
        self.assertEqual(PaymentInstallment.objects.filter(sale=self.sale).count(), 2)
        pristine = SaleRecord.objects.get(pk=self.sale.pk)
        # the pristine record keeps its original ledger
        self.assertEqual(pristine.credit_outstanding_amount, Decimal("800"))

    def test_recompute_without_target_uses_active_record(self):
        PaymentInstallment.objects.create(sale=self.sale, amount_paid=Decimal("100"))

        active = CreditLedger.recompute(self.sale)

        self.assertEqual(active.amount_paid_by_customer, Decimal("300"))
        self.assertEqual(
            SaleRecord.objects.get(pk=self.sale.pk).credit_outstanding_amount, Decimal("700")
        )


class CustomerCreditSummaryTestCase(SaleFixtureMixin, TestCase):
    def setUp(self):
        self.make_fixtures()

    def test_summary_totals_open_sales(self):
        self.sell([self.pen_line(2)], paymentMethod="CREDIT", customerId=self.customer.pk)
        self.sell(
            [self.pen_line(3)],
            paymentMethod="CREDIT",
            customerId=self.customer.pk,
            amountPaid="100",
        )
        self.sell(
            [self.pen_line(1)],
            paymentMethod="CREDIT",
            customerId=self.customer.pk,
            amountPaid="100",
        )

        summary = CreditLedger.customer_credit_summary(self.tenant, self.customer.pk)

        self.assertEqual(summary["totalOutstanding"], Decimal("400"))
        self.assertEqual(summary["openSales"], 2)
        self.assertEqual(summary["name"], "Lakshmi")

    def test_summary_action(self):
        result = actions.customer_credit_summary(self.user, self.customer.pk)

        self.assertTrue(result["success"])
        self.assertEqual(result["data"]["totalOutstanding"], "0.00")

    def test_unknown_customer(self):
        result = actions.customer_credit_summary(self.user, 999999)

        self.assertFalse(result["success"])
        self.assertEqual(result["code"], "not_found")

    def test_non_numeric_customer_id(self):
        result = actions.customer_credit_summary(self.user, "lakshmi")

        self.assertFalse(result["success"])
        self.assertEqual(result["code"], "validation_error")


class CustomerModelTestCase(TestCase):
    def setUp(self):
        self.company = Company.objects.create(name="Sri Stores")

    def test_save_normalizes_fields(self):
        customer = Customer.objects.create(
            company=self.company,
            name="  ravi   kumar ",
            phone_number="9000000001",
            email="",
        )

        self.assertEqual(customer.name, "Ravi Kumar")
        self.assertIsNone(customer.email)

    def test_soft_deleted_customers_are_hidden(self):
        customer = Customer.objects.create(
            company=self.company, name="Ravi", phone_number="9000000002"
        )

        customer.delete()

        self.assertFalse(Customer.objects.filter(pk=customer.pk).exists())
        self.assertTrue(Customer.all_objects.filter(pk=customer.pk).exists())
