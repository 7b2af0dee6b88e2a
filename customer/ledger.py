"""
Credit ledger for credit sales.

Installments always hang off the pristine original. Paid amount, outstanding
balance, status and last payment date are re-derived from the installment
sum every time and written to the bill's active record, so the ledger holds
no matter how many return and undo cycles have happened.
"""

from django.db.models import Max, Sum
from django.db.models.functions import Coalesce
from decimal import Decimal
import logging

from base import exceptions
from base.money import ZERO, epsilon, quantize
from base.transactions import service_transaction
from base.validation import validate_input
from .models import Customer, PaymentInstallment
from .serializers import (
    CustomerReferenceSerializer,
    InstallmentReferenceSerializer,
    PaymentInputSerializer,
)

logger = logging.getLogger(__name__)

LEDGER_FIELDS = [
    "amount_paid_by_customer",
    "credit_outstanding_amount",
    "credit_payment_status",
    "credit_last_payment_date",
    "updated_at",
]


class CreditLedger:
    """Service class for credit installments"""

    @staticmethod
    def installment_totals(pristine):
        """(sum of installments, latest payment date) for a pristine sale"""
        totals = PaymentInstallment.objects.filter(sale=pristine).aggregate(
            paid=Coalesce(Sum("amount_paid"), Decimal("0")),
            last=Max("payment_date"),
        )
        return quantize(totals["paid"]), totals["last"]

    @staticmethod
    def apply(pristine, target):
        """Set ledger fields on target (unsaved) from pristine's installments"""
        paid, last = CreditLedger.installment_totals(pristine)
        target.apply_credit_totals(paid, last)
        return target

    @staticmethod
    def recompute(pristine, target=None):
        """Re-derive and persist the ledger on the bill's active record"""
        if not pristine.is_credit_sale:
            return pristine
        target = target or pristine.active_record()
        CreditLedger.apply(pristine, target)
        target.save(update_fields=LEDGER_FIELDS)
        return target

    @staticmethod
    def _lock_bill(tenant, sale_id):
        from sales.models import SaleRecord

        record = (
            tenant.scope(SaleRecord.objects.select_for_update(of=("self",)))
            .filter(pk=sale_id)
            .first()
        )
        if record is None:
            raise exceptions.NotFoundError(f"Sale {sale_id} not found.")
        if record.is_return_transaction:
            raise exceptions.ConsistencyError(
                "Payments cannot be recorded against a return transaction."
            )
        if record.is_pristine:
            pristine = record
        else:
            pristine = (
                SaleRecord.objects.select_for_update(of=("self",))
                .filter(pk=record.original_sale_id)
                .first()
            )
        return pristine, pristine.active_record()

    @staticmethod
    def record_payment(tenant, data, user=None):
        """
        Record one installment against a credit sale.

        Accepts either the pristine or the adjusted record id.
        """
        data = validate_input(PaymentInputSerializer, data)
        amount = quantize(data["amount"])

        with service_transaction():
            pristine, active = CreditLedger._lock_bill(tenant, data["saleId"])
            if not pristine.is_credit_sale:
                raise exceptions.ConflictError("Payments can only be recorded for credit sales.")
            if active.credit_payment_status == active.CreditStatus.FULLY_PAID:
                raise exceptions.ConflictError("This sale is already fully paid.")
            if amount > active.outstanding + epsilon():
                raise exceptions.ConflictError(
                    f"Payment of {amount} exceeds outstanding balance of {active.outstanding}."
                )

            installment = PaymentInstallment(
                sale=pristine,
                amount_paid=amount,
                method=data["method"],
                notes=data.get("notes") or None,
                recorded_by=user,
            )
            if data.get("paymentDate"):
                installment.payment_date = data["paymentDate"]
            installment.save()
            active = CreditLedger.recompute(pristine, active)

        logger.info(
            f"Recorded payment {amount} on {pristine.bill_number}: "
            f"outstanding {active.credit_outstanding_amount} ({active.credit_payment_status})"
        )
        return active

    @staticmethod
    def delete_installment(tenant, installment_id, user=None):
        installment_id = validate_input(
            InstallmentReferenceSerializer, {"installmentId": installment_id}
        )["installmentId"]

        with service_transaction():
            installment = (
                PaymentInstallment.objects.select_related("sale")
                .filter(pk=installment_id)
                .first()
            )
            if installment is None:
                raise exceptions.NotFoundError(f"Installment {installment_id} not found.")
            tenant.check_owns(installment.sale.company_id)

            pristine, active = CreditLedger._lock_bill(tenant, installment.sale_id)
            amount = installment.amount_paid
            installment.delete()
            active = CreditLedger.recompute(pristine, active)

        logger.info(
            f"Deleted installment {installment_id} ({amount}) from {pristine.bill_number} "
            f"by user {getattr(user, 'pk', None)}"
        )
        return active

    @staticmethod
    def customer_credit_summary(tenant, customer_id):
        customer_id = validate_input(CustomerReferenceSerializer, {"customerId": customer_id})[
            "customerId"
        ]
        customer = tenant.scope(Customer.objects.all()).filter(pk=customer_id).first()
        if customer is None:
            raise exceptions.NotFoundError(f"Customer {customer_id} not found.")

        outstanding = ZERO
        open_sales = 0
        for _, active in customer.credit_bills():
            if active.outstanding > 0:
                outstanding += active.outstanding
                open_sales += 1

        return {
            "customerId": customer.pk,
            "name": customer.display_name,
            "totalOutstanding": quantize(outstanding),
            "openSales": open_sales,
        }
