"""
Caller-facing credit ledger operations returning {success, data?, error?}.
"""

from base.decorators import service_action
from sales.serializers import sale_to_dict
from .ledger import CreditLedger


@service_action
def record_payment(tenant, user, data):
    return sale_to_dict(CreditLedger.record_payment(tenant, data, user=user))


@service_action
def delete_installment(tenant, user, installment_id):
    return sale_to_dict(CreditLedger.delete_installment(tenant, installment_id, user=user))


@service_action
def customer_credit_summary(tenant, user, customer_id):
    summary = CreditLedger.customer_credit_summary(tenant, customer_id)
    summary["totalOutstanding"] = str(summary["totalOutstanding"])
    return summary
