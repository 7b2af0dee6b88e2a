"""
Caller-facing sale and return operations returning {success, data?, error?}.
"""

from base.decorators import service_action
from .returns import ReturnService
from .serializers import sale_to_dict
from .services import SaleService


@service_action
def create_sale(tenant, user, data):
    return sale_to_dict(SaleService.create_sale(tenant, data, user=user))


@service_action
def get_sale_context(tenant, user, bill_number):
    context = SaleService.get_sale_context(tenant, bill_number)
    return {
        "pristine": sale_to_dict(context["pristine"]),
        "active": sale_to_dict(context["active"]),
    }


@service_action
def list_sales(tenant, user, page=1, page_size=None, search=None):
    return SaleService.list_sales(
        tenant, page=page, page_size=page_size, search=search, serializer=sale_to_dict
    )


@service_action
def list_credit_sales(tenant, user, status="open", customer_id=None, date_from=None, date_to=None):
    pairs = SaleService.list_credit_sales(
        tenant,
        status=status,
        customer_id=customer_id,
        date_from=date_from,
        date_to=date_to,
    )
    return [
        {"pristine": sale_to_dict(pristine), "active": sale_to_dict(active)}
        for pristine, active in pairs
    ]


@service_action
def process_return(tenant, user, data):
    return_record, adjusted = ReturnService.process_return(tenant, data, user=user)
    return {
        "returnTransactionId": return_record.pk,
        "adjustedSaleId": adjusted.pk,
        "returnTransaction": sale_to_dict(return_record),
        "adjustedSale": sale_to_dict(adjusted),
    }


@service_action
def undo_return(tenant, user, master_sale_id, log_entry_id):
    return sale_to_dict(ReturnService.undo_return(tenant, master_sale_id, log_entry_id, user=user))
