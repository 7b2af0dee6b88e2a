from django.contrib.auth.decorators import login_not_required
from django.core.serializers.json import DjangoJSONEncoder
from django.http import JsonResponse
from django.views.decorators.http import require_POST
from functools import wraps
import json
import logging

from customer import actions as customer_actions
from discount import actions as discount_actions
from sales import actions as sale_actions

logger = logging.getLogger(__name__)

# failed results map onto HTTP statuses by error code
STATUS_BY_CODE = {
    "validation_error": 400,
    "not_found": 404,
    "conflict": 409,
    "consistency_error": 409,
    "integration_error": 503,
}


def api_view(view_func):
    """
    POST-only JSON endpoint for an authenticated user.

    The view receives the decoded JSON body and returns an action result,
    which is rendered with a status matching its error code.
    """

    @login_not_required
    @require_POST
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return JsonResponse({"success": False, "error": "Authentication required"}, status=401)

        try:
            body = json.loads(request.body or b"{}")
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            return JsonResponse({"success": False, "error": f"Invalid JSON: {e}"}, status=400)
        if not isinstance(body, dict):
            return JsonResponse({"success": False, "error": "Expected a JSON object"}, status=400)

        result = view_func(request, body, *args, **kwargs)
        status = 200 if result["success"] else STATUS_BY_CODE.get(result.get("code"), 400)
        return JsonResponse(result, status=status, encoder=DjangoJSONEncoder)

    return wrapper


@api_view
def create_sale(request, body):
    return sale_actions.create_sale(request.user, body)


@api_view
def sale_context(request, body):
    return sale_actions.get_sale_context(request.user, body.get("billNumber"))


@api_view
def list_sales(request, body):
    return sale_actions.list_sales(
        request.user,
        page=body.get("page", 1),
        page_size=body.get("pageSize"),
        search=body.get("search"),
    )


@api_view
def credit_sales(request, body):
    return sale_actions.list_credit_sales(
        request.user,
        status=body.get("status", "open"),
        customer_id=body.get("customerId"),
        date_from=body.get("dateFrom"),
        date_to=body.get("dateTo"),
    )


@api_view
def apply_return(request, body):
    return sale_actions.process_return(request.user, body)


@api_view
def undo_return(request, body):
    return sale_actions.undo_return(
        request.user, body.get("masterSaleId"), body.get("logEntryId")
    )


@api_view
def record_payment(request, body):
    return customer_actions.record_payment(request.user, body)


@api_view
def delete_installment(request, body):
    return customer_actions.delete_installment(request.user, body.get("installmentId"))


@api_view
def customer_credit(request, body):
    return customer_actions.customer_credit_summary(request.user, body.get("customerId"))


@api_view
def save_campaign(request, body):
    return discount_actions.save_campaign(request.user, body)
