from django.urls import path
from . import views

app_name = "api"

urlpatterns = [
    path("sales/create/", views.create_sale, name="create_sale"),
    path("sales/context/", views.sale_context, name="sale_context"),
    path("sales/list/", views.list_sales, name="list_sales"),
    path("sales/credit/", views.credit_sales, name="credit_sales"),
    path("returns/apply/", views.apply_return, name="apply_return"),
    path("returns/undo/", views.undo_return, name="undo_return"),
    path("credit/payment/", views.record_payment, name="record_payment"),
    path(
        "credit/installment/delete/",
        views.delete_installment,
        name="delete_installment",
    ),
    path("credit/customer/", views.customer_credit, name="customer_credit"),
    path("campaigns/save/", views.save_campaign, name="save_campaign"),
]
