from django.contrib import admin
from .models import BillSequence, SaleRecord


@admin.register(SaleRecord)
class SaleRecordAdmin(admin.ModelAdmin):
    list_display = (
        "bill_number",
        "record_type",
        "status",
        "date",
        "customer",
        "total_amount",
        "payment_method",
        "credit_payment_status",
    )
    list_filter = ("record_type", "status", "payment_method", "is_credit_sale", "company")
    search_fields = ("bill_number", "customer__name", "customer__phone_number")
    raw_id_fields = ("customer", "campaign", "original_sale")
    readonly_fields = ("items", "returned_items_log", "applied_discount_summary", "campaign_snapshot")

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(BillSequence)
class BillSequenceAdmin(admin.ModelAdmin):
    list_display = ("company", "financial_year", "last_number")
