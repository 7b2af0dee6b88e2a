from django.contrib import admin
from django.contrib.admin import SimpleListFilter
from .models import Customer, PaymentInstallment


class CustomerStatusFilter(SimpleListFilter):
    """Filter customers by their active/inactive status."""

    title = "Status"
    parameter_name = "status"

    def lookups(self, request, model_admin):
        return (
            ("active", "Active"),
            ("inactive", "Inactive"),
        )

    def queryset(self, request, queryset):
        if self.value() == "active":
            return queryset.filter(is_deleted=False)
        if self.value() == "inactive":
            return queryset.filter(is_deleted=True)


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ("name", "phone_number", "company", "created_at")
    list_filter = (CustomerStatusFilter, "company")
    search_fields = ("name", "phone_number", "email")

    def get_queryset(self, request):
        return Customer.all_objects.select_related("company")


@admin.register(PaymentInstallment)
class PaymentInstallmentAdmin(admin.ModelAdmin):
    list_display = ("sale", "amount_paid", "method", "payment_date", "recorded_by")
    list_filter = ("method",)
    search_fields = ("sale__bill_number",)
    raw_id_fields = ("sale",)

    def has_change_permission(self, request, obj=None):
        # ledger totals are only re-derived through CreditLedger
        return False
