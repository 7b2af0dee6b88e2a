from django.contrib import admin

from .models import InventoryLog, Product, ProductBatch


class ProductBatchInline(admin.TabularInline):
    model = ProductBatch
    extra = 0
    fields = ["batch_number", "quantity", "cost_price", "selling_price", "expiry_date"]
    readonly_fields = ["quantity"]


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = [
        "name",
        "code",
        "company",
        "selling_price",
        "tax_rate_override",
        "is_service",
        "is_active",
        "created_at",
    ]
    list_filter = ["company", "is_service", "is_active", "created_at"]
    search_fields = ["name", "code"]
    ordering = ["name"]
    readonly_fields = ["created_at", "updated_at"]
    inlines = [ProductBatchInline]

    fieldsets = (
        ("Basic Information", {"fields": ("company", "name", "code", "is_service", "is_active")}),
        ("Pricing", {"fields": ("selling_price", "cost_price", "tax_rate_override")}),
        ("Units", {"fields": ("units",)}),
        (
            "Timestamps",
            {"fields": ("created_at", "updated_at"), "classes": ("collapse",)},
        ),
    )

    def get_queryset(self, request):
        return Product.all_objects.select_related("company")


class InventoryLogInline(admin.TabularInline):
    model = InventoryLog
    extra = 0
    fields = [
        "timestamp",
        "transaction_type",
        "quantity_change",
        "new_quantity",
        "reference",
        "notes",
    ]
    readonly_fields = fields
    can_delete = False
    max_num = 10

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(ProductBatch)
class ProductBatchAdmin(admin.ModelAdmin):
    list_display = ["product", "batch_number", "quantity", "cost_price", "selling_price"]
    list_filter = ["product__company", "created_at"]
    search_fields = ["product__name", "batch_number"]
    ordering = ["product__name", "batch_number"]
    readonly_fields = ["quantity", "created_at", "updated_at"]
    inlines = [InventoryLogInline]


@admin.register(InventoryLog)
class InventoryLogAdmin(admin.ModelAdmin):
    list_display = [
        "batch",
        "transaction_type",
        "quantity_change",
        "new_quantity",
        "reference",
        "created_by",
        "timestamp",
    ]
    list_filter = ["transaction_type", "timestamp", "created_by"]
    search_fields = ["batch__product__name", "batch__batch_number", "reference", "notes"]
    ordering = ["-timestamp"]
    readonly_fields = ["timestamp"]

    def has_add_permission(self, request):
        # logs are written by stock movements only
        return False

    def has_change_permission(self, request, obj=None):
        return False


admin.site.site_header = "Retail POS Administration"
admin.site.site_title = "Retail POS Admin"
admin.site.index_title = "Store Management"
