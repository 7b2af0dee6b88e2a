from django.contrib import admin
from .models import DiscountCampaign, ProductDiscountConfiguration


class ProductDiscountConfigurationInline(admin.TabularInline):
    model = ProductDiscountConfiguration
    extra = 0
    raw_id_fields = ("product", "batch")


@admin.register(DiscountCampaign)
class DiscountCampaignAdmin(admin.ModelAdmin):
    list_display = (
        "name",
        "company",
        "is_active",
        "is_default",
        "is_one_time_per_transaction",
        "valid_from",
        "valid_to",
    )
    list_filter = ("company", "is_active", "is_default")
    search_fields = ("name",)
    inlines = [ProductDiscountConfigurationInline]
