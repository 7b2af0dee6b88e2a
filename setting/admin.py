from django.contrib import admin
from .models import TaxConfiguration


@admin.register(TaxConfiguration)
class TaxConfigurationAdmin(admin.ModelAdmin):
    list_display = ("rate", "is_active", "updated_by", "updated_at")
    readonly_fields = ("created_at", "updated_at")
