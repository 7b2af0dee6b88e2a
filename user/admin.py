from django.contrib import admin
from django.contrib.auth.admin import UserAdmin
from django.utils.translation import gettext_lazy as _
from .models import Company, CustomUser


@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    list_display = ("name", "bill_prefix", "created_at")
    search_fields = ("name",)


@admin.register(CustomUser)
class CustomUserAdmin(UserAdmin):
    list_display = (
        "full_name",
        "phone_number",
        "company",
        "role",
        "is_platform_operator",
        "is_active",
    )
    list_filter = ("role", "company", "is_platform_operator", "is_active")
    search_fields = ("first_name", "last_name", "phone_number", "email")
    ordering = ("-date_joined",)

    fieldsets = (
        (None, {"fields": ("phone_number", "password")}),
        (_("Personal info"), {"fields": ("first_name", "last_name", "email")}),
        (
            _("Tenancy & Role"),
            {"fields": ("company", "role", "is_platform_operator")},
        ),
        (
            _("Permissions"),
            {
                "fields": (
                    "is_active",
                    "is_staff",
                    "is_superuser",
                    "groups",
                    "user_permissions",
                )
            },
        ),
    )

    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": (
                    "phone_number",
                    "first_name",
                    "company",
                    "role",
                    "password1",
                    "password2",
                ),
            },
        ),
    )
