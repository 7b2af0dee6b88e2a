from django.contrib.auth.models import BaseUserManager
from django.db import models
from django.utils.translation import gettext_lazy as _


class UserQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True)

    def for_company(self, company_id):
        return self.filter(company_id=company_id)

    def platform_operators(self):
        return self.filter(is_platform_operator=True, company__isnull=True)


class CustomUserManager(BaseUserManager.from_queryset(UserQuerySet)):
    """Users log in with their phone number; staff belong to one company."""

    use_in_migrations = True

    def _build(self, first_name, phone_number, password, last_name=None, email=None, **extra):
        if not first_name:
            raise ValueError(_("Users must submit a first name"))
        if not phone_number:
            raise ValueError(_("Users must submit a phone number"))

        user = self.model(
            first_name=first_name,
            last_name=last_name or "",
            phone_number=phone_number,
            email=self.normalize_email(email) if email else None,
            **extra
        )
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, first_name, phone_number, password, company=None, **extra_fields):
        if extra_fields.get("is_platform_operator") and company is not None:
            raise ValueError(_("Platform operators cannot belong to a company"))
        return self._build(first_name, phone_number, password, company=company, **extra_fields)

    def create_platform_operator(self, first_name, phone_number, password, **extra_fields):
        extra_fields.setdefault("role", "OWNER")
        return self.create_user(
            first_name, phone_number, password, is_platform_operator=True, **extra_fields
        )

    def create_superuser(self, first_name, phone_number, password, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("is_active", True)

        if extra_fields.get("is_staff") is not True:
            raise ValueError(_("Superusers must have is_staff=True"))
        if extra_fields.get("is_superuser") is not True:
            raise ValueError(_("Superusers must have is_superuser=True"))

        return self.create_platform_operator(first_name, phone_number, password, **extra_fields)
