from django.db import models
from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.utils.translation import gettext_lazy as _
from .managers import CustomUserManager
from base.utility import StringProcessor


class Company(models.Model):
    """Tenant that owns products, campaigns and sales."""

    name = models.CharField(max_length=255, unique=True)
    bill_prefix = models.CharField(
        max_length=10,
        default="INV",
        help_text="Prefix used when generating bill numbers",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "Companies"

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        self.name = StringProcessor(self.name).toTitle()
        self.bill_prefix = StringProcessor(self.bill_prefix).toUppercase() or "INV"
        super().save(*args, **kwargs)


class CustomUser(AbstractBaseUser, PermissionsMixin):
    class Roles(models.TextChoices):
        OWNER = "OWNER", "Owner"
        MANAGER = "MANAGER", "Manager"
        CASHIER = "CASHIER", "Cashier"

    first_name = models.CharField(max_length=255, null=True, blank=True)
    last_name = models.CharField(max_length=255, null=True, blank=True)
    email = models.EmailField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        verbose_name=_("Email Address (Optional)"),
    )
    phone_number = models.CharField(
        max_length=15, unique=True, verbose_name=_("Phone Number")
    )
    role = models.CharField(max_length=20, choices=Roles.choices, default=Roles.CASHIER)
    company = models.ForeignKey(
        Company,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="users",
        help_text="Leave empty only for platform operators",
    )
    is_platform_operator = models.BooleanField(
        default=False,
        help_text="Platform-level operator who is not scoped to any company",
    )
    is_staff = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    date_joined = models.DateTimeField(auto_now_add=True)

    groups = models.ManyToManyField(
        "auth.Group",
        verbose_name=_("groups"),
        blank=True,
        related_name="customuser_set",
        related_query_name="user",
    )
    user_permissions = models.ManyToManyField(
        "auth.Permission",
        verbose_name=_("user permissions"),
        blank=True,
        related_name="customuser_permissions_set",
        related_query_name="user",
    )

    USERNAME_FIELD = "phone_number"
    REQUIRED_FIELDS = ["first_name"]
    objects = CustomUserManager()

    def save(self, *args, **kwargs):
        # Empty strings would collide on the unique constraint
        if self.email == "":
            self.email = None

        self.first_name = StringProcessor(self.first_name).toTitle()
        self.last_name = StringProcessor(self.last_name).toTitle()
        if self.email:
            self.email = StringProcessor(self.email).toLowercase()

        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.first_name} {self.last_name} ({self.phone_number})"

    @property
    def is_manager(self):
        return self.role in [self.Roles.OWNER, self.Roles.MANAGER]

    @property
    def full_name(self):
        return f"{self.first_name or ''} {self.last_name or ''}".strip()
