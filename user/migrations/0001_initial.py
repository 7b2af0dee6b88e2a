import django.db.models.deletion
from django.db import migrations, models

import user.managers


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("auth", "0012_alter_user_first_name_max_length"),
    ]

    operations = [
        migrations.CreateModel(
            name="Company",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255, unique=True)),
                ("bill_prefix", models.CharField(default="INV", help_text="Prefix used when generating bill numbers", max_length=10)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name_plural": "Companies",
            },
        ),
        migrations.CreateModel(
            name="CustomUser",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("password", models.CharField(max_length=128, verbose_name="password")),
                ("last_login", models.DateTimeField(blank=True, null=True, verbose_name="last login")),
                ("is_superuser", models.BooleanField(default=False, help_text="Designates that this user has all permissions without explicitly assigning them.", verbose_name="superuser status")),
                ("first_name", models.CharField(blank=True, max_length=255, null=True)),
                ("last_name", models.CharField(blank=True, max_length=255, null=True)),
                ("email", models.EmailField(blank=True, max_length=255, null=True, unique=True, verbose_name="Email Address (Optional)")),
                ("phone_number", models.CharField(max_length=15, unique=True, verbose_name="Phone Number")),
                ("role", models.CharField(choices=[("OWNER", "Owner"), ("MANAGER", "Manager"), ("CASHIER", "Cashier")], default="CASHIER", max_length=20)),
                ("is_platform_operator", models.BooleanField(default=False, help_text="Platform-level operator who is not scoped to any company")),
                ("is_staff", models.BooleanField(default=False)),
                ("is_active", models.BooleanField(default=True)),
                ("date_joined", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(blank=True, help_text="Leave empty only for platform operators", null=True, on_delete=django.db.models.deletion.PROTECT, related_name="users", to="user.company")),
                ("groups", models.ManyToManyField(blank=True, related_name="customuser_set", related_query_name="user", to="auth.group", verbose_name="groups")),
                ("user_permissions", models.ManyToManyField(blank=True, related_name="customuser_permissions_set", related_query_name="user", to="auth.permission", verbose_name="user permissions")),
            ],
            options={
                "abstract": False,
            },
            managers=[
                ("objects", user.managers.CustomUserManager()),
            ],
        ),
    ]
