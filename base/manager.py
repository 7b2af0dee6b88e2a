"""
Soft delete support shared by catalog and customer models.

Products and customers are referenced by recorded sales, so they are hidden
rather than removed.
"""

from django.db import models
from django.utils import timezone
from django.core.validators import RegexValidator


class SoftDeleteQuerySet(models.QuerySet):
    def delete(self):
        """Hide every row in the queryset; returns the number of rows hidden"""
        return self.update(is_deleted=True, deleted_at=timezone.now())

    def hard_delete(self):
        return super().delete()

    def alive(self):
        return self.filter(is_deleted=False)

    def deleted(self):
        return self.filter(is_deleted=True)


class SoftDeleteManager(models.Manager.from_queryset(SoftDeleteQuerySet)):
    """Default manager that leaves soft-deleted rows out"""

    def get_queryset(self):
        return super().get_queryset().alive()


class SoftDeleteModel(models.Model):
    is_deleted = models.BooleanField(default=False)
    deleted_at = models.DateTimeField(null=True, blank=True)

    objects = SoftDeleteManager()
    # includes soft-deleted rows; used when resolving historical references
    all_objects = models.Manager.from_queryset(SoftDeleteQuerySet)()

    class Meta:
        abstract = True

    def soft_delete(self):
        self.is_deleted = True
        self.deleted_at = timezone.now()
        self.save(update_fields=["is_deleted", "deleted_at"])

    def restore(self):
        self.is_deleted = False
        self.deleted_at = None
        self.save(update_fields=["is_deleted", "deleted_at"])

    def delete(self, using=None, keep_parents=False):
        self.soft_delete()


# 10 digits, no country code
phone_regex = RegexValidator(
    regex=r"^\d{10}$",
    message="Phone number must be exactly 10 digits (e.g., 9876543210).",
)
