from django.db import models
from django.db.models import Sum
from django.db.models.functions import Coalesce
from decimal import Decimal

from base.manager import SoftDeleteManager


class ProductManager(SoftDeleteManager):
    """Custom manager for Product with common queries"""

    def active(self):
        return self.filter(is_active=True)

    def for_company(self, company_id):
        return self.filter(company_id=company_id)


class ProductBatchManager(models.Manager):
    def get_queryset(self):
        return super().get_queryset().select_related("product")

    def in_stock(self):
        return self.filter(quantity__gt=0)

    def locked(self, batch_id):
        """Batch row locked for update; must run inside a transaction"""
        return self.select_for_update(of=("self",)).filter(pk=batch_id).first()


class InventoryLogManager(models.Manager):
    def get_queryset(self):
        return super().get_queryset().select_related("batch", "batch__product")

    def net_change_for_batch(self, batch):
        return self.filter(batch=batch).aggregate(
            total=Coalesce(Sum("quantity_change"), Decimal("0"))
        )["total"]
