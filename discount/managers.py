"""
Custom managers for discount models
"""

from django.db import models
from django.db.models import Q


class DiscountCampaignQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True)

    def valid_on(self, on_date):
        """Campaigns whose validity window contains on_date"""
        return self.filter(
            Q(valid_from__isnull=True) | Q(valid_from__lte=on_date),
            Q(valid_to__isnull=True) | Q(valid_to__gte=on_date),
        )

    def defaults(self):
        return self.filter(is_default=True)


class DiscountCampaignManager(models.Manager.from_queryset(DiscountCampaignQuerySet)):
    def get_queryset(self):
        return super().get_queryset().select_related("company")


class ProductDiscountConfigurationManager(models.Manager):
    def get_queryset(self):
        return super().get_queryset().select_related("product", "batch")

    def active(self):
        return self.filter(is_active_for_product_in_campaign=True)
