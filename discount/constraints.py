"""
Discount model constraints
"""

from django.db import models


class DiscountCampaignConstraints:
    """DiscountCampaign model constraints"""

    @staticmethod
    def get_all_constraints():
        return [
            # At most one default campaign per company
            models.UniqueConstraint(
                fields=["company"],
                condition=models.Q(is_default=True),
                name="unique_default_campaign_per_company",
            ),
            models.UniqueConstraint(
                fields=["company", "name"],
                name="unique_campaign_name_per_company",
            ),
            models.CheckConstraint(
                condition=models.Q(valid_to__isnull=True)
                | models.Q(valid_from__isnull=True)
                | models.Q(valid_to__gte=models.F("valid_from")),
                name="campaign_validity_window_check",
            ),
        ]


class ProductDiscountConfigurationConstraints:
    """ProductDiscountConfiguration model constraints"""

    @staticmethod
    def get_all_constraints():
        return [
            models.UniqueConstraint(
                fields=["campaign", "product"],
                condition=models.Q(batch__isnull=True),
                name="unique_product_config_per_campaign",
            ),
            models.UniqueConstraint(
                fields=["campaign", "batch"],
                condition=models.Q(batch__isnull=False),
                name="unique_batch_config_per_campaign",
            ),
        ]
