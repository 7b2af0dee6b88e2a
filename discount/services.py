from django.utils import timezone
import logging

from base import exceptions
from base.transactions import service_transaction
from base.validation import validate_input
from inventory.models import Product, ProductBatch
from .models import DiscountCampaign, LINE_RULE_FIELDS, ProductDiscountConfiguration
from .serializers import (
    BuyGetRuleSerializer,
    CampaignReferenceSerializer,
    CampaignSerializer,
    rule_to_json,
)

logger = logging.getLogger(__name__)


def _line_rule_values(rules, prefix=""):
    return {
        prefix + field: rule_to_json(rules.get(category.value))
        for category, field in LINE_RULE_FIELDS.items()
    }


class CampaignService:
    """Service class for discount campaign persistence"""

    @staticmethod
    def get_campaign(tenant, campaign_id):
        campaign_id = validate_input(CampaignReferenceSerializer, {"campaignId": campaign_id})[
            "campaignId"
        ]
        campaign = tenant.scope(DiscountCampaign.objects.all()).filter(pk=campaign_id).first()
        if campaign is None:
            raise exceptions.NotFoundError(f"Discount campaign {campaign_id} not found.")
        return campaign

    @staticmethod
    def list_campaigns(tenant):
        return tenant.scope(DiscountCampaign.objects.all()).prefetch_related(
            "product_configurations"
        )

    @staticmethod
    def get_active_campaign(company_id, on_date=None):
        """The company's default campaign, if active and valid on the date"""
        on_date = on_date or timezone.localdate()
        return (
            DiscountCampaign.objects.filter(company_id=company_id)
            .active()
            .defaults()
            .valid_on(on_date)
            .first()
        )

    @staticmethod
    def _check_products(company_id, configurations):
        product_ids = {config["productId"] for config in configurations}
        known = set(
            Product.objects.filter(company_id=company_id, pk__in=product_ids).values_list(
                "pk", flat=True
            )
        )
        missing = product_ids - known
        if missing:
            raise exceptions.ValidationError(
                f"Products not found for this company: {sorted(missing)}"
            )

        for config in configurations:
            batch_id = config.get("batchId")
            if batch_id and not ProductBatch.objects.filter(
                pk=batch_id, product_id=config["productId"]
            ).exists():
                raise exceptions.ValidationError(
                    f"Batch {batch_id} does not belong to product {config['productId']}."
                )

    @staticmethod
    def _sync_configurations(campaign, configurations):
        """Create, update and delete product configurations to match input"""
        existing = {config.pk: config for config in campaign.product_configurations.all()}
        by_target = {(config.product_id, config.batch_id): config for config in existing.values()}
        kept = set()

        for data in configurations:
            target = (data["productId"], data.get("batchId"))
            config = existing.get(data.get("id")) or by_target.get(target)
            if config is None:
                config = ProductDiscountConfiguration(campaign=campaign)
            config.product_id = data["productId"]
            config.batch_id = data.get("batchId")
            config.is_active_for_product_in_campaign = data["isActiveForProductInCampaign"]
            for field, value in _line_rule_values(data["rules"]).items():
                setattr(config, field, value)
            config.save()
            kept.add(config.pk)

        stale = [pk for pk in existing if pk not in kept]
        if stale:
            ProductDiscountConfiguration.objects.filter(pk__in=stale).delete()
        return len(configurations), len(stale)

    @staticmethod
    def save_campaign(tenant, data, user=None):
        """
        Create or update a campaign with its product configurations.

        Making a campaign default clears the flag on every other campaign of
        the same company.
        """
        data = validate_input(CampaignSerializer, data)

        with service_transaction(
            duplicate_message="A campaign with this name already exists for the company."
        ):
            if data.get("id"):
                campaign = (
                    tenant.scope(DiscountCampaign.objects.select_for_update())
                    .filter(pk=data["id"])
                    .first()
                )
                if campaign is None:
                    raise exceptions.NotFoundError(f"Discount campaign {data['id']} not found.")
            else:
                campaign = DiscountCampaign(
                    company_id=tenant.company_for_write(data.get("companyId")),
                    created_by=user,
                )

            campaign.name = data["name"]
            campaign.description = data.get("description")
            campaign.is_active = data["isActive"]
            campaign.is_default = data["isDefault"]
            campaign.is_one_time_per_transaction = data["isOneTimePerTransaction"]
            campaign.valid_from = data.get("validFrom")
            campaign.valid_to = data.get("validTo")
            campaign.global_cart_price_rule = rule_to_json(data.get("globalCartPriceRule"))
            campaign.global_cart_quantity_rule = rule_to_json(data.get("globalCartQuantityRule"))
            for field, value in _line_rule_values(data["defaultRules"], prefix="default_").items():
                setattr(campaign, field, value)
            campaign.buy_get_rules = [
                dict(BuyGetRuleSerializer(rule).data) for rule in data["buyGetRules"]
            ]

            CampaignService._check_products(campaign.company_id, data["productConfigurations"])
            campaign.save()
            saved, removed = CampaignService._sync_configurations(
                campaign, data["productConfigurations"]
            )

        logger.info(
            f"Saved discount campaign {campaign.pk} ({campaign.name}): "
            f"{saved} product configurations, {removed} removed"
        )
        return campaign

    @staticmethod
    def delete_campaign(tenant, campaign_id):
        from sales.models import SaleRecord

        with service_transaction():
            campaign = CampaignService.get_campaign(tenant, campaign_id)
            if SaleRecord.objects.filter(campaign=campaign).exists():
                raise exceptions.ConflictError(
                    "Campaign is referenced by recorded sales; deactivate it instead."
                )
            campaign.delete()

        logger.info(f"Deleted discount campaign {campaign_id}")
