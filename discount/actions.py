"""
Caller-facing campaign operations returning {success, data?, error?}.
"""

from base.decorators import service_action
from .services import CampaignService


def campaign_to_dict(campaign):
    data = campaign.to_snapshot()
    data.update(
        {
            "companyId": campaign.company_id,
            "description": campaign.description,
            "isActive": campaign.is_active,
            "isDefault": campaign.is_default,
            "validFrom": campaign.valid_from.isoformat() if campaign.valid_from else None,
            "validTo": campaign.valid_to.isoformat() if campaign.valid_to else None,
        }
    )
    return data


@service_action
def save_campaign(tenant, user, data):
    return campaign_to_dict(CampaignService.save_campaign(tenant, data, user=user))


@service_action
def list_campaigns(tenant, user):
    return [campaign_to_dict(campaign) for campaign in CampaignService.list_campaigns(tenant)]


@service_action
def delete_campaign(tenant, user, campaign_id):
    CampaignService.delete_campaign(tenant, campaign_id)
    return {"id": campaign_id}
