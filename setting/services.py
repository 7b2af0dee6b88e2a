from decimal import Decimal
from django.conf import settings
from django.db import transaction
import logging

from base import exceptions
from base.money import to_decimal
from .models import TaxConfiguration

logger = logging.getLogger(__name__)


def get_tax_rate():
    """Global tax percentage; falls back to DEFAULT_TAX_RATE when unset"""
    config = TaxConfiguration.get_active()
    if config is None:
        return to_decimal(settings.DEFAULT_TAX_RATE)
    return config.rate


@transaction.atomic
def set_tax_rate(rate, user=None):
    rate = to_decimal(rate, default=None)
    if rate is None or rate < Decimal("0") or rate > Decimal("100"):
        raise exceptions.ValidationError("Tax rate must be between 0 and 100.")

    config = TaxConfiguration.objects.select_for_update().filter(is_active=True).first()
    if config is None:
        config = TaxConfiguration(is_active=True)
    config.rate = rate
    config.updated_by = user
    config.save()

    logger.info(f"Global tax rate set to {rate}%")
    return config
