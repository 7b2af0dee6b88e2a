from decimal import Decimal
from django.test import TestCase, override_settings

from base import exceptions
from .models import TaxConfiguration
from .services import get_tax_rate, set_tax_rate


class TaxRateTestCase(TestCase):
    @override_settings(DEFAULT_TAX_RATE="18")
    def test_default_rate_when_unset(self):
        self.assertEqual(get_tax_rate(), Decimal("18"))

    def test_set_rate_keeps_one_active_configuration(self):
        set_tax_rate("5")
        set_tax_rate(Decimal("12.5"))

        self.assertEqual(get_tax_rate(), Decimal("12.5"))
        self.assertEqual(TaxConfiguration.objects.filter(is_active=True).count(), 1)

    def test_out_of_range_rate_is_rejected(self):
        for rate in ("-1", "100.01", "abc"):
            with self.assertRaises(exceptions.ValidationError):
                set_tax_rate(rate)

        self.assertFalse(TaxConfiguration.objects.exists())
