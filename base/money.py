from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from django.conf import settings

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def to_decimal(value, default=ZERO):
    """Coerce numbers, strings and None into Decimal"""
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return default


def quantize(value):
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def epsilon():
    return to_decimal(getattr(settings, "MONEY_EPSILON", "0.01"))


def is_zero(value):
    """True when the amount is within the money epsilon of zero"""
    return abs(to_decimal(value)) < epsilon()


def clamp(value, low=ZERO, high=None):
    value = max(to_decimal(value), low)
    if high is not None:
        value = min(value, high)
    return value
