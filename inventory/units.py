"""
Unit-of-measure definitions stored as JSON on products and sale lines.

Stored shapes are decoded leniently: anything malformed is replaced with a
placeholder definition and a warning is logged, so old records stay readable.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)

UNKNOWN_UNIT = "unknown_error_unit"


def default_unit_definition():
    return {"baseUnit": "pcs", "derivedUnits": []}


@dataclass(frozen=True)
class DerivedUnit:
    name: str
    conversion_factor: Decimal
    threshold: Optional[Decimal] = None

    def to_dict(self):
        data = {"name": self.name, "conversionFactor": float(self.conversion_factor)}
        if self.threshold is not None:
            data["threshold"] = float(self.threshold)
        return data


@dataclass(frozen=True)
class UnitDefinition:
    base_unit: str
    derived_units: List[DerivedUnit] = field(default_factory=list)

    def to_dict(self):
        return {
            "baseUnit": self.base_unit,
            "derivedUnits": [unit.to_dict() for unit in self.derived_units],
        }

    @classmethod
    def from_stored(cls, raw):
        if not isinstance(raw, dict) or not raw.get("baseUnit"):
            logger.warning(f"Malformed unit definition repaired: {raw!r}")
            return cls(base_unit=UNKNOWN_UNIT)

        derived = []
        for entry in raw.get("derivedUnits") or []:
            try:
                factor = Decimal(str(entry["conversionFactor"]))
                threshold = entry.get("threshold")
                derived.append(
                    DerivedUnit(
                        name=str(entry["name"]),
                        conversion_factor=factor,
                        threshold=Decimal(str(threshold)) if threshold is not None else None,
                    )
                )
            except (KeyError, TypeError, InvalidOperation):
                logger.warning(f"Dropping malformed derived unit: {entry!r}")
                continue

        return cls(base_unit=str(raw["baseUnit"]), derived_units=derived)


def validate_unit_definition(raw):
    """Strict write-path check; returns a list of error messages"""
    errors = []
    if not isinstance(raw, dict):
        return ["Unit definition must be an object."]
    if not raw.get("baseUnit"):
        errors.append("Base unit is required.")
    for entry in raw.get("derivedUnits") or []:
        if not isinstance(entry, dict) or not entry.get("name"):
            errors.append("Derived unit name is required.")
            continue
        try:
            if Decimal(str(entry.get("conversionFactor"))) <= 0:
                errors.append(f"Conversion factor for {entry['name']} must be positive.")
        except InvalidOperation:
            errors.append(f"Conversion factor for {entry['name']} must be a number.")
    return errors


def _trim(value):
    return format(value.normalize(), "f")


def format_quantity(quantity, units):
    """
    Render a base-unit quantity using the largest derived unit that applies.

    A derived unit applies when the quantity reaches its threshold (or its
    conversion factor when no threshold is set). e.g. 24 pcs with a dozen
    factor of 12 renders as "2 dozen".
    """
    if not isinstance(units, UnitDefinition):
        units = UnitDefinition.from_stored(units)
    quantity = Decimal(str(quantity))

    candidates = sorted(
        units.derived_units, key=lambda unit: unit.conversion_factor, reverse=True
    )
    for unit in candidates:
        threshold = unit.threshold if unit.threshold is not None else unit.conversion_factor
        if unit.conversion_factor > 0 and quantity >= threshold:
            converted = (quantity / unit.conversion_factor).quantize(Decimal("0.01"))
            return f"{_trim(converted)} {unit.name}"

    return f"{_trim(quantity)} {units.base_unit}"
