"""
Tariff catalog: per-vehicle pricing tables.

A tariff expresses every price as a multiplier of the vehicle's reference
daily rate:

- same_day: one-day rentals, keyed by reduction class then mileage plan.
- multi_day: per mileage plan, a sparse map of anchor day-counts to the
  multiplier giving the TOTAL price for that many days.
- insurance: ordered step rules for the PARTIAL coverage surcharge, first
  match wins.

The catalog is loaded once (get_catalog) from DEFAULT_TARIFFS or from the
JSON file named by TARIFFS_PATH, and can be built directly for tests.
"""

import json
import logging
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Annotated, Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator

from config import Config
from errors import RateNotDefinedError, TariffNotFoundError
from schemas import KmPlan, Reduction

logger = logging.getLogger(__name__)

PER_DAY_PRECISION = Decimal("0.000001")


def parse_ratio(value: Any) -> Decimal:
    """Accept 1.375, "1.375" or "110/80"."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        try:
            if "/" in value:
                num, den = value.split("/", 1)
                return Decimal(num.strip()) / Decimal(den.strip())
            return Decimal(value.strip())
        except (InvalidOperation, ZeroDivisionError):
            raise ValueError(f"Invalid multiplier: {value!r}")
    raise ValueError(f"Invalid multiplier: {value!r}")


Multiplier = Annotated[Decimal, BeforeValidator(parse_ratio)]


class InsuranceRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_days: int = Field(1, ge=1)
    max_days: Optional[int] = Field(None, ge=1)
    reduction: Optional[Reduction] = None
    per_day: Optional[Decimal] = Field(None, ge=0)
    flat: Optional[Decimal] = Field(None, ge=0)

    @model_validator(mode="after")
    def check_amount(self):
        if (self.per_day is None) == (self.flat is None):
            raise ValueError("insurance rule needs exactly one of per_day or flat")
        return self

    def matches(self, days: int, reduction: str) -> bool:
        if days < self.min_days:
            return False
        if self.max_days is not None and days > self.max_days:
            return False
        return self.reduction is None or self.reduction == reduction

    def cost(self, days: int) -> Decimal:
        if self.flat is not None:
            return self.flat
        return self.per_day * days


class Tariff(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_price_day: Optional[Decimal] = Field(None, ge=0, description="Overrides the vehicle's own rate")
    same_day: Dict[Reduction, Dict[KmPlan, Multiplier]] = Field(default_factory=dict)
    multi_day: Dict[KmPlan, Dict[int, Multiplier]] = Field(default_factory=dict)
    insurance: List[InsuranceRule] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_anchors(self):
        for km_plan, anchors in self.multi_day.items():
            if any(day < 1 for day in anchors):
                raise ValueError(f"anchor day-counts must be >= 1 ({km_plan})")
            # Longer rentals never cost more per day
            previous = None
            for day in sorted(anchors):
                per_day = (anchors[day] / day).quantize(PER_DAY_PRECISION)
                if previous is not None and per_day > previous:
                    raise ValueError(f"per-day rate rises at the {day}-day anchor ({km_plan})")
                previous = per_day
        return self

    @property
    def supports_reduction(self) -> bool:
        return any(self.same_day.get(r) for r in ("H4", "H10"))

    def same_day_multiplier(self, reduction: str, km_plan: str) -> Decimal:
        multiplier = self.same_day.get(reduction, {}).get(km_plan)
        if multiplier is None:
            raise RateNotDefinedError(f"No same-day rate for reduction {reduction} and plan {km_plan}")
        return multiplier

    def anchors(self, km_plan: str) -> Dict[int, Decimal]:
        anchors = self.multi_day.get(km_plan)
        if not anchors:
            raise RateNotDefinedError(f"No multi-day anchors for plan {km_plan}")
        return anchors

    def insurance_cost(self, days: int, reduction: str = "NONE") -> Decimal:
        for rule in self.insurance:
            if rule.matches(days, reduction):
                return rule.cost(days)
        raise RateNotDefinedError(f"No insurance rule for {days} day(s), reduction {reduction}")


class Surcharges(BaseModel):
    model_config = ConfigDict(frozen=True)

    extra_driver_per_day: Decimal = Decimal("8")
    extra_driver_under25_per_day: Decimal = Decimal("10")
    home_delivery: Decimal = Decimal("30")
    home_pickup: Decimal = Decimal("30")


class TariffCatalog:
    """Read-only lookup of tariffs by vehicle slug."""

    def __init__(self, tariffs: Mapping[str, Tariff], surcharges: Optional[Surcharges] = None):
        self._tariffs = MappingProxyType(dict(tariffs))
        self.surcharges = surcharges or Surcharges()

    def __contains__(self, vehicle_key: str) -> bool:
        return vehicle_key in self._tariffs

    def keys(self):
        return self._tariffs.keys()

    def get(self, vehicle_key: str) -> Tariff:
        try:
            return self._tariffs[vehicle_key]
        except KeyError:
            raise TariffNotFoundError(vehicle_key)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TariffCatalog":
        tariffs = {key: Tariff.model_validate(value) for key, value in data.get("vehicles", {}).items()}
        surcharges = Surcharges.model_validate(data.get("surcharges", {}))
        return cls(tariffs, surcharges)

    @classmethod
    def from_json(cls, path) -> "TariffCatalog":
        with open(path, "r", encoding="utf-8") as fh:
            return cls.from_dict(json.load(fh))


_VAN_TARIFF = {
    "same_day": {
        "H4": {"KM_100": "50/80"},
        "H10": {"KM_100": "65/80", "KM_200": "85/80", "UNLIMITED": "100/80"},
        "NONE": {"KM_100": "1", "KM_200": "100/80", "UNLIMITED": "110/80"},
    },
    "multi_day": {
        "KM_100": {2: "150/80", 3: "225/80", 4: "280/80", 5: "340/80", 6: "390/80", 7: "450/80", 30: "1600/80"},
        "UNLIMITED": {2: "210/80", 3: "315/80", 4: "390/80", 5: "475/80", 6: "540/80", 7: "620/80", 30: "2000/80"},
    },
    "insurance": [
        {"min_days": 1, "max_days": 1, "reduction": "H4", "flat": 10},
        {"min_days": 1, "max_days": 1, "flat": 20},
        {"max_days": 3, "per_day": 20},
        {"max_days": 7, "per_day": 15},
        {"per_day": 10},
    ],
}

DEFAULT_TARIFFS = {
    "vehicles": {
        "volkswagen-polo": {
            "same_day": {
                "NONE": {"KM_100": "1", "UNLIMITED": "65/60"},
            },
            "multi_day": {
                "KM_100": {2: "110/60", 3: "120/60"},
                "UNLIMITED": {2: "120/60", 3: "130/60", 4: "140/60", 5: "175/60", 6: "205/60", 7: "210/60", 30: "900/60"},
            },
            "insurance": [
                {"min_days": 30, "per_day": 8},
                {"per_day": 15},
            ],
        },
        "volkswagen-crafter": _VAN_TARIFF,
        "peugeot-boxer-iii": _VAN_TARIFF,
    },
    "surcharges": {
        "extra_driver_per_day": 8,
        "extra_driver_under25_per_day": 10,
        "home_delivery": 30,
        "home_pickup": 30,
    },
}


@lru_cache(maxsize=1)
def get_catalog() -> TariffCatalog:
    if Config.TARIFFS_PATH:
        path = Path(Config.TARIFFS_PATH)
        logger.info(f"Loading tariffs from {path}")
        return TariffCatalog.from_json(path)
    return TariffCatalog.from_dict(DEFAULT_TARIFFS)
