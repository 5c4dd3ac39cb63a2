"""
Quote calculator.

compute_quote() is the one pricing algorithm used by the public quote
endpoint, booking creation and admin re-pricing:

1. days = inclusive day count of the range.
2. One day: base = round(rate x same_day[reduction][km_plan]).
   More days: take the nearest-lower anchor `a` of the plan, amortize its
   total over `a` days and scale to the requested days:
   base = round(rate x multi_day[km_plan][a] / a x days).
3. base_raw = round(rate x same_day[NONE][km_plan] x days) is the plain 24h
   price, used only to show the saving.
4. Surcharges (insurance, extra driver, delivery, pickup) are added on top,
   never discounted.

Whole-unit rounding happens once, on base and base_raw; every money field of
the result is quantized to cents.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Mapping, Optional, Tuple

from duration import days_inclusive, resolve_anchor
from errors import InvalidConfigurationError
from schemas import QuoteBreakdown, QuoteLine, QuoteResult, RentalConfiguration, Vehicle
from tariffs import TariffCatalog, get_catalog

logger = logging.getLogger(__name__)

UNIT = Decimal("1")
CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

EXTRA_LABELS = {
    "insurance": "Partial coverage",
    "UNDER_25": "Extra driver under 25",
    "STANDARD": "Extra driver",
    "home_delivery": "Home delivery",
    "home_pickup": "Home pickup",
}


def round_units(value: Decimal) -> Decimal:
    return value.quantize(UNIT, rounding=ROUND_HALF_UP)


def round2(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def anchor_daily_rate(base_price_day: Decimal, anchors: Mapping[int, Decimal], days: int) -> Tuple[int, Decimal]:
    """Resolved anchor and its effective per-day rate (anchor total / anchor days)."""
    anchor = resolve_anchor(anchors.keys(), days)
    return anchor, base_price_day * anchors[anchor] / anchor


def compute_quote(vehicle: Vehicle, configuration: RentalConfiguration, catalog: Optional[TariffCatalog] = None) -> QuoteResult:
    days = days_inclusive(configuration.start_date, configuration.end_date)
    reduction = configuration.reduction
    if reduction != "NONE" and days != 1:
        raise InvalidConfigurationError(f"Package {configuration.package_type} is only available for one-day rentals")

    if catalog is None:
        catalog = get_catalog()
    tariff = catalog.get(vehicle.slug)
    if reduction != "NONE" and not tariff.supports_reduction:
        raise InvalidConfigurationError(f"Package {configuration.package_type} is not available for {vehicle.name}")
    rate = tariff.base_price_day if tariff.base_price_day is not None else vehicle.base_price_day
    km_plan = configuration.km_plan

    if days == 1:
        base_price = round_units(rate * tariff.same_day_multiplier(reduction, km_plan))
        daily_rate = base_price
    else:
        anchor, daily_rate = anchor_daily_rate(rate, tariff.anchors(km_plan), days)
        base_price = round_units(daily_rate * days)
        logger.debug(f"{vehicle.slug}: {days} days priced on anchor {anchor} ({km_plan})")

    base_raw = round_units(rate * tariff.same_day_multiplier("NONE", km_plan) * days)
    discount_amount = max(ZERO, base_raw - base_price)
    discount_pct = round2(discount_amount / base_raw * HUNDRED) if base_raw > 0 else ZERO
    discount_pct = min(discount_pct, HUNDRED)

    surcharges = catalog.surcharges
    extras = []
    insurance = ZERO
    if configuration.coverage == "PARTIAL":
        insurance = tariff.insurance_cost(days, reduction)
        extras.append(QuoteLine(name=EXTRA_LABELS["insurance"], price=round2(insurance)))

    # UNDER_25 replaces the standard surcharge, they never stack
    extra_driver = ZERO
    if configuration.extra_driver == "UNDER_25":
        extra_driver = surcharges.extra_driver_under25_per_day * days
    elif configuration.extra_driver == "STANDARD":
        extra_driver = surcharges.extra_driver_per_day * days
    if extra_driver:
        extras.append(QuoteLine(name=EXTRA_LABELS[configuration.extra_driver], price=round2(extra_driver)))

    delivery = ZERO
    if configuration.home_delivery:
        delivery += surcharges.home_delivery
        extras.append(QuoteLine(name=EXTRA_LABELS["home_delivery"], price=round2(surcharges.home_delivery)))
    if configuration.home_pickup:
        delivery += surcharges.home_pickup
        extras.append(QuoteLine(name=EXTRA_LABELS["home_pickup"], price=round2(surcharges.home_pickup)))

    extras_total = insurance + extra_driver + delivery

    return QuoteResult(
        total=round2(base_price + extras_total),
        days_count=days,
        daily_rate=round2(daily_rate),
        base_raw=round2(base_raw),
        raw_total=round2(base_raw + extras_total),
        discount_amount=round2(discount_amount),
        discount_pct=discount_pct,
        breakdown=QuoteBreakdown(
            base_with_discount=round2(base_price),
            insurance=round2(insurance),
            extra_driver=round2(extra_driver),
            delivery=round2(delivery),
            extras_total=round2(extras_total),
        ),
        extras=extras,
    )
