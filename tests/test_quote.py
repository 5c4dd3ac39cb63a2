import unittest
from datetime import date, timedelta
from decimal import Decimal

from errors import InvalidConfigurationError, InvalidRangeError, RateNotDefinedError, TariffNotFoundError
from quote import compute_quote, round2, round_units
from schemas import RentalConfiguration, Vehicle
from tariffs import DEFAULT_TARIFFS, TariffCatalog

from factories import synthetic_catalog

BASE_RATES = {"volkswagen-polo": "60", "volkswagen-crafter": "80", "peugeot-boxer-iii": "80"}


def make_vehicle(slug="test-van", base_price_day="80", type="VAN"):
    return Vehicle(
        name=slug.replace("-", " ").title(),
        slug=slug,
        type=type,
        base_price_day=base_price_day,
        quantity=2,
        seats=3,
        transmission="MANUAL",
        fuel_type="DIESEL",
    )


def configuration(start="2026-11-02", end="2026-11-06", **kwargs):
    return RentalConfiguration(vehicle_id="v1", start_date=start, end_date=end, **kwargs)


class TestRounding(unittest.TestCase):
    def test_half_up(self):
        self.assertEqual(round_units(Decimal("642.5")), Decimal("643"))
        self.assertEqual(round_units(Decimal("642.49")), Decimal("642"))
        self.assertEqual(round2(Decimal("19.625")), Decimal("19.63"))


class TestSyntheticTariff(unittest.TestCase):
    def setUp(self):
        self.catalog = synthetic_catalog()
        self.vehicle = make_vehicle()

    def test_five_days_on_anchor(self):
        q = compute_quote(self.vehicle, configuration(), self.catalog)
        self.assertEqual(q.days_count, 5)
        self.assertEqual(q.total, Decimal("340"))
        self.assertEqual(q.base_raw, Decimal("400"))
        self.assertEqual(q.discount_amount, Decimal("60"))
        self.assertEqual(q.discount_pct, Decimal("15"))
        self.assertEqual(q.daily_rate, Decimal("68"))
        self.assertEqual(q.extras, [])

    def test_one_day_unlimited(self):
        q = compute_quote(self.vehicle, configuration(end="2026-11-02", km_plan="UNLIMITED"), self.catalog)
        self.assertEqual(q.days_count, 1)
        self.assertEqual(q.total, Decimal("110"))
        self.assertEqual(q.daily_rate, Decimal("110"))
        self.assertEqual(q.discount_amount, Decimal("0"))
        self.assertEqual(q.discount_pct, Decimal("0"))

    def test_between_anchors_uses_lower_rate(self):
        q = compute_quote(self.vehicle, configuration(end="2026-11-05"), self.catalog)
        self.assertEqual(q.days_count, 4)
        self.assertEqual(q.daily_rate, Decimal("75"))
        self.assertEqual(q.total, Decimal("300"))
        self.assertEqual(q.base_raw, Decimal("320"))
        self.assertEqual(q.discount_pct, Decimal("6.25"))

    def test_beyond_last_anchor(self):
        q = compute_quote(self.vehicle, configuration(end="2026-11-09"), self.catalog)
        self.assertEqual(q.days_count, 8)
        self.assertEqual(q.total, Decimal("544"))

    def test_partial_coverage_added_undiscounted(self):
        q = compute_quote(self.vehicle, configuration(coverage="PARTIAL"), self.catalog)
        self.assertEqual(q.breakdown.insurance, Decimal("75"))
        self.assertEqual(q.breakdown.base_with_discount, Decimal("340"))
        self.assertEqual(q.total, Decimal("415"))
        self.assertEqual(q.raw_total, Decimal("475"))
        self.assertEqual(q.discount_amount, Decimal("60"))

    def test_tariff_rate_falls_back_to_vehicle(self):
        q = compute_quote(make_vehicle(base_price_day="100"), configuration(), self.catalog)
        self.assertEqual(q.total, Decimal("425"))

    def test_same_day_total_is_base_plus_extras(self):
        q = compute_quote(
            self.vehicle,
            configuration(end="2026-11-02", coverage="PARTIAL", extra_driver="STANDARD", home_delivery=True),
            self.catalog,
        )
        self.assertEqual(q.total, q.breakdown.base_with_discount + q.breakdown.extras_total)
        self.assertEqual(q.breakdown.extras_total, Decimal("58"))

    def test_missing_plan_is_configuration_error(self):
        with self.assertRaises(RateNotDefinedError):
            compute_quote(self.vehicle, configuration(km_plan="UNLIMITED"), self.catalog)

    def test_end_before_start(self):
        with self.assertRaises(InvalidRangeError):
            compute_quote(self.vehicle, configuration(start="2026-11-06", end="2026-11-02"), TariffCatalog({}))


class TestDefaultTariffs(unittest.TestCase):
    def setUp(self):
        self.catalog = TariffCatalog.from_dict(DEFAULT_TARIFFS)
        self.crafter = make_vehicle(slug="volkswagen-crafter")

    def test_van_four_hours_with_partial_coverage(self):
        q = compute_quote(
            self.crafter,
            configuration(end="2026-11-02", package_type="VAN_4H", coverage="PARTIAL"),
            self.catalog,
        )
        self.assertEqual(q.breakdown.base_with_discount, Decimal("50"))
        self.assertEqual(q.breakdown.insurance, Decimal("10"))
        self.assertEqual(q.total, Decimal("60"))
        self.assertEqual(q.discount_amount, Decimal("30"))

    def test_ten_days_all_extras(self):
        q = compute_quote(
            self.crafter,
            configuration(
                start="2026-11-02", end="2026-11-11", coverage="PARTIAL",
                extra_driver="UNDER_25", home_delivery=True, home_pickup=True,
            ),
            self.catalog,
        )
        self.assertEqual(q.days_count, 10)
        self.assertEqual(q.breakdown.base_with_discount, Decimal("643"))
        self.assertEqual(q.base_raw, Decimal("800"))
        self.assertEqual(q.discount_amount, Decimal("157"))
        self.assertEqual(q.discount_pct, Decimal("19.63"))
        self.assertEqual(q.breakdown.insurance, Decimal("100"))
        self.assertEqual(q.breakdown.extra_driver, Decimal("100"))
        self.assertEqual(q.breakdown.delivery, Decimal("60"))
        self.assertEqual(q.total, Decimal("903"))
        self.assertEqual(
            [line.name for line in q.extras],
            ["Partial coverage", "Extra driver under 25", "Home delivery", "Home pickup"],
        )

    def test_legacy_flags_under25_replaces_standard(self):
        config = RentalConfiguration(
            vehicle_id="v1", start_date="2026-11-02", end_date="2026-11-04",
            extra_driver=True, extra_driver_under25=True,
        )
        self.assertEqual(config.extra_driver, "UNDER_25")
        q = compute_quote(self.crafter, config, self.catalog)
        self.assertEqual(q.breakdown.extra_driver, Decimal("30"))
        self.assertEqual(len(q.extras), 1)

    def test_legacy_flag_standard(self):
        config = RentalConfiguration(vehicle_id="v1", start_date="2026-11-02", end_date="2026-11-04", extra_driver=True)
        q = compute_quote(self.crafter, config, self.catalog)
        self.assertEqual(q.breakdown.extra_driver, Decimal("24"))

    def test_reduced_package_rejected_for_several_days(self):
        with self.assertRaises(InvalidConfigurationError):
            compute_quote(self.crafter, configuration(package_type="VAN_4H"), self.catalog)

    def test_polo_without_km_200(self):
        polo = make_vehicle(slug="volkswagen-polo", base_price_day="60", type="CAR")
        with self.assertRaises(RateNotDefinedError):
            compute_quote(polo, configuration(km_plan="KM_200"), self.catalog)

    def test_van_package_on_car(self):
        polo = make_vehicle(slug="volkswagen-polo", base_price_day="60", type="CAR")
        with self.assertRaises(InvalidConfigurationError):
            compute_quote(polo, configuration(end="2026-11-02", package_type="VAN_10H"), self.catalog)

    def test_polo_one_day_unlimited(self):
        polo = make_vehicle(slug="volkswagen-polo", base_price_day="60", type="CAR")
        q = compute_quote(polo, configuration(end="2026-11-02", km_plan="UNLIMITED"), self.catalog)
        self.assertEqual(q.total, Decimal("65"))

    def test_unknown_vehicle(self):
        with self.assertRaises(TariffNotFoundError):
            compute_quote(make_vehicle(slug="fiat-ducato"), configuration(), self.catalog)

    def test_daily_rate_never_increases_with_length(self):
        start = date(2026, 11, 1)
        for slug in self.catalog.keys():
            vehicle = make_vehicle(slug=slug, base_price_day=BASE_RATES[slug])
            for km_plan in self.catalog.get(slug).multi_day:
                previous = None
                for days in range(2, 41):
                    end = start + timedelta(days=days - 1)
                    q = compute_quote(vehicle, configuration(start=start, end=end, km_plan=km_plan), self.catalog)
                    self.assertEqual(q.days_count, days)
                    if previous is not None:
                        self.assertLessEqual(q.daily_rate, previous, f"{slug} {km_plan} {days} days")
                    previous = q.daily_rate

    def test_polo_month_not_dearer_per_day_than_week(self):
        polo = make_vehicle(slug="volkswagen-polo", base_price_day="60", type="CAR")
        start = date(2026, 11, 1)
        q29 = compute_quote(polo, configuration(start=start, end=start + timedelta(days=28), km_plan="UNLIMITED"), self.catalog)
        q30 = compute_quote(polo, configuration(start=start, end=start + timedelta(days=29), km_plan="UNLIMITED"), self.catalog)
        self.assertEqual(q29.total, Decimal("870"))
        self.assertEqual(q30.total, Decimal("900"))
        self.assertLessEqual(q30.daily_rate, q29.daily_rate)

    def test_rate_constant_between_anchors(self):
        rates = set()
        for end in ("2026-11-07", "2026-11-15", "2026-11-29"):
            q = compute_quote(self.crafter, configuration(start="2026-11-01", end=end), self.catalog)
            rates.add(q.daily_rate)
        self.assertEqual(len(rates), 1)

    def test_discount_bounds(self):
        for km_plan in ("KM_100", "UNLIMITED"):
            for end in ("2026-11-01", "2026-11-03", "2026-11-09", "2026-12-15"):
                q = compute_quote(self.crafter, configuration(start="2026-11-01", end=end, km_plan=km_plan), self.catalog)
                self.assertGreaterEqual(q.discount_amount, 0)
                self.assertGreaterEqual(q.discount_pct, 0)
                self.assertLessEqual(q.discount_pct, 100)


if __name__ == "__main__":
    unittest.main()
