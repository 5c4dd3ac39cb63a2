import unittest
from datetime import date

from availability import check_availability, ensure_bookable, fully_booked_dates
from errors import BlackoutConflictError, VehicleUnavailableError
from schemas import Availability

from factories import insert_booking, insert_vehicle, make_db


class TestCheckAvailability(unittest.TestCase):
    def setUp(self):
        self.db = make_db()
        self.vehicle_id = insert_vehicle(self.db, quantity=2)

    def check(self, start, end, **kwargs):
        return check_availability(self.db, self.vehicle_id, date.fromisoformat(start), date.fromisoformat(end), **kwargs)

    def test_free_vehicle(self):
        result = self.check("2026-11-02", "2026-11-06")
        self.assertEqual(result.available_quantity, 2)
        self.assertEqual(result.blackout_dates, [])

    def test_overlapping_bookings_counted(self):
        insert_booking(self.db, self.vehicle_id, "2026-11-01", "2026-11-03")
        insert_booking(self.db, self.vehicle_id, "2026-11-05", "2026-11-10", status="CONFIRMED")
        self.assertEqual(self.check("2026-11-02", "2026-11-06").available_quantity, 0)
        self.assertEqual(self.check("2026-11-04", "2026-11-04").available_quantity, 2)

    def test_edges_are_inclusive(self):
        insert_booking(self.db, self.vehicle_id, "2026-11-01", "2026-11-02")
        self.assertEqual(self.check("2026-11-02", "2026-11-03").available_quantity, 1)
        self.assertEqual(self.check("2026-11-03", "2026-11-04").available_quantity, 2)

    def test_cancelled_bookings_ignored(self):
        insert_booking(self.db, self.vehicle_id, "2026-11-01", "2026-11-09", status="CANCELLED")
        self.assertEqual(self.check("2026-11-02", "2026-11-06").available_quantity, 2)

    def test_other_vehicles_ignored(self):
        other_id = insert_vehicle(self.db, slug="other-van")
        insert_booking(self.db, other_id, "2026-11-01", "2026-11-09")
        self.assertEqual(self.check("2026-11-02", "2026-11-06").available_quantity, 2)

    def test_excluded_booking(self):
        booking_id = insert_booking(self.db, self.vehicle_id, "2026-11-01", "2026-11-09")
        insert_booking(self.db, self.vehicle_id, "2026-11-01", "2026-11-09", code="089998")
        self.assertEqual(self.check("2026-11-02", "2026-11-06").available_quantity, 0)
        result = self.check("2026-11-02", "2026-11-06", exclude_booking_id=booking_id)
        self.assertEqual(result.available_quantity, 1)

    def test_never_negative(self):
        for i in range(3):
            insert_booking(self.db, self.vehicle_id, "2026-11-01", "2026-11-09", code=f"08999{i}")
        self.assertEqual(self.check("2026-11-02", "2026-11-06").available_quantity, 0)

    def test_blackout_dates_in_range(self):
        for day in ("2026-11-04", "2026-11-02", "2026-11-20"):
            self.db["blackoutdate"].insert_one({"vehicle_id": self.vehicle_id, "date": day})
        result = self.check("2026-11-02", "2026-11-06")
        self.assertEqual(result.available_quantity, 2)
        self.assertEqual(result.blackout_dates, ["2026-11-02", "2026-11-04"])

    def test_unknown_vehicle(self):
        result = check_availability(self.db, "64b7f0c2a1b2c3d4e5f60718", date(2026, 11, 2), date(2026, 11, 6))
        self.assertEqual(result.available_quantity, 0)
        result = check_availability(self.db, "not-an-id", date(2026, 11, 2), date(2026, 11, 6))
        self.assertEqual(result.available_quantity, 0)


class TestEnsureBookable(unittest.TestCase):
    def test_ok(self):
        ensure_bookable(Availability(available_quantity=1))

    def test_no_units(self):
        with self.assertRaises(VehicleUnavailableError):
            ensure_bookable(Availability(available_quantity=0))

    def test_blackout(self):
        with self.assertRaises(BlackoutConflictError) as ctx:
            ensure_bookable(Availability(available_quantity=2, blackout_dates=["2026-11-04"]))
        self.assertEqual(ctx.exception.blackout_dates, ["2026-11-04"])
        self.assertEqual(ctx.exception.to_dict()["code"], "blackout_conflict")


class TestFullyBookedDates(unittest.TestCase):
    def setUp(self):
        self.db = make_db()
        self.vehicle_id = insert_vehicle(self.db, quantity=2)
        self.today = date(2026, 11, 1)

    def test_days_with_every_unit_taken(self):
        insert_booking(self.db, self.vehicle_id, "2026-11-03", "2026-11-06")
        insert_booking(self.db, self.vehicle_id, "2026-11-05", "2026-11-08", code="089998")
        insert_booking(self.db, self.vehicle_id, "2026-11-05", "2026-11-08", status="CANCELLED", code="089997")
        self.assertEqual(
            fully_booked_dates(self.db, self.vehicle_id, today=self.today),
            ["2026-11-05", "2026-11-06"],
        )

    def test_clipped_to_window(self):
        insert_booking(self.db, self.vehicle_id, "2026-10-20", "2026-11-02")
        insert_booking(self.db, self.vehicle_id, "2026-10-25", "2026-11-02", code="089998")
        self.assertEqual(
            fully_booked_dates(self.db, self.vehicle_id, today=self.today),
            ["2026-11-01", "2026-11-02"],
        )

    def test_beyond_horizon_ignored(self):
        insert_booking(self.db, self.vehicle_id, "2027-03-01", "2027-03-02")
        insert_booking(self.db, self.vehicle_id, "2027-03-01", "2027-03-02", code="089998")
        self.assertEqual(fully_booked_dates(self.db, self.vehicle_id, today=self.today, horizon_days=30), [])

    def test_unknown_vehicle(self):
        self.assertEqual(fully_booked_dates(self.db, "not-an-id", today=self.today), [])


if __name__ == "__main__":
    unittest.main()
