"""
Capacity checks for a vehicle model over an inclusive date range.

This is a count, not a unit assignment: a vehicle with quantity N can carry
N overlapping active bookings. Blackout dates block the vehicle regardless
of free units.
"""

import logging
from collections import Counter
from datetime import date, timedelta
from typing import List, Optional

from database import oid
from errors import BlackoutConflictError, VehicleUnavailableError
from schemas import ACTIVE_STATUSES, Availability

logger = logging.getLogger(__name__)


def _overlap_query(vehicle_id: str, start_date: date, end_date: date) -> dict:
    return {
        "vehicle_id": vehicle_id,
        "status": {"$in": list(ACTIVE_STATUSES)},
        "start_date": {"$lte": end_date.isoformat()},
        "end_date": {"$gte": start_date.isoformat()},
    }


def blackout_dates_in_range(db, vehicle_id: str, start_date: date, end_date: date) -> List[str]:
    docs = db["blackoutdate"].find({
        "vehicle_id": vehicle_id,
        "date": {"$gte": start_date.isoformat(), "$lte": end_date.isoformat()},
    }).sort("date", 1)
    return [d["date"] for d in docs]


def check_availability(db, vehicle_id: str, start_date: date, end_date: date, exclude_booking_id: Optional[str] = None) -> Availability:
    vehicle = db["vehicle"].find_one({"_id": oid(vehicle_id)}) if oid(vehicle_id) else None
    if not vehicle:
        return Availability(available_quantity=0, blackout_dates=[])

    query = _overlap_query(vehicle_id, start_date, end_date)
    if exclude_booking_id and oid(exclude_booking_id):
        query["_id"] = {"$ne": oid(exclude_booking_id)}
    overlapping = db["booking"].count_documents(query)

    return Availability(
        available_quantity=max(0, int(vehicle.get("quantity", 0)) - overlapping),
        blackout_dates=blackout_dates_in_range(db, vehicle_id, start_date, end_date),
    )


def ensure_bookable(availability: Availability) -> None:
    if availability.available_quantity <= 0:
        raise VehicleUnavailableError("Vehicle not available in the selected period")
    if availability.blackout_dates:
        raise BlackoutConflictError(
            "The selected period includes unavailable dates",
            blackout_dates=availability.blackout_dates,
        )


def fully_booked_dates(db, vehicle_id: str, today: Optional[date] = None, horizon_days: int = 90) -> List[str]:
    """Days in [today, today + horizon] on which active bookings use every unit."""
    vehicle = db["vehicle"].find_one({"_id": oid(vehicle_id)}) if oid(vehicle_id) else None
    if not vehicle:
        return []

    today = today or date.today()
    horizon = today + timedelta(days=horizon_days)
    counts = Counter()
    for booking in db["booking"].find(_overlap_query(vehicle_id, today, horizon)):
        day = max(date.fromisoformat(booking["start_date"]), today)
        last = min(date.fromisoformat(booking["end_date"]), horizon)
        while day <= last:
            counts[day] += 1
            day += timedelta(days=1)

    quantity = int(vehicle.get("quantity", 0))
    return sorted(d.isoformat() for d, n in counts.items() if n >= quantity)
