"""
Booking workflow: create, admin edits with re-pricing, status changes, delete.

The price of a booking is always recomputed server side with compute_quote;
totals sent by a client are never read. Check-then-insert for one vehicle
runs under a per-vehicle lock so two requests in this process cannot both
take the last unit.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from availability import check_availability, ensure_bookable
from booking_codes import next_booking_code
from database import create_document, oid, to_document
from duration import days_inclusive
from errors import InvalidStatusTransitionError, NotFoundError
from quote import compute_quote
from schemas import ACTIVE_STATUSES, Booking, BookingCreate, BookingUpdate, Vehicle
from tariffs import TariffCatalog

logger = logging.getLogger(__name__)

PRICE_FIELDS = (
    "start_date", "end_date", "package_type", "km_plan", "coverage",
    "extra_driver", "home_delivery", "home_pickup",
)

# Allowed status moves; CONFIRMED and CANCELLED are terminal.
STATUS_TRANSITIONS = {
    "PENDING": ("CONFIRMED", "CANCELLED"),
    "CONFIRMED": (),
    "CANCELLED": (),
}

_locks_guard = threading.Lock()
_vehicle_locks: Dict[str, threading.Lock] = {}


def vehicle_lock(vehicle_id: str) -> threading.Lock:
    with _locks_guard:
        lock = _vehicle_locks.get(vehicle_id)
        if lock is None:
            lock = _vehicle_locks[vehicle_id] = threading.Lock()
        return lock


def load_vehicle(db, vehicle_id: str) -> Vehicle:
    _id = oid(vehicle_id)
    doc = db["vehicle"].find_one({"_id": _id}) if _id else None
    if not doc:
        raise NotFoundError("Vehicle not found")
    return Vehicle.model_validate(doc)


def booking_from_document(doc: dict) -> Booking:
    return Booking.model_validate(doc)


def get_booking_document(db, booking_id: str) -> dict:
    _id = oid(booking_id)
    doc = db["booking"].find_one({"_id": _id}) if _id else None
    if not doc:
        raise NotFoundError("Booking not found")
    return doc


def _notify(notifier, booking: Booking, vehicle: Vehicle) -> None:
    if notifier is None:
        return
    try:
        notifier.booking_created(booking, vehicle.name)
    except Exception as e:
        logger.warning(f"E-mail sending failed, booking {booking.booking_code} was created: {e}",
                       extra={"booking_code": booking.booking_code})


def create_booking(db, payload: BookingCreate, catalog: Optional[TariffCatalog] = None, notifier=None) -> Tuple[str, Booking]:
    days_inclusive(payload.start_date, payload.end_date)
    vehicle = load_vehicle(db, payload.vehicle_id)
    quote = compute_quote(vehicle, payload, catalog)

    with vehicle_lock(payload.vehicle_id):
        ensure_bookable(check_availability(db, payload.vehicle_id, payload.start_date, payload.end_date))
        # A code consumed by a failed insert leaves a gap, never a duplicate.
        code = next_booking_code(db)
        booking = Booking(
            **payload.model_dump(),
            booking_code=code,
            days_count=quote.days_count,
            total_price=quote.total,
            discount_amount=quote.discount_amount,
            discount_pct=quote.discount_pct,
        )
        booking_id = create_document(db, "booking", booking)

    logger.info(f"Booking {code} created for {vehicle.slug}, total {booking.total_price}",
                extra={"booking_code": code})
    _notify(notifier, booking, vehicle)
    return booking_id, booking


def _check_transition(current: str, new: str) -> None:
    if new == current:
        return
    if new not in STATUS_TRANSITIONS.get(current, ()):
        raise InvalidStatusTransitionError(f"Cannot move booking from {current} to {new}")


def update_booking(db, booking_id: str, changes: BookingUpdate, catalog: Optional[TariffCatalog] = None) -> Booking:
    doc = get_booking_document(db, booking_id)
    current = booking_from_document(doc)
    updates = changes.model_dump(exclude_unset=True, exclude_none=True)

    if "status" in updates:
        _check_transition(current.status, updates["status"])

    merged = Booking.model_validate({**current.model_dump(), **updates})
    repriced = any(field in updates and updates[field] != getattr(current, field) for field in PRICE_FIELDS)
    redated = merged.start_date != current.start_date or merged.end_date != current.end_date

    lock = vehicle_lock(merged.vehicle_id)
    with lock:
        if repriced:
            days_inclusive(merged.start_date, merged.end_date)
            vehicle = load_vehicle(db, merged.vehicle_id)
            if redated and merged.status in ACTIVE_STATUSES:
                ensure_bookable(check_availability(
                    db, merged.vehicle_id, merged.start_date, merged.end_date, exclude_booking_id=booking_id,
                ))
            quote = compute_quote(vehicle, merged, catalog)
            merged = merged.model_copy(update={
                "days_count": quote.days_count,
                "total_price": quote.total,
                "discount_amount": quote.discount_amount,
                "discount_pct": quote.discount_pct,
            })
            logger.info(f"Booking {merged.booking_code} repriced to {merged.total_price}",
                        extra={"booking_code": merged.booking_code})

        data = to_document(merged)
        data["updated_at"] = datetime.now(timezone.utc)
        db["booking"].update_one({"_id": doc["_id"]}, {"$set": data})

    if merged.status != current.status:
        logger.info(f"Booking {merged.booking_code} {current.status} -> {merged.status}",
                    extra={"booking_code": merged.booking_code})
    return merged


def delete_booking(db, booking_id: str) -> None:
    doc = get_booking_document(db, booking_id)
    db["booking"].delete_one({"_id": doc["_id"]})
    logger.info(f"Booking {doc.get('booking_code')} deleted", extra={"booking_code": doc.get("booking_code")})


def list_bookings(db) -> List[dict]:
    return list(db["booking"].find().sort([("created_at", -1), ("_id", -1)]))
