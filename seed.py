"""Seed demo vehicles, employees and the booking counter. Run: python seed.py"""

import logging
import sys
from datetime import datetime, timezone

import database
from booking_codes import COUNTER_ID
from config import Config, setup_logging
from database import create_document, ensure_indexes, to_document
from main import hash_password
from schemas import Employee, Vehicle
from tariffs import get_catalog

logger = logging.getLogger(__name__)

VEHICLES = [
    Vehicle(
        name="Volkswagen Polo",
        slug="volkswagen-polo",
        type="CAR",
        base_price_day="60",
        quantity=2,
        color_options=["White", "Black"],
        seats=5,
        transmission="MANUAL",
        fuel_type="GASOLINE",
    ),
    Vehicle(
        name="Volkswagen Crafter L3H3",
        slug="volkswagen-crafter",
        type="VAN",
        base_price_day="80",
        quantity=2,
        color_options=["White"],
        seats=3,
        transmission="MANUAL",
        fuel_type="DIESEL",
    ),
    Vehicle(
        name="Peugeot Boxer III L2H2",
        slug="peugeot-boxer-iii",
        type="VAN",
        base_price_day="80",
        quantity=3,
        color_options=["White"],
        seats=3,
        transmission="MANUAL",
        fuel_type="DIESEL",
    ),
]

EMPLOYEES = [
    ("admin", "admin", "ADMIN"),
    ("staff", "staff", "STAFF"),
]


def upsert_vehicle(db, vehicle: Vehicle) -> None:
    # Keyed by slug so bookings and blackout dates keep their vehicle_id
    now = datetime.now(timezone.utc)
    data = to_document(vehicle)
    data["updated_at"] = now
    db["vehicle"].update_one(
        {"slug": vehicle.slug},
        {"$set": data, "$setOnInsert": {"created_at": now}},
        upsert=True,
    )


def seed_database(db) -> None:
    logger.info("Clearing employees")
    db["employee"].delete_many({})

    ensure_indexes(db)

    catalog = get_catalog()
    for vehicle in VEHICLES:
        if vehicle.slug not in catalog:
            logger.warning(f"No tariff for {vehicle.slug}, quotes for it will fail")
        upsert_vehicle(db, vehicle)
    logger.info(f"Seeded {len(VEHICLES)} vehicles")

    for username, password, role in EMPLOYEES:
        create_document(db, "employee", Employee(username=username, hashed_password=hash_password(password), role=role))
    logger.info(f"Seeded {len(EMPLOYEES)} employees")

    # The counter is never reset, only created when missing
    db["counters"].update_one({"_id": COUNTER_ID}, {"$setOnInsert": {"last_value": 0}}, upsert=True)
    logger.info("Booking sequence initialized")


if __name__ == "__main__":
    setup_logging(Config.LOG_LEVEL)
    if database.db is None:
        logger.error("DATABASE_URL not set")
        sys.exit(1)
    seed_database(database.db)
