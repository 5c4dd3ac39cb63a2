import logging
from typing import Optional

from pymongo import ReturnDocument

from config import Config

logger = logging.getLogger(__name__)

COUNTER_ID = "booking"


def format_booking_code(value: int, prefix: Optional[str] = None, width: Optional[int] = None) -> str:
    prefix = Config.BOOKING_CODE_PREFIX if prefix is None else prefix
    width = Config.BOOKING_CODE_WIDTH if width is None else width
    return f"{prefix}{value:0{width}d}"


def next_sequence_value(db) -> int:
    # Increment-and-read is one server-side operation, so concurrent callers
    # can never observe the same value.
    counter = db["counters"].find_one_and_update(
        {"_id": COUNTER_ID},
        {"$inc": {"last_value": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return int(counter["last_value"])


def next_booking_code(db, prefix: Optional[str] = None, width: Optional[int] = None) -> str:
    code = format_booking_code(next_sequence_value(db), prefix, width)
    logger.info(f"Assigned booking code {code}", extra={"booking_code": code})
    return code
