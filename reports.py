from io import BytesIO
from typing import Dict, Iterable

from openpyxl import Workbook

from schemas import Booking

HEADERS = [
    "Code", "Status", "Vehicle", "Start", "End", "Days", "Package", "Km Plan", "Coverage",
    "Extra Driver", "Delivery", "Pickup", "Customer", "Phone", "Email", "Total", "Discount", "Discount %",
]


def build_bookings_report(bookings: Iterable[Booking], vehicle_names: Dict[str, str]) -> BytesIO:
    wb = Workbook()
    ws = wb.active
    ws.title = "Bookings"

    ws.append(HEADERS)
    for b in bookings:
        ws.append([
            b.booking_code, b.status, vehicle_names.get(b.vehicle_id, b.vehicle_id),
            b.start_date.isoformat(), b.end_date.isoformat(), b.days_count,
            b.package_type, b.km_plan, b.coverage, b.extra_driver,
            "Yes" if b.home_delivery else "No", "Yes" if b.home_pickup else "No",
            f"{b.customer_first_name} {b.customer_last_name}", b.customer_phone, b.customer_email,
            float(b.total_price), float(b.discount_amount), float(b.discount_pct),
        ])

    bio = BytesIO()
    wb.save(bio)
    bio.seek(0)
    return bio
