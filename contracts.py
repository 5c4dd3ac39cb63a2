from datetime import datetime, timezone
from io import BytesIO

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from schemas import Booking

KM_PLAN_LABELS = {
    "KM_100": "100 km/day",
    "KM_200": "200 km/day",
    "UNLIMITED": "Unlimited",
}
COVERAGE_LABELS = {"BASE": "Base", "PARTIAL": "Partial"}
EXTRA_DRIVER_LABELS = {"NONE": "No", "STANDARD": "Yes", "UNDER_25": "Yes, under 25"}


def _yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"


def build_contract_pdf(booking: Booking, vehicle_name: str) -> BytesIO:
    bio = BytesIO()
    c_canvas = canvas.Canvas(bio, pagesize=A4)
    width, height = A4

    # Header
    c_canvas.setFont("Helvetica-Bold", 16)
    c_canvas.drawString(20 * mm, height - 20 * mm, f"CICO Rent - Rental Contract {booking.booking_code}")
    c_canvas.setFont("Helvetica", 10)
    c_canvas.drawString(20 * mm, height - 27 * mm, f"Generated: {datetime.now(timezone.utc).date().isoformat()}")

    y = height - 40 * mm

    def section(title, lines):
        nonlocal y
        c_canvas.setFont("Helvetica-Bold", 12)
        c_canvas.drawString(20 * mm, y, title)
        y -= 6 * mm
        c_canvas.setFont("Helvetica", 11)
        for line in lines:
            c_canvas.drawString(20 * mm, y, line)
            y -= 6 * mm
        y -= 2 * mm

    section("Customer", [
        f"Name: {booking.customer_first_name} {booking.customer_last_name}",
        f"Birth date: {booking.customer_birth_date.isoformat()}",
        f"Contact: {booking.customer_phone} | {booking.customer_email}",
        f"Driver license: {booking.driver_license_no}",
    ])

    if booking.add_first_name and booking.add_last_name:
        second = [
            f"Name: {booking.add_first_name} {booking.add_last_name}",
            f"Driver license: {booking.add_driver_license_no or ''}",
        ]
    else:
        second = ["None"]
    section("Additional driver", second)

    section("Rental", [
        f"Vehicle: {vehicle_name}",
        f"Period: {booking.start_date.isoformat()} - {booking.end_date.isoformat()} ({booking.days_count} days)",
        f"Mileage: {KM_PLAN_LABELS[booking.km_plan]}",
        f"Coverage: {COVERAGE_LABELS[booking.coverage]}",
        f"Extra driver: {EXTRA_DRIVER_LABELS[booking.extra_driver]}",
        f"Home delivery: {_yes_no(booking.home_delivery)} | Home pickup: {_yes_no(booking.home_pickup)}",
    ])

    section("Price", [
        f"Total (VAT included): €{booking.total_price}",
        f"Discount applied: €{booking.discount_amount} ({booking.discount_pct}%)",
    ])

    section("Notes", [booking.notes or "None"])

    # Signatures
    c_canvas.setFont("Helvetica", 10)
    c_canvas.drawString(20 * mm, 35 * mm, "Customer signature: ____________________")
    c_canvas.drawString(110 * mm, 35 * mm, "CICO Rent: ____________________")

    # Footer
    c_canvas.setFont("Helvetica", 9)
    c_canvas.drawString(20 * mm, 15 * mm, "CICO Rent - Via Cristoforo Colombo 1778, 00127 Roma")

    c_canvas.showPage()
    c_canvas.save()
    bio.seek(0)
    return bio
