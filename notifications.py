import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Optional

from config import Config
from schemas import Booking

logger = logging.getLogger(__name__)

PICKUP_ADDRESS = "Via Cristoforo Colombo 1778, 00127 Roma"


def _details_html(booking: Booking, vehicle_name: str, for_operator: bool) -> str:
    rows = [
        ("Code", booking.booking_code),
        ("Vehicle", vehicle_name),
        ("Period", f"{booking.start_date.isoformat()} - {booking.end_date.isoformat()}"),
        ("Days", str(booking.days_count)),
        ("Total", f"€{booking.total_price}"),
    ]
    if for_operator:
        rows[1:1] = [
            ("Customer", f"{booking.customer_first_name} {booking.customer_last_name}"),
            ("Email", booking.customer_email),
            ("Phone", booking.customer_phone),
        ]
        if booking.notes:
            rows.append(("Notes", booking.notes))
    else:
        rows.append(("Pickup", PICKUP_ADDRESS))
    return "".join(f"<p><strong>{escape(k)}:</strong> {escape(str(v))}</p>" for k, v in rows)


def customer_message(booking: Booking, vehicle_name: str) -> MIMEMultipart:
    msg = MIMEMultipart("alternative")
    msg["Subject"] = f"CICO Rent - Booking {booking.booking_code} received"
    body = (
        f"<h2>Dear {escape(booking.customer_first_name)} {escape(booking.customer_last_name)},</h2>"
        "<p>Your booking has been received. One of our operators will call you today to confirm it.</p>"
        f"{_details_html(booking, vehicle_name, for_operator=False)}"
        f"<p><strong>Support:</strong> {escape(Config.SUPPORT_PHONE)}</p>"
        "<p>Thank you for choosing CICO Rent!</p>"
    )
    msg.attach(MIMEText(body, "html"))
    return msg


def operator_message(booking: Booking, vehicle_name: str) -> MIMEMultipart:
    msg = MIMEMultipart("alternative")
    msg["Subject"] = f"New booking {booking.booking_code}"
    body = (
        "<h2>New booking received</h2>"
        f"{_details_html(booking, vehicle_name, for_operator=True)}"
        "<p>Open the admin area to manage the booking.</p>"
    )
    msg.attach(MIMEText(body, "html"))
    return msg


class Notifier:
    """Sends booking e-mails over SMTP. Callers treat every failure as non-fatal."""

    def __init__(self, host: Optional[str] = None, port: Optional[int] = None, user: Optional[str] = None,
                 password: Optional[str] = None, sender: Optional[str] = None, operator_email: Optional[str] = None):
        self.host = host if host is not None else Config.SMTP_HOST
        self.port = port or Config.SMTP_PORT
        self.user = user if user is not None else Config.SMTP_USER
        self.password = password if password is not None else Config.SMTP_PASS
        self.sender = sender or Config.SMTP_FROM
        self.operator_email = operator_email if operator_email is not None else Config.OP_EMAIL

    @property
    def configured(self) -> bool:
        return bool(self.host)

    def _send(self, to_email: str, msg: MIMEMultipart) -> None:
        msg["From"] = f'"CICO Rent" <{self.sender}>'
        msg["To"] = to_email
        if self.port == 465:
            server = smtplib.SMTP_SSL(self.host, self.port)
        else:
            server = smtplib.SMTP(self.host, self.port)
        with server:
            if self.port != 465:
                server.starttls()
            if self.user and self.password:
                server.login(self.user, self.password)
            server.sendmail(self.sender, [to_email], msg.as_string())

    def booking_created(self, booking: Booking, vehicle_name: str) -> bool:
        if not self.configured:
            logger.info(f"SMTP not configured, skipping e-mails for {booking.booking_code}")
            return False
        self._send(booking.customer_email, customer_message(booking, vehicle_name))
        if self.operator_email:
            self._send(self.operator_email, operator_message(booking, vehicle_name))
        return True
