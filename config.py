import os
import json
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file in project root
_project_root = Path(__file__).resolve().parent
load_dotenv(_project_root / ".env")


class Config:
    """Configuration management for the booking API."""

    # Persistence
    DATABASE_URL = os.getenv("DATABASE_URL")
    DATABASE_NAME = os.getenv("DATABASE_NAME", "cicorent")

    # Security
    JWT_SECRET = os.getenv("JWT_SECRET", "devsecret-change-me")
    JWT_EXPIRES_MIN = int(os.getenv("JWT_EXPIRES_MIN", "240"))
    ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
    ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin")

    # Mail
    SMTP_HOST = os.getenv("SMTP_HOST")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "465"))
    SMTP_USER = os.getenv("SMTP_USER")
    SMTP_PASS = os.getenv("SMTP_PASS")
    SMTP_FROM = os.getenv("SMTP_FROM", SMTP_USER or "info@cicorent.it")
    OP_EMAIL = os.getenv("OP_EMAIL")
    SUPPORT_PHONE = os.getenv("SUPPORT_PHONE", "")

    # Booking codes
    BOOKING_CODE_PREFIX = os.getenv("BOOKING_CODE_PREFIX", "08")
    BOOKING_CODE_WIDTH = int(os.getenv("BOOKING_CODE_WIDTH", "4"))

    # Pricing
    TARIFFS_PATH = os.getenv("TARIFFS_PATH")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def validate(cls):
        """Check for settings that must not keep their development defaults."""
        missing = []
        if not cls.DATABASE_URL:
            missing.append("DATABASE_URL")
        if cls.JWT_SECRET == "devsecret-change-me":
            missing.append("JWT_SECRET")

        if missing:
            import logging
            logging.getLogger(__name__).warning(
                f"Missing or default settings: {', '.join(missing)}"
            )
            return False
        return True


def setup_logging(level="INFO"):
    """Configure structured JSON logging."""
    import logging
    import sys

    # Create a handler that writes to stdout
    handler = logging.StreamHandler(sys.stdout)

    class JsonFormatter(logging.Formatter):
        def format(self, record):
            log_record = {
                "timestamp": self.formatTime(record, self.datefmt),
                "level": record.levelname,
                "message": record.getMessage(),
                "module": record.module,
                "function": record.funcName,
            }
            if hasattr(record, "booking_code"):
                log_record["booking_code"] = record.booking_code
            if record.exc_info:
                log_record["exception"] = self.formatException(record.exc_info)
            return json.dumps(log_record)

    handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    # Remove existing handlers to avoid duplication
    for h in list(root.handlers):
        root.removeHandler(h)
    root.addHandler(handler)
