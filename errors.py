"""
Error taxonomy for the booking API.

Every domain error carries the HTTP status it maps to and a short machine
readable code. Routes let these propagate; the exception handler in main.py
renders them.

- Validation errors (400): the request can never be priced as sent.
- Configuration errors (500): the tariff catalog lacks data for a
  legitimate request. Logged, never retried.
- Capacity errors (400): business-rule rejection, caller may pick other dates.
"""

from typing import Any, Dict, List, Optional


class RentalError(Exception):
    status_code = 400
    code = "rental_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code}


# -------- Validation --------
class ValidationFailure(RentalError):
    status_code = 400
    code = "validation_error"


class InvalidRangeError(ValidationFailure):
    code = "invalid_range"


class InvalidConfigurationError(ValidationFailure):
    code = "invalid_configuration"


class InvalidStatusTransitionError(ValidationFailure):
    code = "invalid_status_transition"


# -------- Catalog configuration --------
class ConfigurationError(RentalError):
    status_code = 500
    code = "configuration_error"


class TariffNotFoundError(ConfigurationError):
    code = "tariff_not_found"

    def __init__(self, vehicle_key: str):
        super().__init__(f"No tariff configured for vehicle '{vehicle_key}'")
        self.vehicle_key = vehicle_key


class RateNotDefinedError(ConfigurationError):
    code = "rate_not_defined"


# -------- Capacity --------
class CapacityError(RentalError):
    status_code = 400
    code = "capacity_error"


class VehicleUnavailableError(CapacityError):
    code = "vehicle_unavailable"


class BlackoutConflictError(CapacityError):
    code = "blackout_conflict"

    def __init__(self, message: str, blackout_dates: Optional[List[str]] = None):
        super().__init__(message)
        self.blackout_dates = blackout_dates or []

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["blackout_dates"] = self.blackout_dates
        return data


# -------- Lookup --------
class NotFoundError(RentalError):
    status_code = 404
    code = "not_found"
