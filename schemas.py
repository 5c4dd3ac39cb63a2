"""
Database Schemas for CICO Rent - Vehicle Booking API

Each Pydantic model corresponds to a MongoDB collection (class name lowercased)
unless noted otherwise. Money is carried as Decimal and stored as a decimal
string; calendar dates are stored as ISO strings.
"""

from datetime import date
from decimal import Decimal
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

VehicleType = Literal["CAR", "VAN"]
PackageType = Literal["STANDARD_24H", "VAN_4H", "VAN_10H", "WEEKLY", "MONTHLY"]
KmPlan = Literal["KM_100", "KM_200", "UNLIMITED"]
Coverage = Literal["BASE", "PARTIAL"]
ExtraDriver = Literal["NONE", "STANDARD", "UNDER_25"]
Reduction = Literal["NONE", "H4", "H10"]
BookingStatus = Literal["PENDING", "CONFIRMED", "CANCELLED"]
Role = Literal["ADMIN", "STAFF"]

ACTIVE_STATUSES = ("PENDING", "CONFIRMED")

PACKAGE_REDUCTIONS = {
    "VAN_4H": "H4",
    "VAN_10H": "H10",
}


# Authentication models
class Employee(BaseModel):
    username: str
    hashed_password: str
    role: Role = "STAFF"


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    username: str
    password: str


# Catalog
class Vehicle(BaseModel):
    name: str
    slug: str = Field(..., description="Unique URL key, also the tariff key")
    type: VehicleType
    base_price_day: Decimal = Field(..., ge=0, description="Reference daily rate")
    quantity: int = Field(..., ge=0, description="Units in the fleet")
    available_quantity: Optional[int] = Field(None, ge=0)
    color_options: List[str] = Field(default_factory=list)
    seats: int = Field(..., ge=1)
    transmission: str
    fuel_type: str
    image_url: Optional[str] = None

    @model_validator(mode="after")
    def check_quantities(self):
        if self.available_quantity is None:
            self.available_quantity = self.quantity
        if self.available_quantity > self.quantity:
            raise ValueError("available_quantity cannot exceed quantity")
        return self


class VehicleUpdate(BaseModel):
    name: Optional[str] = None
    type: Optional[VehicleType] = None
    base_price_day: Optional[Decimal] = Field(None, ge=0)
    quantity: Optional[int] = Field(None, ge=0)
    available_quantity: Optional[int] = Field(None, ge=0)
    color_options: Optional[List[str]] = None
    seats: Optional[int] = Field(None, ge=1)
    transmission: Optional[str] = None
    fuel_type: Optional[str] = None
    image_url: Optional[str] = None


class BlackoutDate(BaseModel):
    vehicle_id: str
    date: date


class BlackoutDateCreate(BaseModel):
    date: date


# Pricing
def _fold_extra_driver_flags(data: Any) -> Any:
    """Accept the two legacy booleans and turn them into one ExtraDriver value."""
    if not isinstance(data, dict):
        return data
    data = dict(data)
    under25 = data.pop("extra_driver_under25", None)
    value = data.get("extra_driver")
    if value is True:
        data["extra_driver"] = "STANDARD"
    elif value is False or value is None:
        data["extra_driver"] = "NONE"
    if under25:
        data["extra_driver"] = "UNDER_25"
    return data


class RentalConfiguration(BaseModel):
    vehicle_id: str
    start_date: date
    end_date: date = Field(..., description="Inclusive last day of the rental")
    package_type: PackageType = "STANDARD_24H"
    km_plan: KmPlan = "KM_100"
    coverage: Coverage = "BASE"
    extra_driver: ExtraDriver = "NONE"
    home_delivery: bool = False
    home_pickup: bool = False

    @model_validator(mode="before")
    @classmethod
    def fold_extra_driver_flags(cls, data: Any) -> Any:
        return _fold_extra_driver_flags(data)

    @property
    def reduction(self) -> str:
        return PACKAGE_REDUCTIONS.get(self.package_type, "NONE")


class QuoteLine(BaseModel):
    name: str
    price: Decimal


class QuoteBreakdown(BaseModel):
    base_with_discount: Decimal
    insurance: Decimal = Decimal("0")
    extra_driver: Decimal = Decimal("0")
    delivery: Decimal = Decimal("0")
    extras_total: Decimal = Decimal("0")


class QuoteResult(BaseModel):
    total: Decimal
    days_count: int
    daily_rate: Decimal
    base_raw: Decimal
    raw_total: Decimal
    discount_amount: Decimal = Field(..., ge=0)
    discount_pct: Decimal = Field(..., ge=0, le=100)
    breakdown: QuoteBreakdown
    extras: List[QuoteLine] = Field(default_factory=list)


class Availability(BaseModel):
    available_quantity: int
    blackout_dates: List[str] = Field(default_factory=list)


# Bookings
class CustomerDetails(BaseModel):
    customer_first_name: str
    customer_last_name: str
    customer_birth_date: date
    customer_phone: str
    customer_email: EmailStr
    driver_license_no: str
    add_first_name: Optional[str] = None
    add_last_name: Optional[str] = None
    add_birth_date: Optional[date] = None
    add_driver_license_no: Optional[str] = None
    notes: Optional[str] = None


class BookingCreate(CustomerDetails, RentalConfiguration):
    pass


class Booking(BookingCreate):
    """
    Bookings placed through the public flow
    Collection: "booking"
    """
    booking_code: str
    days_count: int
    total_price: Decimal
    discount_amount: Decimal
    discount_pct: Decimal
    status: BookingStatus = "PENDING"


class BookingUpdate(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    package_type: Optional[PackageType] = None
    km_plan: Optional[KmPlan] = None
    coverage: Optional[Coverage] = None
    extra_driver: Optional[ExtraDriver] = None
    home_delivery: Optional[bool] = None
    home_pickup: Optional[bool] = None
    customer_first_name: Optional[str] = None
    customer_last_name: Optional[str] = None
    customer_birth_date: Optional[date] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[EmailStr] = None
    driver_license_no: Optional[str] = None
    add_first_name: Optional[str] = None
    add_last_name: Optional[str] = None
    add_birth_date: Optional[date] = None
    add_driver_license_no: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[BookingStatus] = None

    @model_validator(mode="before")
    @classmethod
    def fold_extra_driver_flags(cls, data: Any) -> Any:
        # An absent or false flag leaves the stored extra driver unchanged.
        if not isinstance(data, dict):
            return data
        if isinstance(data.get("extra_driver"), bool) or data.get("extra_driver_under25"):
            return _fold_extra_driver_flags(data)
        data = dict(data)
        data.pop("extra_driver_under25", None)
        return data
