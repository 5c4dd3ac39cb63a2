import logging
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError

import database
from availability import check_availability, fully_booked_dates
from bookings import (
    booking_from_document,
    create_booking,
    delete_booking,
    get_booking_document,
    list_bookings,
    load_vehicle,
    update_booking,
)
from config import Config, setup_logging
from contracts import build_contract_pdf
from database import create_document, ensure_indexes, get_documents, oid, serialize_doc, to_document
from duration import days_inclusive, parse_date
from errors import ConfigurationError, NotFoundError, RentalError
from notifications import Notifier
from quote import compute_quote
from reports import build_bookings_report
from schemas import (
    Availability,
    BlackoutDate,
    BlackoutDateCreate,
    BookingCreate,
    BookingUpdate,
    Employee,
    LoginRequest,
    QuoteResult,
    RentalConfiguration,
    Token,
    Vehicle,
    VehicleUpdate,
)
from tariffs import TariffCatalog, get_catalog

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
auth_scheme = HTTPBearer()


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


def create_token(sub: str, role: str) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": sub,
        "role": role,
        "exp": now + timedelta(minutes=Config.JWT_EXPIRES_MIN),
        "iat": now,
    }
    return jwt.encode(payload, Config.JWT_SECRET, algorithm="HS256")


# -------- Dependencies --------
def get_db():
    if database.db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return database.db


def get_tariffs() -> TariffCatalog:
    return get_catalog()


def get_notifier() -> Notifier:
    return Notifier()


def get_current_employee(credentials: HTTPAuthorizationCredentials = Depends(auth_scheme), db=Depends(get_db)):
    token = credentials.credentials
    try:
        payload = jwt.decode(token, Config.JWT_SECRET, algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")

    employee_id = oid(payload.get("sub") or "")
    employee = db["employee"].find_one({"_id": employee_id}) if employee_id else None
    if not employee:
        raise HTTPException(status_code=401, detail="Employee not found")
    return employee


def require_admin(current=Depends(get_current_employee)):
    if current.get("role") != "ADMIN":
        raise HTTPException(status_code=403, detail="Administrator privileges required")
    return current


app = FastAPI(title="CICO Rent - Vehicle Booking API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RentalError)
async def rental_error_handler(request: Request, exc: RentalError):
    if isinstance(exc, ConfigurationError):
        logger.error(f"Tariff configuration error on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.on_event("startup")
def startup():
    setup_logging(Config.LOG_LEVEL)
    Config.validate()
    if database.db is None:
        logger.warning("DATABASE_URL not set, persistence disabled")
        return
    ensure_indexes(database.db)
    ensure_admin_employee(database.db)


def ensure_admin_employee(db):
    # Create default admin if none exists
    if db["employee"].find_one({"username": Config.ADMIN_USERNAME}):
        return
    create_document(db, "employee", Employee(
        username=Config.ADMIN_USERNAME,
        hashed_password=hash_password(Config.ADMIN_PASSWORD),
        role="ADMIN",
    ))
    logger.info(f"Default admin '{Config.ADMIN_USERNAME}' created")


# -------- Catalog --------
@app.get("/api/vehicles")
def list_vehicles(db=Depends(get_db)):
    return [serialize_doc(d) for d in get_documents(db, "vehicle", sort=[("name", 1)])]


@app.get("/api/vehicles/{vehicle_id}")
def get_vehicle(vehicle_id: str, db=Depends(get_db)):
    _id = oid(vehicle_id)
    doc = db["vehicle"].find_one({"_id": _id}) if _id else None
    if not doc:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    return serialize_doc(doc)


@app.get("/api/vehicles/{vehicle_id}/availability", response_model=Availability)
def vehicle_availability(vehicle_id: str, start: str = Query(..., alias="from"), end: str = Query(..., alias="to"), db=Depends(get_db)):
    start_date, end_date = parse_date(start), parse_date(end)
    days_inclusive(start_date, end_date)
    load_vehicle(db, vehicle_id)
    return check_availability(db, vehicle_id, start_date, end_date)


@app.get("/api/vehicles/{vehicle_id}/fully-booked")
def vehicle_fully_booked(vehicle_id: str, db=Depends(get_db)):
    load_vehicle(db, vehicle_id)
    return fully_booked_dates(db, vehicle_id)


@app.get("/api/vehicles/{vehicle_id}/blackout-dates")
def vehicle_blackout_dates(vehicle_id: str, db=Depends(get_db)):
    return [serialize_doc(d) for d in get_documents(db, "blackoutdate", {"vehicle_id": vehicle_id}, sort=[("date", 1)])]


# -------- Pricing & booking --------
@app.post("/api/quote", response_model=QuoteResult)
def quote(payload: RentalConfiguration, db=Depends(get_db), catalog: TariffCatalog = Depends(get_tariffs)):
    days_inclusive(payload.start_date, payload.end_date)
    vehicle = load_vehicle(db, payload.vehicle_id)
    return compute_quote(vehicle, payload, catalog)


@app.post("/api/bookings")
def place_booking(payload: BookingCreate, db=Depends(get_db), catalog: TariffCatalog = Depends(get_tariffs),
                  notifier: Notifier = Depends(get_notifier)):
    booking_id, _ = create_booking(db, payload, catalog, notifier)
    return {
        "booking": serialize_doc(get_booking_document(db, booking_id)),
        "message": "Booking created. One of our operators will call you today.",
    }


# -------- Auth --------
@app.post("/api/admin/login", response_model=Token)
def login(payload: LoginRequest, db=Depends(get_db)):
    employee = db["employee"].find_one({"username": payload.username})
    if not employee or not verify_password(payload.password, employee.get("hashed_password", "")):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    token = create_token(str(employee["_id"]), employee.get("role", "STAFF"))
    return {"access_token": token, "token_type": "bearer"}


@app.get("/api/admin/me")
def me(current=Depends(get_current_employee)):
    return {"id": str(current["_id"]), "username": current["username"], "role": current.get("role", "STAFF")}


# -------- Bookings (staff) --------
def _vehicle_names(db) -> dict:
    return {str(v["_id"]): v.get("name", "") for v in db["vehicle"].find({}, {"name": 1})}


@app.get("/api/admin/bookings")
def admin_list_bookings(db=Depends(get_db), current=Depends(get_current_employee)):
    names = _vehicle_names(db)
    out = []
    for d in list_bookings(db):
        item = serialize_doc(d)
        item["vehicle_name"] = names.get(d.get("vehicle_id"), "")
        out.append(item)
    return out


@app.get("/api/admin/bookings/{booking_id}")
def admin_get_booking(booking_id: str, db=Depends(get_db), current=Depends(get_current_employee)):
    doc = get_booking_document(db, booking_id)
    item = serialize_doc(doc)
    vehicle = db["vehicle"].find_one({"_id": oid(doc["vehicle_id"])}) if oid(doc["vehicle_id"]) else None
    item["vehicle"] = serialize_doc(vehicle) if vehicle else None
    return item


@app.patch("/api/admin/bookings/{booking_id}")
def admin_update_booking(booking_id: str, payload: BookingUpdate, db=Depends(get_db),
                         catalog: TariffCatalog = Depends(get_tariffs), current=Depends(get_current_employee)):
    update_booking(db, booking_id, payload, catalog)
    return serialize_doc(get_booking_document(db, booking_id))


@app.delete("/api/admin/bookings/{booking_id}")
def admin_delete_booking(booking_id: str, db=Depends(get_db), current=Depends(get_current_employee)):
    delete_booking(db, booking_id)
    return {"status": "ok"}


@app.get("/api/admin/bookings/{booking_id}/contract")
def admin_booking_contract(booking_id: str, db=Depends(get_db), current=Depends(get_current_employee)):
    booking = booking_from_document(get_booking_document(db, booking_id))
    try:
        vehicle_name = load_vehicle(db, booking.vehicle_id).name
    except NotFoundError:
        vehicle_name = "N/A"
    pdf_stream = build_contract_pdf(booking, vehicle_name)
    filename = f"Contract-{booking.booking_code}.pdf"
    return StreamingResponse(pdf_stream, media_type="application/pdf", headers={"Content-Disposition": f"attachment; filename={filename}"})


@app.get("/api/admin/reports/bookings")
def admin_bookings_report(db=Depends(get_db), current=Depends(get_current_employee)):
    bookings = [booking_from_document(d) for d in list_bookings(db)]
    bio = build_bookings_report(bookings, _vehicle_names(db))
    return StreamingResponse(bio, media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", headers={"Content-Disposition": "attachment; filename=bookings_report.xlsx"})


# -------- Vehicles & blackout dates (admin) --------
@app.post("/api/admin/vehicles")
def admin_create_vehicle(payload: Vehicle, db=Depends(get_db), current=Depends(require_admin)):
    if db["vehicle"].find_one({"slug": payload.slug}):
        raise HTTPException(status_code=400, detail="Slug already exists")
    vehicle_id = create_document(db, "vehicle", payload)
    return serialize_doc(db["vehicle"].find_one({"_id": oid(vehicle_id)}))


@app.patch("/api/admin/vehicles/{vehicle_id}")
def admin_update_vehicle(vehicle_id: str, payload: VehicleUpdate, db=Depends(get_db), current=Depends(require_admin)):
    _id = oid(vehicle_id)
    doc = db["vehicle"].find_one({"_id": _id}) if _id else None
    if not doc:
        raise HTTPException(status_code=404, detail="Vehicle not found")

    updates = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "quantity" in updates and "available_quantity" not in updates:
        updates["available_quantity"] = min(int(doc.get("available_quantity", updates["quantity"])), updates["quantity"])
    try:
        Vehicle.model_validate({**doc, **updates})
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    data = to_document(updates)
    data["updated_at"] = datetime.now(timezone.utc)
    db["vehicle"].update_one({"_id": _id}, {"$set": data})
    return serialize_doc(db["vehicle"].find_one({"_id": _id}))


@app.post("/api/admin/vehicles/{vehicle_id}/blackout")
def admin_create_blackout(vehicle_id: str, payload: BlackoutDateCreate, db=Depends(get_db), current=Depends(require_admin)):
    load_vehicle(db, vehicle_id)
    if db["blackoutdate"].find_one({"vehicle_id": vehicle_id, "date": payload.date.isoformat()}):
        raise HTTPException(status_code=400, detail="Date already blocked for this vehicle")
    try:
        blackout_id = create_document(db, "blackoutdate", BlackoutDate(vehicle_id=vehicle_id, date=payload.date))
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Date already blocked for this vehicle")
    return serialize_doc(db["blackoutdate"].find_one({"_id": oid(blackout_id)}))


@app.delete("/api/admin/blackout/{blackout_id}")
def admin_delete_blackout(blackout_id: str, db=Depends(get_db), current=Depends(require_admin)):
    _id = oid(blackout_id)
    res = db["blackoutdate"].delete_one({"_id": _id}) if _id else None
    if res is None or res.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Blackout date not found")
    return {"status": "ok"}


@app.get("/")
def root():
    return {"message": "CICO Rent API running"}


@app.get("/test")
def test():
    status = {
        "backend": "running",
        "database": "connected" if database.db is not None else "not_configured",
    }
    if database.db is not None:
        try:
            status["collections"] = database.db.list_collection_names()
        except Exception as e:
            status["error"] = str(e)
    return status


if __name__ == "__main__":
    import os

    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
