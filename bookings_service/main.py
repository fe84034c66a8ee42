from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from common.auth import (
    ADMIN_ROLE,
    SERVICE_ACCOUNT_ROLE,
    USER_ROLE,
    is_admin,
    require_roles,
    security,
)
from common.cache import get_cached_json, invalidate, set_cached_json
from common.logging_config import configure_logging

from . import models, schemas
from .account_client import AccountDirectory, get_account_directory
from .database import Base, engine, get_db
from .equipment_client import EquipmentDirectory, get_equipment_directory
from .errors import BookingError, NotAuthenticated
from .rate_limiter import booking_rate_limiter
from .repository import BookingRepository
from .rules import to_naive_utc
from .service import BookingService

SERVICE_NAME = "bookings"

logger = configure_logging("bookings_service")

# Create tables
Base.metadata.create_all(bind=engine)

app = FastAPI(title="Bookings Service", version="1.0.0")
router_v1 = APIRouter(prefix="/api/v1")


def error_body(request: Request, status_code: int, detail) -> Dict:
    return {
        "service": SERVICE_NAME,
        "path": request.url.path,
        "method": request.method,
        "status_code": status_code,
        "detail": detail,
    }


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(request, exc.status_code, exc.detail),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(BookingError)
async def booking_exception_handler(request: Request, exc: BookingError):
    content = error_body(request, exc.status_code, exc.detail)
    content["error"] = exc.code
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=error_body(request, 500, "Internal server error"),
    )


@app.get("/")
def root():
    """
    Health-check endpoint for the Bookings service.

    Returns
    -------
    dict
        A small JSON payload indicating that the service is running.
    """
    return {"service": SERVICE_NAME, "status": "running"}


member_roles = require_roles(ADMIN_ROLE, USER_ROLE)

viewer_roles = require_roles(
    ADMIN_ROLE,
    USER_ROLE,
    SERVICE_ACCOUNT_ROLE,  # internal read-only access
)


def verified_member(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    claims: Dict = Depends(member_roles),
    accounts: AccountDirectory = Depends(get_account_directory),
) -> Dict:
    """
    Member claims, re-checked against the Users service before a write.

    A token outlives role changes and deactivation, so booking writes
    confirm that the account still exists, is active and holds the role
    the token claims.

    Raises
    ------
    BookingError
        401 if the account is gone or its role changed, 403 if it was
        deactivated, 502/503 if the Users service cannot be reached.
    """
    account = accounts.verify(credentials.credentials)
    if account.id != claims["user_id"] or account.role != claims["role"]:
        raise NotAuthenticated()
    return claims


def get_booking_service(
    db: Session = Depends(get_db),
    equipment: EquipmentDirectory = Depends(get_equipment_directory),
) -> BookingService:
    """
    Build the booking service for one request from its session and the
    equipment lookup.
    """
    return BookingService(BookingRepository(db), equipment)


def invalidate_availability(equipment_id: int) -> None:
    invalidate(f"availability:{equipment_id}:")


# ---------- List bookings ----------


@router_v1.get("/bookings", response_model=List[schemas.BookingRead])
def list_bookings(
    equipment_id: Optional[int] = Query(default=None, ge=1),
    user_id: Optional[int] = Query(default=None, ge=1),
    status_filter: Optional[models.BookingStatus] = Query(default=None, alias="status"),
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    db: Session = Depends(get_db),
    _: Dict = Depends(viewer_roles),
):
    """
    View bookings with optional filters.

    Access
    ------
    - Any authenticated user (the calendar is shared by the whole lab).

    Parameters
    ----------
    equipment_id : Optional[int]
        Only bookings for this equipment.
    user_id : Optional[int]
        Only bookings owned by this user.
    status : Optional[BookingStatus]
        Only bookings in this status. Cancelled bookings are hidden unless
        requested here.
    start_date, end_date : Optional[datetime]
        Only bookings touching this window.

    Returns
    -------
    List[BookingRead]
        Matching bookings ordered by start_time ascending.
    """
    return BookingRepository(db).list(
        equipment_id=equipment_id,
        user_id=user_id,
        status=status_filter,
        start_date=to_naive_utc(start_date),
        end_date=to_naive_utc(end_date),
    )


# ---------- My bookings (current user) ----------


@router_v1.get("/bookings/me", response_model=List[schemas.BookingRead])
def list_my_bookings(
    db: Session = Depends(get_db),
    claims: Dict = Depends(member_roles),
):
    """
    List every booking owned by the caller, newest first, including
    cancelled and rejected ones.
    """
    return BookingRepository(db).list_for_user(claims["user_id"])


# ---------- Availability calendar ----------


@router_v1.get(
    "/bookings/equipment/{equipment_id}/availability",
    response_model=schemas.AvailabilityRead,
)
def get_equipment_availability(
    equipment_id: int,
    start_date: datetime,
    end_date: datetime,
    service: BookingService = Depends(get_booking_service),
    _: Dict = Depends(viewer_roles),
):
    """
    Return the confirmed bookings of a piece of equipment in a window.

    A booking is included when its [start_time, end_time) intersects
    [start_date, end_date). Used to render the calendar view.

    Raises
    ------
    BookingError
        If end_date is not after start_date.
    """
    range_start = to_naive_utc(start_date)
    range_end = to_naive_utc(end_date)

    cache_key = f"availability:{equipment_id}:{range_start.isoformat()}:{range_end.isoformat()}"
    cached = get_cached_json(cache_key)
    if cached is not None:
        return cached

    bookings = service.availability(equipment_id, range_start, range_end)
    data = schemas.AvailabilityRead(
        equipment_id=equipment_id,
        start_date=range_start,
        end_date=range_end,
        bookings=[schemas.AvailabilitySlot.model_validate(b) for b in bookings],
    )
    set_cached_json(cache_key, data.model_dump(mode="json"), ttl_seconds=60)
    return data


# ---------- Single booking ----------


@router_v1.get("/bookings/{booking_id}", response_model=schemas.BookingRead)
def get_booking(
    booking_id: int,
    service: BookingService = Depends(get_booking_service),
    _: Dict = Depends(viewer_roles),
):
    return service.get_booking(booking_id)


# ---------- Create booking ----------


@router_v1.post(
    "/bookings",
    response_model=schemas.BookingCreated,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(booking_rate_limiter)],
)
def create_booking(
    booking_in: schemas.BookingCreate,
    service: BookingService = Depends(get_booking_service),
    claims: Dict = Depends(verified_member),
):
    """
    Request a booking for the authenticated user.

    Behavior
    --------
    - Validates that end_time is after start_time.
    - Looks the equipment up in the Equipment service: it must exist,
      be bookable and be active.
    - Rejects intervals overlapping a pending or confirmed booking on the
      same equipment (HTTP 409).
    - The booking starts 'pending' when the equipment requires approval,
      otherwise 'confirmed'.

    Returns
    -------
    BookingCreated
        The booking plus a `requires_approval` flag.
    """
    booking, requires_approval = service.create_booking(claims["user_id"], booking_in)
    invalidate_availability(booking.equipment_id)

    message = (
        "Booking created successfully. Awaiting admin approval."
        if requires_approval
        else "Booking created and confirmed successfully"
    )
    return {
        "message": message,
        "booking": booking,
        "requires_approval": requires_approval,
    }


# ---------- Edit booking ----------


@router_v1.put(
    "/bookings/{booking_id}",
    response_model=schemas.BookingRead,
    dependencies=[Depends(booking_rate_limiter)],
)
def update_booking(
    booking_id: int,
    update_data: schemas.BookingUpdate,
    service: BookingService = Depends(get_booking_service),
    claims: Dict = Depends(verified_member),
):
    """
    Change the interval or purpose of an upcoming confirmed booking.

    Access
    ------
    - Owner of the booking.
    - Admin for any booking.
    """
    booking = service.update_booking(
        booking_id,
        user_id=claims["user_id"],
        is_admin=is_admin(claims),
        data=update_data,
    )
    invalidate_availability(booking.equipment_id)
    return booking


# ---------- Approval workflow (admin) ----------


@router_v1.patch("/bookings/{booking_id}/status", response_model=schemas.BookingRead)
def update_booking_status(
    booking_id: int,
    status_update: schemas.BookingStatusUpdate,
    service: BookingService = Depends(get_booking_service),
    claims: Dict = Depends(verified_member),
):
    """
    Confirm, reject, cancel or complete a booking.

    Access
    ------
    - Admin only.

    Allowed transitions
    -------------------
    - pending -> confirmed | rejected | cancelled
    - confirmed -> cancelled | completed
    """
    booking = service.change_status(
        booking_id,
        admin_id=claims["user_id"],
        is_admin=is_admin(claims),
        target=status_update.status,
        admin_notes=status_update.admin_notes,
    )
    invalidate_availability(booking.equipment_id)
    return booking


# ---------- Cancel booking (soft) ----------


@router_v1.patch("/bookings/{booking_id}/cancel", response_model=schemas.BookingRead)
def cancel_booking(
    booking_id: int,
    body: Optional[schemas.BookingCancel] = None,
    service: BookingService = Depends(get_booking_service),
    claims: Dict = Depends(verified_member),
):
    """
    Cancel a pending or confirmed booking, optionally with a reason.

    Access
    ------
    - Owner of the booking.
    - Admin for any booking.

    Returns
    -------
    BookingRead
        The booking, now with status 'cancelled'.
    """
    booking = service.cancel_booking(
        booking_id,
        user_id=claims["user_id"],
        is_admin=is_admin(claims),
        reason=body.reason if body else None,
    )
    invalidate_availability(booking.equipment_id)
    return booking


@router_v1.delete(
    "/bookings/{booking_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(booking_rate_limiter)],
)
def delete_booking(
    booking_id: int,
    service: BookingService = Depends(get_booking_service),
    claims: Dict = Depends(verified_member),
):
    """
    Cancel (soft-delete) a booking.

    Same rules as PATCH /bookings/{id}/cancel; the record is kept with
    status 'cancelled'. Bookings that have already started cannot be
    deleted (HTTP 400).
    """
    booking = service.delete_booking(
        booking_id,
        user_id=claims["user_id"],
        is_admin=is_admin(claims),
    )
    invalidate_availability(booking.equipment_id)
    return


app.include_router(router_v1)
