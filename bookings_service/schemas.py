from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import BookingStatus
from .rules import to_naive_utc


class BookingBase(BaseModel):
    """
    Base schema for booking interval and equipment information.

    Datetimes are normalised to naive UTC on the way in.
    """
    equipment_id: int = Field(..., ge=1)
    start_time: datetime = Field(...)
    end_time: datetime = Field(...)

    @field_validator("start_time", "end_time")
    @classmethod
    def normalise_to_utc(cls, v: datetime) -> datetime:
        return to_naive_utc(v)


class BookingCreate(BookingBase):
    """
    Schema for requesting a new booking.

    The owner is taken from the caller's token, never from the body.
    """
    purpose: Optional[str] = Field(default=None, max_length=2000)


class BookingUpdate(BaseModel):
    """
    Schema for editing an existing booking.

    All fields are optional; only provided values will be applied. The
    equipment cannot be changed; cancel and rebook instead.
    """
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    purpose: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("start_time", "end_time")
    @classmethod
    def normalise_to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)


class BookingStatusUpdate(BaseModel):
    """
    Schema used by admins to move a booking through the workflow.
    """
    status: BookingStatus
    admin_notes: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("status")
    @classmethod
    def not_pending(cls, v: BookingStatus) -> BookingStatus:
        if v == BookingStatus.PENDING:
            raise ValueError("Invalid status")
        return v


class BookingCancel(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class BookingRead(BookingBase):
    """
    Schema returned when reading booking information.
    """
    id: int
    user_id: int
    status: BookingStatus
    purpose: Optional[str] = None
    admin_notes: Optional[str] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class BookingCreated(BaseModel):
    """
    Response for a successful booking request.

    `requires_approval` tells the client whether an admin still has to
    confirm the booking.
    """
    message: str
    booking: BookingRead
    requires_approval: bool


class AvailabilitySlot(BaseModel):
    id: int
    start_time: datetime
    end_time: datetime
    status: BookingStatus
    purpose: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class AvailabilityRead(BaseModel):
    equipment_id: int
    start_date: datetime
    end_date: datetime
    bookings: List[AvailabilitySlot]
