from datetime import datetime, timezone
from enum import Enum as PyEnum

from sqlalchemy import CheckConstraint, Column, DateTime, Enum, Index, Integer, String, Text

from .database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class BookingStatus(str, PyEnum):
    """
    Enumeration of possible booking statuses.

    Values
    ------
    pending
        Created on equipment that requires approval; waiting for an admin.
    confirmed
        Holds the equipment for the given time range.
    cancelled
        Withdrawn by its owner or an admin; no longer blocks the slot.
    completed
        Set by an admin once a confirmed booking has been used.
    rejected
        Declined by an admin; no longer blocks the slot.
    """
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    REJECTED = "rejected"


class Booking(Base):
    """
    SQLAlchemy model representing a reservation of a piece of equipment.

    Attributes
    ----------
    id : int
        Primary key.
    equipment_id : int
        Identifier of the booked equipment (owned by the Equipment service).
    user_id : int
        Identifier of the user who requested the booking.
    start_time : datetime
        Start of the reserved interval (inclusive, naive UTC).
    end_time : datetime
        End of the reserved interval (exclusive, naive UTC).
    status : BookingStatus
        Current status in the approval workflow.
    purpose : str
        Optional free-text reason for the booking.
    admin_notes : str
        Notes left by the admin who last changed the status.
    approved_by : int
        Admin who confirmed or rejected the booking.
    approved_at : datetime
        When it was confirmed or rejected.
    cancelled_at : datetime
        When it was cancelled.
    cancellation_reason : str
        Optional reason given on cancellation.
    """
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_bookings_interval"),
        Index("ix_bookings_equipment_window", "equipment_id", "start_time", "end_time"),
    )

    id = Column(Integer, primary_key=True, index=True)
    equipment_id = Column(Integer, index=True, nullable=False)
    user_id = Column(Integer, index=True, nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    status = Column(Enum(BookingStatus), nullable=False, default=BookingStatus.CONFIRMED)
    purpose = Column(Text, nullable=True)
    admin_notes = Column(Text, nullable=True)
    approved_by = Column(Integer, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
