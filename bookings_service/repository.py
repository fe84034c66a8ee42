import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import text
from sqlalchemy.orm import Session

from . import models
from .rules import ACTIVE_STATUSES, intervals_overlap

logger = logging.getLogger(__name__)


class BookingRepository:
    """
    Data access for the booking ledger.

    Handlers receive one repository per request, wrapping that request's
    session, so tests can swap the storage without touching the rules.
    """

    def __init__(self, db: Session):
        self.db = db

    # ---------- reads ----------

    def get(self, booking_id: int) -> Optional[models.Booking]:
        return (
            self.db.query(models.Booking)
            .filter(models.Booking.id == booking_id)
            .first()
        )

    def list(
        self,
        equipment_id: Optional[int] = None,
        user_id: Optional[int] = None,
        status: Optional[models.BookingStatus] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> List[models.Booking]:
        """
        List bookings ordered by start time.

        Cancelled bookings are hidden unless explicitly requested through
        the status filter. `start_date`/`end_date` keep bookings that end
        on or after `start_date` and start on or before `end_date`.
        """
        q = self.db.query(models.Booking)

        if equipment_id is not None:
            q = q.filter(models.Booking.equipment_id == equipment_id)
        if user_id is not None:
            q = q.filter(models.Booking.user_id == user_id)
        if status is not None:
            q = q.filter(models.Booking.status == status)
        else:
            q = q.filter(models.Booking.status != models.BookingStatus.CANCELLED)
        if start_date is not None:
            q = q.filter(models.Booking.end_time >= start_date)
        if end_date is not None:
            q = q.filter(models.Booking.start_time <= end_date)

        return q.order_by(models.Booking.start_time.asc(), models.Booking.id.asc()).all()

    def list_for_user(self, user_id: int) -> List[models.Booking]:
        return (
            self.db.query(models.Booking)
            .filter(models.Booking.user_id == user_id)
            .order_by(models.Booking.start_time.desc(), models.Booking.id.desc())
            .all()
        )

    def conflicts(
        self,
        equipment_id: int,
        start_time: datetime,
        end_time: datetime,
        exclude_booking_id: Optional[int] = None,
    ) -> bool:
        """
        Check if [start_time, end_time) overlaps an active booking.

        Active means pending or confirmed. Overlap is the half-open rule
        of ``rules.intervals_overlap`` rendered as SQL:
        existing.start_time < end_time AND existing.end_time > start_time.

        Parameters
        ----------
        equipment_id : int
            Equipment identifier.
        start_time : datetime
            Proposed start time.
        end_time : datetime
            Proposed end time.
        exclude_booking_id : Optional[int]
            If provided, ignore this booking (used when re-validating a
            booking's own edit or approval).

        Returns
        -------
        bool
            True if there is at least one conflicting booking.
        """
        q = (
            self.db.query(models.Booking)
            .filter(models.Booking.equipment_id == equipment_id)
            .filter(models.Booking.status.in_(list(ACTIVE_STATUSES)))
            .filter(
                intervals_overlap(
                    models.Booking.start_time, models.Booking.end_time, start_time, end_time
                )
            )
        )

        if exclude_booking_id is not None:
            q = q.filter(models.Booking.id != exclude_booking_id)

        return self.db.query(q.exists()).scalar()

    def availability(
        self,
        equipment_id: int,
        range_start: datetime,
        range_end: datetime,
    ) -> List[models.Booking]:
        """
        Confirmed bookings on the equipment that intersect the range.
        """
        return (
            self.db.query(models.Booking)
            .filter(models.Booking.equipment_id == equipment_id)
            .filter(models.Booking.status == models.BookingStatus.CONFIRMED)
            .filter(
                intervals_overlap(
                    models.Booking.start_time, models.Booking.end_time, range_start, range_end
                )
            )
            .order_by(models.Booking.start_time.asc())
            .all()
        )

    # ---------- writes ----------

    def lock_equipment(self, equipment_id: int) -> None:
        """
        Serialise booking writes for one piece of equipment.

        On PostgreSQL this takes a transaction-scoped advisory lock keyed
        by the equipment id, so a concurrent check-then-insert for the same
        equipment waits until this transaction commits or rolls back.
        Other dialects (SQLite in tests) run without it.
        """
        dialect = self.db.get_bind().dialect.name
        if dialect != "postgresql":
            return
        self.db.execute(
            text("SELECT pg_advisory_xact_lock(:key)"),
            {"key": equipment_id},
        )
        logger.debug("Acquired booking lock for equipment %s", equipment_id)

    def add(self, booking: models.Booking) -> models.Booking:
        self.db.add(booking)
        return booking

    def commit(self, booking: Optional[models.Booking] = None) -> None:
        self.db.commit()
        if booking is not None:
            self.db.refresh(booking)

    def rollback(self) -> None:
        self.db.rollback()
