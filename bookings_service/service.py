import logging
from datetime import datetime
from typing import List, Optional, Tuple

from . import models, schemas
from .equipment_client import EquipmentDirectory
from .errors import (
    Conflict,
    EmptyUpdate,
    Forbidden,
    InvalidState,
    NotBookable,
    NotFound,
    Unavailable,
)
from .repository import BookingRepository
from .rules import (
    ACTIVE_STATUSES,
    DECISION_STATUSES,
    ensure_transition,
    ensure_valid_interval,
    initial_status,
    utcnow,
)

logger = logging.getLogger(__name__)

ACTIVE_EQUIPMENT_STATUS = "active"


class BookingService:
    """
    Booking operations: creation, editing, the approval workflow,
    cancellation and availability.

    Every write follows the same shape: validate, take the per-equipment
    lock, run the overlap check, write, commit. A failed check rolls the
    transaction back, which also releases the lock.
    """

    def __init__(self, repo: BookingRepository, equipment: EquipmentDirectory):
        self.repo = repo
        self.equipment = equipment

    def _get_booking(self, booking_id: int) -> models.Booking:
        booking = self.repo.get(booking_id)
        if booking is None:
            raise NotFound()
        return booking

    def _ensure_no_conflict(
        self,
        equipment_id: int,
        start_time: datetime,
        end_time: datetime,
        exclude_booking_id: Optional[int] = None,
    ) -> None:
        self.repo.lock_equipment(equipment_id)
        if self.repo.conflicts(equipment_id, start_time, end_time, exclude_booking_id):
            self.repo.rollback()
            logger.warning(
                "Rejected overlapping booking on equipment %s for [%s, %s)",
                equipment_id,
                start_time.isoformat(),
                end_time.isoformat(),
            )
            raise Conflict()

    # ---------- create ----------

    def create_booking(
        self, user_id: int, data: schemas.BookingCreate
    ) -> Tuple[models.Booking, bool]:
        """
        Create a booking for `user_id`.

        Checks, first failure wins: interval well-formed, equipment
        exists, equipment bookable, equipment active, no overlap with an
        active booking.

        Returns
        -------
        (Booking, bool)
            The new booking and whether it still requires admin approval.
        """
        ensure_valid_interval(data.start_time, data.end_time)

        equipment = self.equipment.get(data.equipment_id)
        if equipment is None:
            raise NotFound("Equipment not found")
        if not equipment.is_bookable:
            raise NotBookable()
        if equipment.status != ACTIVE_EQUIPMENT_STATUS:
            raise Unavailable()

        self._ensure_no_conflict(data.equipment_id, data.start_time, data.end_time)

        booking = models.Booking(
            equipment_id=data.equipment_id,
            user_id=user_id,
            start_time=data.start_time,
            end_time=data.end_time,
            purpose=data.purpose or None,
            status=initial_status(equipment.requires_approval),
        )
        self.repo.add(booking)
        self.repo.commit(booking)

        logger.info(
            "Booking %s created on equipment %s by user %s (%s)",
            booking.id,
            booking.equipment_id,
            user_id,
            booking.status.value,
        )
        return booking, equipment.requires_approval

    # ---------- edit ----------

    def update_booking(
        self,
        booking_id: int,
        user_id: int,
        is_admin: bool,
        data: schemas.BookingUpdate,
    ) -> models.Booking:
        """
        Edit the interval and/or purpose of a confirmed, upcoming booking.

        The new interval is re-checked against all other active bookings
        on the same equipment.
        """
        booking = self._get_booking(booking_id)

        if not (is_admin or booking.user_id == user_id):
            raise Forbidden("Not authorized to update this booking")

        if booking.status != models.BookingStatus.CONFIRMED:
            raise InvalidState("Cannot update this booking")

        if booking.start_time < utcnow():
            raise InvalidState("Cannot update past bookings")

        changes = data.model_dump(exclude_unset=True)
        if not changes:
            raise EmptyUpdate()

        new_start = data.start_time if data.start_time is not None else booking.start_time
        new_end = data.end_time if data.end_time is not None else booking.end_time

        if data.start_time is not None or data.end_time is not None:
            ensure_valid_interval(new_start, new_end)
            self._ensure_no_conflict(
                booking.equipment_id,
                new_start,
                new_end,
                exclude_booking_id=booking.id,
            )

        booking.start_time = new_start
        booking.end_time = new_end
        if "purpose" in changes:
            booking.purpose = data.purpose or None

        self.repo.add(booking)
        self.repo.commit(booking)
        return booking

    # ---------- workflow ----------

    def change_status(
        self,
        booking_id: int,
        admin_id: int,
        is_admin: bool,
        target: models.BookingStatus,
        admin_notes: Optional[str] = None,
    ) -> models.Booking:
        """
        Admin transition of a booking through the approval workflow.

        - confirmed / rejected stamp `approved_by` and `approved_at`.
        - cancelled stamps `cancelled_at`.
        - confirming a pending booking re-runs the overlap check.
        """
        if not is_admin:
            raise Forbidden("Admin access required")

        booking = self._get_booking(booking_id)
        ensure_transition(booking.status, target)

        if target == models.BookingStatus.CONFIRMED:
            self._ensure_no_conflict(
                booking.equipment_id,
                booking.start_time,
                booking.end_time,
                exclude_booking_id=booking.id,
            )

        previous = booking.status
        booking.status = target
        now = utcnow()

        if target in DECISION_STATUSES:
            booking.approved_by = admin_id
            booking.approved_at = now
        if target == models.BookingStatus.CANCELLED:
            booking.cancelled_at = now
        if admin_notes:
            booking.admin_notes = admin_notes

        self.repo.add(booking)
        self.repo.commit(booking)

        logger.info(
            "Booking %s moved from %s to %s by admin %s",
            booking.id,
            previous.value,
            target.value,
            admin_id,
        )
        return booking

    def cancel_booking(
        self,
        booking_id: int,
        user_id: int,
        is_admin: bool,
        reason: Optional[str] = None,
    ) -> models.Booking:
        """
        Soft-cancel a booking on behalf of its owner or an admin.

        The row is kept with status 'cancelled' so history is preserved
        and the slot is immediately free for new requests.
        """
        booking = self._get_booking(booking_id)

        if not (is_admin or booking.user_id == user_id):
            raise Forbidden("Not authorized to cancel this booking")

        if booking.status not in ACTIVE_STATUSES:
            raise InvalidState("Booking cannot be cancelled")

        booking.status = models.BookingStatus.CANCELLED
        booking.cancelled_at = utcnow()
        if reason:
            booking.cancellation_reason = reason

        self.repo.add(booking)
        self.repo.commit(booking)

        logger.info("Booking %s cancelled by user %s", booking.id, user_id)
        return booking

    def delete_booking(self, booking_id: int, user_id: int, is_admin: bool) -> models.Booking:
        """
        Soft-cancel through DELETE: the cancel rules apply, and bookings
        whose start time has passed are kept as they are.
        """
        booking = self._get_booking(booking_id)

        if not (is_admin or booking.user_id == user_id):
            raise Forbidden("Not authorized to delete this booking")

        if booking.start_time < utcnow():
            raise InvalidState("Cannot delete past bookings")

        return self.cancel_booking(booking_id, user_id=user_id, is_admin=is_admin)

    # ---------- reads ----------

    def get_booking(self, booking_id: int) -> models.Booking:
        return self._get_booking(booking_id)

    def availability(
        self,
        equipment_id: int,
        range_start: datetime,
        range_end: datetime,
    ) -> List[models.Booking]:
        ensure_valid_interval(range_start, range_end)
        return self.repo.availability(equipment_id, range_start, range_end)
