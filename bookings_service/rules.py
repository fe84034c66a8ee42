"""
Pure booking rules: the half-open overlap predicate and the approval
state machine. Nothing here touches the database.
"""
from datetime import datetime, timezone
from typing import Dict, FrozenSet, Optional

from .errors import InvalidInterval, InvalidState
from .models import BookingStatus

ACTIVE_STATUSES: FrozenSet[BookingStatus] = frozenset(
    {BookingStatus.PENDING, BookingStatus.CONFIRMED}
)

ALLOWED_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset(
        {BookingStatus.CONFIRMED, BookingStatus.REJECTED, BookingStatus.CANCELLED}
    ),
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.CANCELLED, BookingStatus.COMPLETED}
    ),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.REJECTED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}

# Transitions that record the deciding admin in approved_by / approved_at.
DECISION_STATUSES: FrozenSet[BookingStatus] = frozenset(
    {BookingStatus.CONFIRMED, BookingStatus.REJECTED}
)


def utcnow() -> datetime:
    """Current time as naive UTC, the representation stored in the ledger."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalise a datetime to naive UTC.

    Aware values are converted to UTC first; naive values are assumed to
    already be UTC.
    """
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def intervals_overlap(start, end, other_start, other_end):
    """
    Return whether [start, end) and [other_start, other_end) intersect.

    Back-to-back intervals (end == other_start or other_end == start)
    do not overlap.

    Accepts datetimes, returning a bool, or SQLAlchemy column expressions,
    returning the equivalent SQL criterion.
    """
    return (start < other_end) & (end > other_start)


def ensure_valid_interval(start: datetime, end: datetime) -> None:
    if end <= start:
        raise InvalidInterval()


def ensure_transition(current: BookingStatus, target: BookingStatus) -> None:
    """
    Raise InvalidState unless the workflow allows current -> target.
    """
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidState(
            f"Cannot change booking status from {current.value} to {target.value}"
        )


def initial_status(requires_approval: bool) -> BookingStatus:
    return BookingStatus.PENDING if requires_approval else BookingStatus.CONFIRMED
