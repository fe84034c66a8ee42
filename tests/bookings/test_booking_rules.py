import os
import sys
from datetime import datetime, timedelta, timezone

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_lab_equipment.db")
os.environ.setdefault("TESTING", "1")

import pytest

from bookings_service.errors import InvalidInterval, InvalidState
from bookings_service.models import Booking, BookingStatus
from bookings_service.rules import (
    ACTIVE_STATUSES,
    ensure_transition,
    ensure_valid_interval,
    initial_status,
    intervals_overlap,
    to_naive_utc,
)

T0 = datetime(2030, 3, 4, 9, 0)


def at(hours: float) -> datetime:
    return T0 + timedelta(hours=hours)


@pytest.mark.parametrize(
    "start, end, other_start, other_end, expected",
    [
        (0, 2, 1, 3, True),    # partial overlap
        (1, 3, 0, 2, True),    # partial overlap, other side
        (0, 4, 1, 2, True),    # containment
        (1, 2, 0, 4, True),    # contained
        (0, 2, 0, 2, True),    # identical
        (0, 2, 2, 4, False),   # back-to-back
        (2, 4, 0, 2, False),   # back-to-back, other side
        (0, 1, 3, 4, False),   # disjoint
    ],
)
def test_intervals_overlap(start, end, other_start, other_end, expected):
    assert intervals_overlap(at(start), at(end), at(other_start), at(other_end)) is expected


def test_intervals_overlap_renders_the_same_rule_as_sql():
    criterion = intervals_overlap(Booking.start_time, Booking.end_time, at(0), at(2))
    sql = str(criterion)
    assert "bookings.start_time < " in sql
    assert " AND bookings.end_time > " in sql


def test_ensure_valid_interval():
    ensure_valid_interval(at(0), at(1))
    with pytest.raises(InvalidInterval):
        ensure_valid_interval(at(1), at(1))
    with pytest.raises(InvalidInterval):
        ensure_valid_interval(at(2), at(1))


def test_active_statuses_are_pending_and_confirmed():
    assert ACTIVE_STATUSES == {BookingStatus.PENDING, BookingStatus.CONFIRMED}


def test_initial_status_follows_approval_flag():
    assert initial_status(True) == BookingStatus.PENDING
    assert initial_status(False) == BookingStatus.CONFIRMED


@pytest.mark.parametrize(
    "current, target",
    [
        (BookingStatus.PENDING, BookingStatus.CONFIRMED),
        (BookingStatus.PENDING, BookingStatus.REJECTED),
        (BookingStatus.PENDING, BookingStatus.CANCELLED),
        (BookingStatus.CONFIRMED, BookingStatus.CANCELLED),
        (BookingStatus.CONFIRMED, BookingStatus.COMPLETED),
    ],
)
def test_allowed_transitions(current, target):
    ensure_transition(current, target)


@pytest.mark.parametrize(
    "current, target",
    [
        (BookingStatus.CONFIRMED, BookingStatus.REJECTED),
        (BookingStatus.PENDING, BookingStatus.COMPLETED),
        (BookingStatus.CANCELLED, BookingStatus.CONFIRMED),
        (BookingStatus.REJECTED, BookingStatus.CONFIRMED),
        (BookingStatus.COMPLETED, BookingStatus.CANCELLED),
    ],
)
def test_forbidden_transitions(current, target):
    with pytest.raises(InvalidState) as exc_info:
        ensure_transition(current, target)
    assert current.value in exc_info.value.detail
    assert exc_info.value.status_code == 400


def test_to_naive_utc_converts_offsets():
    aware = datetime(2030, 3, 4, 11, 0, tzinfo=timezone(timedelta(hours=2)))
    assert to_naive_utc(aware) == datetime(2030, 3, 4, 9, 0)


def test_to_naive_utc_keeps_naive_and_none():
    assert to_naive_utc(T0) is T0
    assert to_naive_utc(None) is None
