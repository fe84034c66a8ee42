import os
import sys
from datetime import datetime, timedelta, timezone

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_lab_equipment.db")
os.environ.setdefault("TESTING", "1")

import pytest
import redis
from fastapi.testclient import TestClient
from jose import jwt

from common import cache
from common.auth import ALGORITHM, SECRET_KEY
from bookings_service.main import app
from bookings_service.database import Base, engine
from bookings_service.account_client import (
    AccountDirectory,
    AccountSnapshot,
    get_account_directory,
)
from bookings_service.errors import Forbidden
from bookings_service.equipment_client import (
    EquipmentDirectory,
    EquipmentSnapshot,
    get_equipment_directory,
)


class InMemoryEquipmentDirectory(EquipmentDirectory):
    """Stands in for the Equipment service."""

    def __init__(self):
        self.items = {}

    def put(self, equipment_id, status="active", is_bookable=True, requires_approval=False):
        self.items[equipment_id] = EquipmentSnapshot(
            id=equipment_id,
            name=f"Instrument {equipment_id}",
            status=status,
            is_bookable=is_bookable,
            requires_approval=requires_approval,
        )

    def get(self, equipment_id):
        return self.items.get(equipment_id)


class InMemoryAccountDirectory(AccountDirectory):
    """Stands in for the Users service. Accounts match their tokens unless changed here."""

    def __init__(self):
        self.roles = {}
        self.deactivated = set()

    def verify(self, token):
        claims = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        user_id = claims["user_id"]
        if user_id in self.deactivated:
            raise Forbidden("Account is deactivated")
        return AccountSnapshot(id=user_id, role=self.roles.get(user_id, claims["role"]))


directory = InMemoryEquipmentDirectory()
app.dependency_overrides[get_equipment_directory] = lambda: directory
accounts = InMemoryAccountDirectory()
app.dependency_overrides[get_account_directory] = lambda: accounts

client = TestClient(app)

MICROSCOPE = 1
CENTRIFUGE = 2
SPECTROMETER = 3  # requires approval
FUME_HOOD = 4  # not bookable
LASER = 5  # under maintenance


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    directory.items.clear()
    directory.put(MICROSCOPE)
    directory.put(CENTRIFUGE)
    directory.put(SPECTROMETER, requires_approval=True)
    directory.put(FUME_HOOD, is_bookable=False)
    directory.put(LASER, status="under_maintenance")
    accounts.roles.clear()
    accounts.deactivated.clear()

    yield
    Base.metadata.drop_all(bind=engine)


def make_token(user_id: int, username: str, role: str) -> str:
    payload = {
        "sub": username,
        "role": role,
        "user_id": user_id,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=30),
    }
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def auth(user_id: int = 1, role: str = "user") -> dict:
    token = make_token(user_id=user_id, username=f"{role}{user_id}@lab.test", role=role)
    return {"Authorization": f"Bearer {token}"}


USER1 = auth(1)
USER2 = auth(2)
ADMIN = auth(99, "admin")

BASE = datetime.now(timezone.utc).replace(microsecond=0) + timedelta(days=1)


def slot(start_hours: float, end_hours: float) -> tuple:
    return (
        (BASE + timedelta(hours=start_hours)).isoformat(),
        (BASE + timedelta(hours=end_hours)).isoformat(),
    )


def book(equipment_id: int, start_hours: float, end_hours: float, headers=None, purpose=None):
    start, end = slot(start_hours, end_hours)
    body = {"equipment_id": equipment_id, "start_time": start, "end_time": end}
    if purpose is not None:
        body["purpose"] = purpose
    return client.post("/api/v1/bookings", json=body, headers=headers or USER1)


# ---------- Create ----------


def test_user_can_book_equipment_without_approval():
    res = book(MICROSCOPE, 9, 11, purpose="Cell imaging")
    assert res.status_code == 201
    body = res.json()
    assert body["requires_approval"] is False
    assert body["message"] == "Booking created and confirmed successfully"
    assert body["booking"]["status"] == "confirmed"
    assert body["booking"]["user_id"] == 1
    assert body["booking"]["equipment_id"] == MICROSCOPE
    assert body["booking"]["purpose"] == "Cell imaging"


def test_booking_requiring_approval_starts_pending():
    res = book(SPECTROMETER, 9, 11)
    assert res.status_code == 201
    body = res.json()
    assert body["requires_approval"] is True
    assert body["booking"]["status"] == "pending"
    assert "Awaiting admin approval" in body["message"]


def test_overlapping_booking_is_rejected_with_conflict():
    assert book(MICROSCOPE, 9, 11).status_code == 201

    res = book(MICROSCOPE, 10, 12, headers=USER2)
    assert res.status_code == 409
    body = res.json()
    assert body["error"] == "conflict"
    assert body["service"] == "bookings"
    assert "conflicts with existing booking" in body["detail"]


def test_booking_inside_existing_interval_is_rejected():
    assert book(MICROSCOPE, 9, 12).status_code == 201
    assert book(MICROSCOPE, 10, 11).status_code == 409


def test_adjacent_bookings_do_not_conflict():
    assert book(MICROSCOPE, 9, 11).status_code == 201
    assert book(MICROSCOPE, 11, 13, headers=USER2).status_code == 201
    assert book(MICROSCOPE, 7, 9, headers=USER2).status_code == 201


def test_bookings_on_different_equipment_are_independent():
    assert book(MICROSCOPE, 9, 11).status_code == 201
    assert book(CENTRIFUGE, 9, 11).status_code == 201


def test_pending_booking_blocks_the_slot():
    assert book(SPECTROMETER, 9, 11).status_code == 201
    assert book(SPECTROMETER, 10, 12, headers=USER2).status_code == 409


def test_end_before_start_is_rejected():
    res = book(MICROSCOPE, 11, 9)
    assert res.status_code == 400
    assert "end_time must be after start_time" in res.json()["detail"]


def test_zero_length_booking_is_rejected():
    res = book(MICROSCOPE, 9, 9)
    assert res.status_code == 400


def test_unknown_equipment_returns_404():
    res = book(42, 9, 11)
    assert res.status_code == 404
    assert res.json()["detail"] == "Equipment not found"


def test_non_bookable_equipment_is_rejected():
    res = book(FUME_HOOD, 9, 11)
    assert res.status_code == 400
    assert res.json()["detail"] == "Equipment is not bookable"


def test_equipment_under_maintenance_is_rejected():
    res = book(LASER, 9, 11)
    assert res.status_code == 400
    assert res.json()["detail"] == "Equipment is not available"


def test_owner_is_taken_from_token_not_body():
    start, end = slot(9, 11)
    res = client.post(
        "/api/v1/bookings",
        json={"equipment_id": MICROSCOPE, "start_time": start, "end_time": end, "user_id": 7},
        headers=USER1,
    )
    assert res.status_code == 201
    assert res.json()["booking"]["user_id"] == 1


def test_timezone_offsets_are_normalised_before_overlap_check():
    first = book(MICROSCOPE, 9, 11)
    assert first.status_code == 201

    # Same instant as hour 10 UTC, written with a +02:00 offset.
    plus_two = timezone(timedelta(hours=2))
    start = (BASE + timedelta(hours=10)).astimezone(plus_two).isoformat()
    end = (BASE + timedelta(hours=12)).astimezone(plus_two).isoformat()
    res = client.post(
        "/api/v1/bookings",
        json={"equipment_id": MICROSCOPE, "start_time": start, "end_time": end},
        headers=USER2,
    )
    assert res.status_code == 409


# ---------- Auth ----------


def test_booking_requires_a_token():
    start, end = slot(9, 11)
    res = client.post(
        "/api/v1/bookings",
        json={"equipment_id": MICROSCOPE, "start_time": start, "end_time": end},
    )
    # HTTPBearer answers 403 or 401 depending on the FastAPI version
    assert res.status_code in (401, 403)


def test_invalid_token_is_rejected():
    res = client.get("/api/v1/bookings", headers={"Authorization": "Bearer not-a-jwt"})
    assert res.status_code == 401


def test_service_account_can_read_but_not_book():
    svc = auth(0, "service_account")
    assert client.get("/api/v1/bookings", headers=svc).status_code == 200
    assert book(MICROSCOPE, 9, 11, headers=svc).status_code == 403


# ---------- Reads ----------


def test_list_my_bookings_only_returns_callers_bookings():
    assert book(MICROSCOPE, 9, 11).status_code == 201
    assert book(CENTRIFUGE, 9, 11, headers=USER2).status_code == 201
    assert book(MICROSCOPE, 13, 14).status_code == 201

    res = client.get("/api/v1/bookings/me", headers=USER1)
    assert res.status_code == 200
    mine = res.json()
    assert len(mine) == 2
    assert all(b["user_id"] == 1 for b in mine)
    # newest slot first
    assert mine[0]["start_time"] > mine[1]["start_time"]


def test_list_bookings_filters_and_hides_cancelled():
    first = book(MICROSCOPE, 9, 11).json()["booking"]
    assert book(MICROSCOPE, 12, 13, headers=USER2).status_code == 201
    assert book(CENTRIFUGE, 9, 11).status_code == 201

    res = client.patch(f"/api/v1/bookings/{first['id']}/cancel", json={}, headers=USER1)
    assert res.status_code == 200

    res = client.get("/api/v1/bookings", params={"equipment_id": MICROSCOPE}, headers=ADMIN)
    assert res.status_code == 200
    assert [b["user_id"] for b in res.json()] == [2]

    res = client.get("/api/v1/bookings", params={"status": "cancelled"}, headers=ADMIN)
    assert [b["id"] for b in res.json()] == [first["id"]]

    res = client.get("/api/v1/bookings", params={"user_id": 1}, headers=ADMIN)
    assert [b["equipment_id"] for b in res.json()] == [CENTRIFUGE]


def test_get_single_booking():
    created = book(MICROSCOPE, 9, 11).json()["booking"]

    res = client.get(f"/api/v1/bookings/{created['id']}", headers=USER2)
    assert res.status_code == 200
    assert res.json()["id"] == created["id"]

    assert client.get("/api/v1/bookings/9999", headers=USER1).status_code == 404


def test_availability_lists_confirmed_bookings_in_range():
    assert book(MICROSCOPE, 9, 11).status_code == 201
    assert book(MICROSCOPE, 30, 31).status_code == 201  # outside the window
    assert book(CENTRIFUGE, 9, 11).status_code == 201  # other equipment

    start, end = slot(0, 24)
    res = client.get(
        f"/api/v1/bookings/equipment/{MICROSCOPE}/availability",
        params={"start_date": start, "end_date": end},
        headers=USER2,
    )
    assert res.status_code == 200
    body = res.json()
    assert body["equipment_id"] == MICROSCOPE
    assert len(body["bookings"]) == 1
    assert body["bookings"][0]["status"] == "confirmed"


def test_availability_excludes_pending_bookings():
    assert book(SPECTROMETER, 9, 11).status_code == 201

    start, end = slot(0, 24)
    res = client.get(
        f"/api/v1/bookings/equipment/{SPECTROMETER}/availability",
        params={"start_date": start, "end_date": end},
        headers=USER1,
    )
    assert res.status_code == 200
    assert res.json()["bookings"] == []


def test_availability_invalid_range_returns_400():
    start, end = slot(10, 9)
    res = client.get(
        f"/api/v1/bookings/equipment/{MICROSCOPE}/availability",
        params={"start_date": start, "end_date": end},
        headers=USER1,
    )
    assert res.status_code == 400
    assert res.json()["error"] == "invalid_interval"


# ---------- Cancel ----------


def test_owner_can_cancel_and_slot_becomes_free():
    created = book(MICROSCOPE, 9, 11).json()["booking"]

    res = client.patch(
        f"/api/v1/bookings/{created['id']}/cancel",
        json={"reason": "Sample not ready"},
        headers=USER1,
    )
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "cancelled"
    assert body["cancellation_reason"] == "Sample not ready"
    assert body["cancelled_at"] is not None

    assert book(MICROSCOPE, 9, 11, headers=USER2).status_code == 201


def test_delete_is_a_soft_cancel():
    created = book(MICROSCOPE, 9, 11).json()["booking"]

    res = client.delete(f"/api/v1/bookings/{created['id']}", headers=USER1)
    assert res.status_code == 204

    res = client.get(f"/api/v1/bookings/{created['id']}", headers=USER1)
    assert res.status_code == 200
    assert res.json()["status"] == "cancelled"


def test_user_cannot_cancel_someone_elses_booking():
    created = book(MICROSCOPE, 9, 11).json()["booking"]

    res = client.patch(f"/api/v1/bookings/{created['id']}/cancel", json={}, headers=USER2)
    assert res.status_code == 403
    assert client.delete(f"/api/v1/bookings/{created['id']}", headers=USER2).status_code == 403


def test_admin_can_cancel_any_booking():
    created = book(MICROSCOPE, 9, 11).json()["booking"]
    res = client.patch(f"/api/v1/bookings/{created['id']}/cancel", json={}, headers=ADMIN)
    assert res.status_code == 200
    assert res.json()["status"] == "cancelled"


def test_cancelling_twice_is_rejected():
    created = book(MICROSCOPE, 9, 11).json()["booking"]
    assert client.delete(f"/api/v1/bookings/{created['id']}", headers=USER1).status_code == 204

    res = client.patch(f"/api/v1/bookings/{created['id']}/cancel", json={}, headers=USER1)
    assert res.status_code == 400
    assert res.json()["detail"] == "Booking cannot be cancelled"


# ---------- Approval workflow ----------


def test_admin_confirms_pending_booking():
    created = book(SPECTROMETER, 9, 11).json()["booking"]

    res = client.patch(
        f"/api/v1/bookings/{created['id']}/status",
        json={"status": "confirmed", "admin_notes": "Training verified"},
        headers=ADMIN,
    )
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "confirmed"
    assert body["approved_by"] == 99
    assert body["approved_at"] is not None
    assert body["admin_notes"] == "Training verified"


def test_rejected_booking_frees_the_slot():
    created = book(SPECTROMETER, 9, 11).json()["booking"]

    res = client.patch(
        f"/api/v1/bookings/{created['id']}/status",
        json={"status": "rejected"},
        headers=ADMIN,
    )
    assert res.status_code == 200
    assert res.json()["status"] == "rejected"

    assert book(SPECTROMETER, 9, 11, headers=USER2).status_code == 201


def test_non_admin_cannot_change_status():
    created = book(SPECTROMETER, 9, 11).json()["booking"]

    res = client.patch(
        f"/api/v1/bookings/{created['id']}/status",
        json={"status": "confirmed"},
        headers=USER1,
    )
    assert res.status_code == 403

    res = client.get(f"/api/v1/bookings/{created['id']}", headers=USER1)
    assert res.json()["status"] == "pending"


def test_terminal_status_cannot_be_changed():
    created = book(MICROSCOPE, 9, 11).json()["booking"]
    assert client.delete(f"/api/v1/bookings/{created['id']}", headers=USER1).status_code == 204

    res = client.patch(
        f"/api/v1/bookings/{created['id']}/status",
        json={"status": "confirmed"},
        headers=ADMIN,
    )
    assert res.status_code == 400
    assert res.json()["error"] == "invalid_state"


def test_confirmed_booking_cannot_be_rejected():
    created = book(MICROSCOPE, 9, 11).json()["booking"]
    res = client.patch(
        f"/api/v1/bookings/{created['id']}/status",
        json={"status": "rejected"},
        headers=ADMIN,
    )
    assert res.status_code == 400


def test_status_cannot_be_set_back_to_pending():
    created = book(MICROSCOPE, 9, 11).json()["booking"]
    res = client.patch(
        f"/api/v1/bookings/{created['id']}/status",
        json={"status": "pending"},
        headers=ADMIN,
    )
    assert res.status_code == 422


def test_admin_can_complete_confirmed_booking():
    created = book(MICROSCOPE, 9, 11).json()["booking"]
    res = client.patch(
        f"/api/v1/bookings/{created['id']}/status",
        json={"status": "completed"},
        headers=ADMIN,
    )
    assert res.status_code == 200
    assert res.json()["status"] == "completed"

    # completed bookings no longer block the slot
    assert book(MICROSCOPE, 9, 11, headers=USER2).status_code == 201


# ---------- Edit ----------


def test_owner_can_move_booking_to_free_slot():
    created = book(MICROSCOPE, 9, 11).json()["booking"]
    start, end = slot(14, 16)

    res = client.put(
        f"/api/v1/bookings/{created['id']}",
        json={"start_time": start, "end_time": end, "purpose": "Rescheduled"},
        headers=USER1,
    )
    assert res.status_code == 200
    body = res.json()
    assert body["purpose"] == "Rescheduled"
    assert body["start_time"] != created["start_time"]

    # the old slot is free again
    assert book(MICROSCOPE, 9, 11, headers=USER2).status_code == 201


def test_edit_may_overlap_its_own_previous_interval():
    created = book(MICROSCOPE, 9, 11).json()["booking"]
    start, end = slot(10, 12)

    res = client.put(
        f"/api/v1/bookings/{created['id']}",
        json={"start_time": start, "end_time": end},
        headers=USER1,
    )
    assert res.status_code == 200


def test_edit_into_another_booking_conflicts():
    assert book(MICROSCOPE, 9, 11).status_code == 201
    second = book(MICROSCOPE, 12, 13).json()["booking"]
    start, end = slot(10, 12)

    res = client.put(
        f"/api/v1/bookings/{second['id']}",
        json={"start_time": start, "end_time": end},
        headers=USER1,
    )
    assert res.status_code == 409


def test_edit_with_inverted_interval_is_rejected():
    created = book(MICROSCOPE, 9, 11).json()["booking"]
    start, _ = slot(12, 13)

    # only start_time moves, past the existing end_time
    res = client.put(
        f"/api/v1/bookings/{created['id']}",
        json={"start_time": start},
        headers=USER1,
    )
    assert res.status_code == 400
    assert res.json()["error"] == "invalid_interval"


def test_empty_edit_is_rejected():
    created = book(MICROSCOPE, 9, 11).json()["booking"]
    res = client.put(f"/api/v1/bookings/{created['id']}", json={}, headers=USER1)
    assert res.status_code == 400
    assert res.json()["detail"] == "No fields to update"


def test_pending_booking_cannot_be_edited():
    created = book(SPECTROMETER, 9, 11).json()["booking"]
    res = client.put(
        f"/api/v1/bookings/{created['id']}",
        json={"purpose": "Changed"},
        headers=USER1,
    )
    assert res.status_code == 400
    assert res.json()["detail"] == "Cannot update this booking"


def test_past_booking_cannot_be_edited():
    past = datetime.now(timezone.utc) - timedelta(days=2)
    res = client.post(
        "/api/v1/bookings",
        json={
            "equipment_id": MICROSCOPE,
            "start_time": past.isoformat(),
            "end_time": (past + timedelta(hours=1)).isoformat(),
        },
        headers=USER1,
    )
    assert res.status_code == 201
    booking_id = res.json()["booking"]["id"]

    res = client.put(
        f"/api/v1/bookings/{booking_id}",
        json={"purpose": "Too late"},
        headers=USER1,
    )
    assert res.status_code == 400
    assert res.json()["detail"] == "Cannot update past bookings"


def test_user_cannot_edit_someone_elses_booking():
    created = book(MICROSCOPE, 9, 11).json()["booking"]
    res = client.put(
        f"/api/v1/bookings/{created['id']}",
        json={"purpose": "Mine now"},
        headers=USER2,
    )
    assert res.status_code == 403


def test_admin_can_edit_any_booking():
    created = book(MICROSCOPE, 9, 11).json()["booking"]
    res = client.put(
        f"/api/v1/bookings/{created['id']}",
        json={"purpose": "Adjusted by lab manager"},
        headers=ADMIN,
    )
    assert res.status_code == 200
    assert res.json()["purpose"] == "Adjusted by lab manager"


def test_active_bookings_never_overlap_after_mixed_requests():
    requests = [(0, 3), (2, 4), (3, 5), (1, 2), (5, 6), (4, 7), (6, 8), (8, 9), (7, 10)]
    for i, (start, end) in enumerate(requests):
        book(MICROSCOPE, start, end, headers=auth(i + 1))
        book(SPECTROMETER, start, end, headers=auth(i + 1))

    for equipment_id in (MICROSCOPE, SPECTROMETER):
        res = client.get("/api/v1/bookings", params={"equipment_id": equipment_id}, headers=ADMIN)
        active = [b for b in res.json() if b["status"] in ("pending", "confirmed")]
        # accepted: (0,3), (3,5), (5,6), (6,8), (8,9)
        assert len(active) == 5
        intervals = [
            (datetime.fromisoformat(b["start_time"]), datetime.fromisoformat(b["end_time"]))
            for b in active
        ]
        for i, (a_start, a_end) in enumerate(intervals):
            for b_start, b_end in intervals[i + 1:]:
                assert not (a_start < b_end and a_end > b_start)


def book_in_past(headers=None) -> dict:
    past = datetime.now(timezone.utc) - timedelta(days=2)
    res = client.post(
        "/api/v1/bookings",
        json={
            "equipment_id": MICROSCOPE,
            "start_time": past.isoformat(),
            "end_time": (past + timedelta(hours=1)).isoformat(),
        },
        headers=headers or USER1,
    )
    assert res.status_code == 201
    return res.json()["booking"]


def test_past_booking_cannot_be_deleted():
    booking = book_in_past()

    res = client.delete(f"/api/v1/bookings/{booking['id']}", headers=USER1)
    assert res.status_code == 400
    assert res.json()["detail"] == "Cannot delete past bookings"

    res = client.get(f"/api/v1/bookings/{booking['id']}", headers=USER1)
    assert res.json()["status"] == "confirmed"


def test_deleting_someone_elses_past_booking_is_forbidden_first():
    booking = book_in_past()
    res = client.delete(f"/api/v1/bookings/{booking['id']}", headers=USER2)
    assert res.status_code == 403


# ---------- Live account checks ----------


def test_demoted_admin_token_cannot_decide_bookings():
    created = book(SPECTROMETER, 9, 11).json()["booking"]
    accounts.roles[99] = "user"

    res = client.patch(
        f"/api/v1/bookings/{created['id']}/status",
        json={"status": "confirmed"},
        headers=ADMIN,
    )
    assert res.status_code == 401
    assert res.json()["error"] == "not_authenticated"

    res = client.get(f"/api/v1/bookings/{created['id']}", headers=USER1)
    assert res.json()["status"] == "pending"


def test_demoted_admin_token_cannot_cancel_others_bookings():
    created = book(MICROSCOPE, 9, 11).json()["booking"]
    accounts.roles[99] = "user"

    res = client.patch(f"/api/v1/bookings/{created['id']}/cancel", json={}, headers=ADMIN)
    assert res.status_code == 401


def test_deactivated_user_cannot_book_or_cancel():
    created = book(MICROSCOPE, 9, 11).json()["booking"]
    accounts.deactivated.add(1)

    res = book(CENTRIFUGE, 9, 11)
    assert res.status_code == 403
    assert res.json()["detail"] == "Account is deactivated"

    res = client.delete(f"/api/v1/bookings/{created['id']}", headers=USER1)
    assert res.status_code == 403

    # reads only need a valid token
    assert client.get("/api/v1/bookings/me", headers=USER1).status_code == 200


def test_promoted_user_needs_a_fresh_token_for_writes():
    accounts.roles[1] = "admin"
    assert book(MICROSCOPE, 9, 11).status_code == 401


# ---------- Cache outage ----------


@pytest.fixture
def unreachable_redis(monkeypatch):
    dead = redis.Redis(host="127.0.0.1", port=1, socket_connect_timeout=0.2, socket_timeout=0.2)
    monkeypatch.setattr(cache, "_redis_client", dead)
    return dead


def test_bookings_keep_working_when_redis_is_down(unreachable_redis):
    created = book(MICROSCOPE, 9, 11)
    assert created.status_code == 201

    start, end = slot(0, 24)
    res = client.get(
        f"/api/v1/bookings/equipment/{MICROSCOPE}/availability",
        params={"start_date": start, "end_date": end},
        headers=USER2,
    )
    assert res.status_code == 200
    assert len(res.json()["bookings"]) == 1

    res = client.delete(f"/api/v1/bookings/{created.json()['booking']['id']}", headers=USER1)
    assert res.status_code == 204

def test_health_endpoint():
    res = client.get("/")
    assert res.status_code == 200
    assert res.json() == {"service": "bookings", "status": "running"}
