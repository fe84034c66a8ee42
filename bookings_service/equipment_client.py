import logging
import os
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional

import httpx
from jose import jwt
from pydantic import BaseModel, ConfigDict

from common.auth import ALGORITHM, SECRET_KEY, SERVICE_ACCOUNT_ROLE

from .circuit_breaker import CircuitBreaker, equipment_circuit_breaker
from .errors import EquipmentServiceUnavailable

logger = logging.getLogger(__name__)

EQUIPMENT_SERVICE_URL = os.getenv(
    "EQUIPMENT_SERVICE_URL",
    "http://equipment_service:8001",  # Docker internal URL
)

SERVICE_ACCOUNT_USERNAME = "bookings_service"
SERVICE_ACCOUNT_USER_ID = 0


class EquipmentSnapshot(BaseModel):
    """
    The slice of an equipment record the booking rules consult.

    Attributes
    ----------
    id : int
        Equipment identifier.
    name : str
        Display name, used in log messages only.
    status : str
        Operational status; only 'active' equipment can be booked.
    is_bookable : bool
        Whether time slots may be reserved at all.
    requires_approval : bool
        Whether new bookings start as 'pending'.
    """
    id: int
    name: str = ""
    status: str
    is_bookable: bool
    requires_approval: bool = False

    model_config = ConfigDict(extra="ignore")


class EquipmentDirectory(ABC):
    """
    Read-only lookup of equipment by id.
    """

    @abstractmethod
    def get(self, equipment_id: int) -> Optional[EquipmentSnapshot]:
        """Return the equipment, or None if no such id exists."""


def make_service_account_token() -> str:
    payload = {
        "sub": SERVICE_ACCOUNT_USERNAME,
        "role": SERVICE_ACCOUNT_ROLE,
        "user_id": SERVICE_ACCOUNT_USER_ID,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=5),
    }
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


class HttpEquipmentDirectory(EquipmentDirectory):
    """
    Looks equipment up through the Equipment service REST API.

    Calls are made with a short-lived service-account token and guarded
    by a circuit breaker so a failing Equipment service is not hammered.
    """

    def __init__(
        self,
        base_url: str = EQUIPMENT_SERVICE_URL,
        breaker: CircuitBreaker = equipment_circuit_breaker,
        timeout: float = 5.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.breaker = breaker
        self.timeout = timeout

    def get(self, equipment_id: int) -> Optional[EquipmentSnapshot]:
        if not self.breaker.allow_request():
            raise EquipmentServiceUnavailable(
                "Equipment service temporarily unavailable (circuit open)",
                status_code=503,
            )

        headers = {"Authorization": f"Bearer {make_service_account_token()}"}

        try:
            response = httpx.get(
                f"{self.base_url}/api/v1/equipment/{equipment_id}",
                headers=headers,
                timeout=self.timeout,
            )
        except httpx.RequestError as exc:
            self.breaker.record_failure()
            logger.warning("Equipment lookup for %s failed: %s", equipment_id, exc)
            raise EquipmentServiceUnavailable()

        if response.status_code == 404:
            self.breaker.record_success()
            return None

        if response.status_code != 200:
            self.breaker.record_failure()
            logger.warning(
                "Equipment service answered %s for equipment %s",
                response.status_code,
                equipment_id,
            )
            raise EquipmentServiceUnavailable("Equipment service returned an error")

        self.breaker.record_success()
        return EquipmentSnapshot.model_validate(response.json())


def get_equipment_directory() -> EquipmentDirectory:
    """
    FastAPI dependency returning the equipment lookup used by bookings.
    """
    return HttpEquipmentDirectory()
