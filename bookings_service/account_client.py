import logging
import os
from abc import ABC, abstractmethod

import httpx
from pydantic import BaseModel, ConfigDict

from .circuit_breaker import CircuitBreaker, users_circuit_breaker
from .errors import Forbidden, NotAuthenticated, UsersServiceUnavailable

logger = logging.getLogger(__name__)

USERS_SERVICE_URL = os.getenv(
    "USERS_SERVICE_URL",
    "http://users_service:8003",  # Docker internal URL
)


class AccountSnapshot(BaseModel):
    """
    The caller's account as the Users service currently stores it.
    """
    id: int
    role: str
    is_active: bool = True

    model_config = ConfigDict(extra="ignore")


class AccountDirectory(ABC):
    """
    Resolves a bearer token to the live account behind it.
    """

    @abstractmethod
    def verify(self, token: str) -> AccountSnapshot:
        """
        Return the account for `token`.

        Raises NotAuthenticated when the account is gone or its role has
        changed since the token was issued, and Forbidden when it has
        been deactivated.
        """


class HttpAccountDirectory(AccountDirectory):
    """
    Forwards the caller's token to the Users service `/auth/me` endpoint,
    which rejects unknown users, stale roles and deactivated accounts.
    """

    def __init__(
        self,
        base_url: str = USERS_SERVICE_URL,
        breaker: CircuitBreaker = users_circuit_breaker,
        timeout: float = 5.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.breaker = breaker
        self.timeout = timeout

    def verify(self, token: str) -> AccountSnapshot:
        if not self.breaker.allow_request():
            raise UsersServiceUnavailable(
                "Users service temporarily unavailable (circuit open)",
                status_code=503,
            )

        try:
            response = httpx.get(
                f"{self.base_url}/api/v1/auth/me",
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.timeout,
            )
        except httpx.RequestError as exc:
            self.breaker.record_failure()
            logger.warning("Account lookup failed: %s", exc)
            raise UsersServiceUnavailable()

        if response.status_code == 401:
            self.breaker.record_success()
            raise NotAuthenticated()

        if response.status_code == 403:
            self.breaker.record_success()
            raise Forbidden("Account is deactivated")

        if response.status_code != 200:
            self.breaker.record_failure()
            logger.warning("Users service answered %s to an account lookup", response.status_code)
            raise UsersServiceUnavailable("Users service returned an error")

        self.breaker.record_success()
        return AccountSnapshot.model_validate(response.json())


def get_account_directory() -> AccountDirectory:
    """
    FastAPI dependency returning the account lookup used to re-check
    callers before booking writes.
    """
    return HttpAccountDirectory()
