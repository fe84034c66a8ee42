# bookings_service/circuit_breaker.py
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

logger = logging.getLogger(__name__)


class CircuitBreaker:
    """
    Simple in-memory circuit breaker for outbound HTTP calls.

    States:
    - closed: all requests pass, count failures
    - open: requests are blocked immediately
    - half_open: allow a trial request after reset timeout
    """

    def __init__(self, name: str, max_failures: int = 3, reset_timeout_seconds: int = 30):
        self.name = name
        self.max_failures = max_failures
        self.reset_timeout = timedelta(seconds=reset_timeout_seconds)
        self.failure_count = 0
        self.state = "closed"  # "closed" | "open" | "half_open"
        self.last_failure_time: Optional[datetime] = None

    def allow_request(self) -> bool:
        """
        Return True if a request may go through, False while the circuit is open.
        """
        if self.state == "open":
            if self.last_failure_time is None:
                return False
            elapsed = datetime.now(timezone.utc) - self.last_failure_time
            if elapsed >= self.reset_timeout:
                self.state = "half_open"
                return True
            return False

        return True

    def record_success(self) -> None:
        """
        Close the circuit after a successful call.
        """
        if self.state != "closed":
            logger.info("Circuit %s closed again", self.name)
        self.failure_count = 0
        self.state = "closed"
        self.last_failure_time = None

    def record_failure(self) -> None:
        """
        Count a failure and open the circuit once the threshold is reached.

        A failed trial call in the half-open state reopens immediately.
        """
        self.failure_count += 1
        self.last_failure_time = datetime.now(timezone.utc)
        if self.state == "half_open" or self.failure_count >= self.max_failures:
            if self.state != "open":
                logger.warning(
                    "Circuit %s opened after %s failures", self.name, self.failure_count
                )
            self.state = "open"

    def reset(self) -> None:
        self.failure_count = 0
        self.state = "closed"
        self.last_failure_time = None


# Circuit breaker instance for calling the Equipment service
equipment_circuit_breaker = CircuitBreaker(
    name="equipment_service",
    max_failures=3,
    reset_timeout_seconds=30,
)

# Circuit breaker instance for calling the Users service
users_circuit_breaker = CircuitBreaker(
    name="users_service",
    max_failures=3,
    reset_timeout_seconds=30,
)
