# bookings_service/rate_limiter.py
import os
import time
from typing import Any, Dict, List

from fastapi import Depends, HTTPException, status

from common.auth import get_current_user_claims

WINDOW_SECONDS = 60
MAX_BOOKINGS_PER_WINDOW = int(os.getenv("MAX_BOOKING_WRITES_PER_MINUTE", "20"))

_user_request_log: Dict[int, List[float]] = {}


def booking_rate_limiter(claims: Dict[str, Any] = Depends(get_current_user_claims)):
    """
    Rate limit booking writes per authenticated user (sliding window).
    """
    if os.getenv("TESTING") == "1":
        return

    user_id = claims["user_id"]
    now = time.time()
    window_start = now - WINDOW_SECONDS

    timestamps = [ts for ts in _user_request_log.get(user_id, []) if ts >= window_start]

    if len(timestamps) >= MAX_BOOKINGS_PER_WINDOW:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many booking operations in a short time",
        )

    timestamps.append(now)
    _user_request_log[user_id] = timestamps
