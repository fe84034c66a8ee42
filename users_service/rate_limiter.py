# users_service/rate_limiter.py
import os
import time
from typing import Dict, List

from fastapi import HTTPException, Request, status

# Sliding window: N requests / WINDOW seconds per IP+path
WINDOW_SECONDS = 60
MAX_REQUESTS_PER_WINDOW = int(os.getenv("MAX_AUTH_REQUESTS_PER_MINUTE", "10"))

_request_log: Dict[str, List[float]] = {}


def ip_rate_limiter(request: Request):
    """
    Rate limit based on client IP + path.

    Used for the unauthenticated endpoints:
    - POST /api/v1/auth/register
    - POST /api/v1/auth/login
    """
    if os.getenv("TESTING") == "1":
        return
    client_ip = request.client.host if request.client else "unknown"
    key = f"{client_ip}:{request.url.path}"

    now = time.time()
    window_start = now - WINDOW_SECONDS
    timestamps = [ts for ts in _request_log.get(key, []) if ts >= window_start]

    if len(timestamps) >= MAX_REQUESTS_PER_WINDOW:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests from this IP, please slow down",
        )

    timestamps.append(now)
    _request_log[key] = timestamps
