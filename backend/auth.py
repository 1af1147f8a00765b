"""
Optional API key authentication and rate limiting.

- If CHATTRAIN_API_KEY is set, requests must include X-API-Key: <key> (or Authorization: Bearer <key>).
- Health and metrics are excluded from auth for load balancers.
- Rate limiting: in-memory, per-IP or per-API-key; configurable requests per window.
"""

import os
import time
from typing import Optional

from fastapi import HTTPException, Request

API_KEY_HEADER = "X-API-Key"
API_KEY_ENV = os.getenv("CHATTRAIN_API_KEY", "").strip()
# Rate limit: max requests per window per identifier (IP or API key); 0 disables
RATE_LIMIT_REQUESTS = int(os.environ.get("CHATTRAIN_RATE_LIMIT_REQUESTS", "120"))
RATE_LIMIT_WINDOW_SEC = int(os.environ.get("CHATTRAIN_RATE_LIMIT_WINDOW_SEC", "60"))

# In-memory rate limit: key -> (window_start_sec, count)
_rate_limit_store: dict[str, tuple[float, int]] = {}


def get_client_id(request: Request, api_key: Optional[str]) -> str:
    """Identify client for rate limiting: API key if present, else X-Forwarded-For or client host."""
    if api_key:
        return f"key:{api_key[:16]}"
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"
    return f"ip:{request.client.host if request.client else 'unknown'}"


def check_rate_limit(client_id: str) -> None:
    """Raise 429 if over limit. Otherwise increment and allow."""
    if RATE_LIMIT_REQUESTS <= 0:
        return
    now = time.time()
    if client_id not in _rate_limit_store:
        _rate_limit_store[client_id] = (now, 1)
        return
    start, count = _rate_limit_store[client_id]
    if now - start >= RATE_LIMIT_WINDOW_SEC:
        _rate_limit_store[client_id] = (now, 1)
        return
    count += 1
    _rate_limit_store[client_id] = (start, count)
    if count > RATE_LIMIT_REQUESTS:
        raise HTTPException(status_code=429, detail="Rate limit exceeded. Try again later.")


def extract_api_key(request: Request) -> Optional[str]:
    """API key from header, query string or Bearer token."""
    key = request.headers.get(API_KEY_HEADER) or request.query_params.get("api_key")
    auth = request.headers.get("Authorization")
    if not key and auth and auth.startswith("Bearer "):
        key = auth[7:]
    return key or None


def skip_auth_path(path: str) -> bool:
    """Paths that do not require API key (health, metrics for load balancers)."""
    return path.rstrip("/") in ("/api/health", "/api/metrics")
