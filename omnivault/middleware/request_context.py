"""Request context middleware: request id, timing, access log and rate limiting in one pass.

Per request:
- Generate or propagate ``X-Request-ID`` and expose it to log records
- Measure request duration
- Log every request/response as structured JSON
- Enforce per-client token buckets: a general per-minute budget, and a
  tighter hourly budget on the verification resend endpoint

The limiter is the pure function ``check_rate_limit``; bucket state lives in
module-level dicts guarded by one lock.
"""

import logging
import threading
import time
import uuid
from typing import Dict, Optional, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from ..core.config import settings
from ..core.logging_config import request_id_var
from ..exceptions import ErrorCode
from .exception_handler import error_body

logger = logging.getLogger(__name__)

# {client_key: (available_tokens, last_refill_timestamp)}
Bucket = Dict[str, Tuple[float, float]]

_rate_buckets: Bucket = {}
_resend_buckets: Bucket = {}
_rate_lock = threading.Lock()

_EVICT_EVERY = 100
_rate_call_count = 0

RESEND_VERIFICATION_PATH = "/api/auth/resend-verification"
_EXEMPT_PATHS = frozenset({"/", "/health", "/docs", "/redoc", "/openapi.json"})


def check_rate_limit(
    bucket: Bucket,
    key: str,
    capacity: int,
    period_seconds: float = 60.0,
    now: Optional[float] = None,
) -> Tuple[bool, float]:
    """Take one token for *key* from a bucket refilling *capacity* tokens per period.

    Args:
        bucket: Per-key state, modified in place.
        key: Client identifier.
        capacity: Burst size and refill amount per period. ``<= 0`` disables the check.
        period_seconds: Length of the refill period.
        now: Current monotonic timestamp, injectable for tests.

    Returns:
        ``(allowed, retry_after)``; *retry_after* is 0.0 when allowed, otherwise
        the seconds until the next token is available.
    """
    global _rate_call_count

    if capacity <= 0:
        return True, 0.0
    if now is None:
        now = time.monotonic()

    # Full buckets carry no information; drop them periodically.
    _rate_call_count += 1
    if _rate_call_count % _EVICT_EVERY == 0:
        cutoff = now - period_seconds
        for stale in [k for k, (_, ts) in bucket.items() if ts < cutoff]:
            del bucket[stale]

    refill_rate = capacity / period_seconds
    tokens, last = bucket.get(key, (float(capacity), now))
    tokens = min(float(capacity), tokens + (now - last) * refill_rate)

    if tokens >= 1.0:
        bucket[key] = (tokens - 1.0, now)
        return True, 0.0

    bucket[key] = (tokens, now)
    return False, (1.0 - tokens) / refill_rate


def _client_key(request: Request) -> str:
    """First ``X-Forwarded-For`` hop when behind a proxy, else the peer address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"


def _check_limits(request: Request) -> Tuple[bool, float, str]:
    key = _client_key(request)
    path = request.url.path
    with _rate_lock:
        allowed, retry_after = check_rate_limit(
            _rate_buckets, key, settings.rate_limit_per_minute
        )
        if allowed and path == RESEND_VERIFICATION_PATH and request.method == "POST":
            allowed, retry_after = check_rate_limit(
                _resend_buckets, key, settings.verification_resend_per_hour, period_seconds=3600.0
            )
    return allowed, retry_after, key


def reset_rate_limits() -> None:
    """Forget all bucket state."""
    with _rate_lock:
        _rate_buckets.clear()
        _resend_buckets.clear()


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Single middleware handling request-id, timing, logging, and rate limiting."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        rid = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
        request_id_var.set(rid)

        if request.url.path not in _EXEMPT_PATHS:
            allowed, retry_after, key = _check_limits(request)
            if not allowed:
                logger.warning(
                    "Rate limit exceeded",
                    extra={"client": key, "path": request.url.path, "retry_after": round(retry_after, 1)},
                )
                return JSONResponse(
                    status_code=429,
                    content=error_body(request, 429, ErrorCode.RATE_LIMITED, "Too many requests"),
                    headers={
                        "Retry-After": str(int(retry_after) + 1),
                        "X-Request-ID": rid,
                    },
                )

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        response.headers["X-Request-ID"] = rid
        response.headers["X-Response-Time"] = f"{duration_ms}ms"

        logger.info(
            f"{request.method} {request.url.path} {response.status_code}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        return response
