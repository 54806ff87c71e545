from __future__ import annotations

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

import httpx

_RETRYABLE_STATUS = (408, 425, 429)


def parse_retry_after(value: str | None) -> float | None:
    """Retry-After is either delta-seconds or an HTTP date."""
    raw = (value or "").strip()
    if not raw:
        return None

    try:
        return max(0.0, float(raw))
    except ValueError:
        pass

    try:
        when = parsedate_to_datetime(raw)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


def _is_retryable_status(code: int | None) -> bool:
    return code is not None and (code in _RETRYABLE_STATUS or code >= 500)


def is_retryable_http_exception(exc: BaseException) -> tuple[bool, float | None, str | None]:
    """
    Retry policy for ActivityPub lookups:
    - connection errors and timeouts
    - HTTP 408, 425, 429
    - HTTP 5xx
    """
    if isinstance(exc, httpx.TimeoutException):
        return True, None, "timeout"

    if isinstance(exc, httpx.TransportError):
        return True, None, "network_error"

    if isinstance(exc, httpx.HTTPStatusError):
        code = exc.response.status_code
        if _is_retryable_status(code):
            return True, parse_retry_after(exc.response.headers.get("retry-after")), f"http_{code}"
        return False, None, f"http_{code}"

    return False, None, None
