import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import httpx

from .coverage_exceptions import (
    CoverageEngineError,
    DegenerateGrid,
    GeocodeNotFound,
    GeocodeUnavailable,
    LocationResolutionError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Connect timeout, ETIMEDOUT, EAI_AGAIN/ENOTFOUND (DNS) and ECONNRESET all
# surface as one of these in httpx.
TRANSIENT_EXCEPTIONS = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
    asyncio.TimeoutError,
)


def is_transient_error(error: BaseException) -> bool:
    """True for failures worth another attempt; HTTP statuses never are."""
    if isinstance(error, httpx.HTTPStatusError):
        return False
    return isinstance(error, TRANSIENT_EXCEPTIONS)


def describe_error(error: BaseException) -> str:
    """Short, key-free description of a transport failure for logs"""
    text = str(error) or error.__class__.__name__
    return f"{error.__class__.__name__}: {text}"


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 0.4,
    should_retry: Callable[[BaseException], bool] = is_transient_error,
    on_retry: Optional[Callable[[int, BaseException], None]] = None,
) -> T:
    """Retry ``func`` with linear backoff (``attempt * base_delay``).

    Only errors accepted by ``should_retry`` are retried; everything else is
    raised on the spot. After ``max_attempts`` the last error is re-raised.
    """
    for attempt in range(1, max_attempts + 1):
        try:
            return await func()
        except Exception as e:
            if not should_retry(e):
                raise
            if attempt == max_attempts:
                logger.warning(f"Giving up after {max_attempts} attempts: {describe_error(e)}")
                raise

            delay = attempt * base_delay
            if on_retry is not None:
                on_retry(attempt, e)
            logger.debug(f"Attempt {attempt} failed ({describe_error(e)}). Retrying in {delay:.1f}s")
            await asyncio.sleep(delay)

    raise RuntimeError("retry_with_backoff called with max_attempts < 1")


def mask_key(key: Optional[str]) -> str:
    """Show only the edges of an API key"""
    if key and len(key) > 7:
        return f"{key[:3]}…{key[-3:]}"
    return "***"


def redact(text: str, secret: Optional[str]) -> str:
    if secret:
        return text.replace(secret, "[REDACTED]")
    return text


def failure_kind(error: BaseException) -> str:
    if isinstance(error, GeocodeNotFound):
        return "location_not_found"
    if isinstance(error, GeocodeUnavailable):
        return "location_service_unavailable"
    if isinstance(error, DegenerateGrid):
        return "degenerate_search_area"
    if isinstance(error, CoverageEngineError):
        return "coverage_check_failed"
    return "internal_error"


def create_failure_response(error: Exception, zip_code: str) -> Dict[str, Any]:
    """Create a small renderable failure for the top-level caller"""
    if isinstance(error, LocationResolutionError):
        message = "could not resolve location"
    else:
        message = "coverage check failed"

    return {
        "supported": None,
        "success": False,
        "error": {
            "kind": failure_kind(error),
            "message": message,
            "detail": str(error),
            "zip_code": zip_code,
            "retry_recommended": isinstance(error, GeocodeUnavailable),
        },
        "metadata": {
            "timestamp": time.time(),
            "service": "coverage-engine",
        },
    }
