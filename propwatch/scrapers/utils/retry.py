"""Retry policy for plain HTTP fetches."""

import httpx
import structlog
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from propwatch.config import settings

logger = structlog.get_logger(__name__)

TRANSIENT_HTTP_ERRORS = (
    httpx.ConnectError,
    httpx.TimeoutException,
    httpx.RemoteProtocolError,
)


def is_transient_http_error(exc: BaseException) -> bool:
    """Connection problems, timeouts, 429 and 5xx are worth another try."""
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return isinstance(exc, TRANSIENT_HTTP_ERRORS)


def _log_before_sleep(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "http_retry",
        attempt=retry_state.attempt_number,
        wait_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
        error=str(exc) if exc else None,
    )


# Reusable retry decorator for httpx requests; the last error is re-raised
http_retry = retry(
    stop=stop_after_attempt(settings.FETCH_MAX_RETRIES),
    wait=wait_exponential(multiplier=settings.FETCH_RETRY_BASE_DELAY_S, min=settings.FETCH_RETRY_BASE_DELAY_S, max=30),
    retry=retry_if_exception(is_transient_http_error),
    before_sleep=_log_before_sleep,
    reraise=True,
)
