"""HTTP helpers shared by the third-party API clients."""

import logging
import time
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime

import requests

logger = logging.getLogger(__name__)


MAX_RETRIES = 3
RETRY_DELAYS = [1, 2, 4]
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
DEFAULT_TIMEOUT = 30
# Upper bound on a server-requested Retry-After wait
MAX_RETRY_AFTER = 60


class SourceFetchError(Exception):
    """Raised when an upstream API cannot be read."""


def _status_code(exception: Exception) -> int | None:
    response = getattr(exception, "response", None)
    return response.status_code if response is not None else None


def is_retryable_error(exception: Exception) -> bool:
    """Timeouts, dropped connections, throttling and 5xx responses are retried."""
    if isinstance(exception, (requests.exceptions.Timeout, requests.exceptions.ConnectionError)):
        return True
    return (
        isinstance(exception, requests.exceptions.HTTPError)
        and _status_code(exception) in RETRYABLE_STATUS_CODES
    )


def parse_retry_after(value: str | None, now: datetime | None = None) -> float | None:
    """Seconds to wait from a Retry-After header (delta-seconds or HTTP-date)."""
    if not value:
        return None
    value = value.strip()
    if value.isdigit():
        return float(value)
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=UTC)
    return max(0.0, (when - (now or datetime.now(UTC))).total_seconds())


def retry_delay(exception: Exception, attempt: int) -> float:
    """Backoff for ``attempt``, stretched to a throttled response's Retry-After."""
    delay = float(RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)])
    if _status_code(exception) == 429:
        requested = parse_retry_after(exception.response.headers.get("Retry-After"))
        if requested is not None:
            delay = max(delay, min(requested, MAX_RETRY_AFTER))
    return delay


def request_with_retry(
    method: str,
    url: str,
    session: requests.Session | None = None,
    **kwargs,
) -> requests.Response:
    """Send a request, retrying transient failures with backoff.

    A 429 waits at least as long as its Retry-After header asks, up to
    MAX_RETRY_AFTER seconds. Non-retryable errors and the last failed
    attempt raise the underlying ``requests`` exception.
    """
    sender = session or requests
    kwargs.setdefault("timeout", DEFAULT_TIMEOUT)

    for attempt in range(MAX_RETRIES):
        try:
            response = sender.request(method, url, **kwargs)
            response.raise_for_status()
            return response
        except requests.exceptions.RequestException as e:
            if not is_retryable_error(e) or attempt == MAX_RETRIES - 1:
                raise
            delay = retry_delay(e, attempt)
            logger.warning(
                f"{method} {url} failed (attempt {attempt + 1}/{MAX_RETRIES}): {e}. "
                f"Retrying in {delay:g}s"
            )
            time.sleep(delay)

    raise SourceFetchError(f"{method} {url} was not attempted")


def is_not_found(exception: Exception) -> bool:
    """True for an HTTP 404, which callers treat as "no data"."""
    return (
        isinstance(exception, requests.exceptions.HTTPError)
        and exception.response is not None
        and exception.response.status_code == 404
    )


class RateLimiter:
    """Enforces a minimum interval between successive calls."""

    def __init__(self, min_interval_ms: int, clock=time.monotonic, sleep=time.sleep):
        self.min_interval = min_interval_ms / 1000
        self._clock = clock
        self._sleep = sleep
        self._last_call: float | None = None

    def wait(self) -> None:
        """Block until the next call is allowed, then record it."""
        if self._last_call is not None:
            remaining = self.min_interval - (self._clock() - self._last_call)
            if remaining > 0:
                self._sleep(remaining)
        self._last_call = self._clock()
