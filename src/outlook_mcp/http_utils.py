import logging
import time
from typing import Any, Callable

import httpx

from .exceptions import GraphAPIError, RateLimitError

logger = logging.getLogger(__name__)


def _exponential_backoff(attempt: int, base_delay: float = 1.0) -> float:
    return min(base_delay * (2**attempt), 60.0)


def _retry_after(response: httpx.Response, default: float) -> float:
    header = response.headers.get("Retry-After")
    if header and header.isdigit():
        return min(float(header), 60.0)
    return default


def _status_error(e: httpx.HTTPStatusError) -> GraphAPIError:
    status = e.response.status_code
    return GraphAPIError(
        f"API call failed with status {status}: {e.response.text}",
        status_code=status,
    )


def retry_with_backoff(
    func: Callable[[], Any],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
) -> Any:
    """Run ``func``, retrying throttled (429) and server (5xx) failures.

    Other HTTP failures are converted to GraphAPIError immediately.
    Transport failures are retried and surface as GraphAPIError once the
    attempts are exhausted.
    """
    for attempt in range(max_attempts):
        last_attempt = attempt == max_attempts - 1
        try:
            return func()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 429:
                if not last_attempt:
                    delay = _retry_after(
                        e.response, _exponential_backoff(attempt, base_delay)
                    )
                    logger.warning(f"Rate limit hit, retrying in {delay:.1f}s")
                    sleep(delay)
                    continue
                raise RateLimitError(
                    f"API call failed with status 429: rate limit exceeded after "
                    f"{max_attempts} attempts",
                    status_code=429,
                ) from e
            if status >= 500 and not last_attempt:
                delay = _exponential_backoff(attempt, base_delay)
                logger.warning(f"Server error {status}, retrying in {delay:.1f}s")
                sleep(delay)
                continue
            raise _status_error(e) from e
        except httpx.RequestError as e:
            if not last_attempt:
                delay = _exponential_backoff(attempt, base_delay)
                logger.warning(f"Network error ({e}), retrying in {delay:.1f}s")
                sleep(delay)
                continue
            raise GraphAPIError(f"Network error: {e}") from e

    raise GraphAPIError("Unknown error during retry")
