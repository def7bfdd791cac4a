"""Retries for transient object-store failures.

Only multipart part uploads go through here; single-shot operations
surface their first failure to the caller.

A failure counts as transient when the connection dropped or timed out,
or when the store answered 429, a 5xx, or one of its throttling codes.
Bad requests, auth failures and unknown upload IDs fail at once.
"""

import logging
import time
from typing import TYPE_CHECKING, Any, Callable, Optional, Sequence

from botocore.exceptions import (
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from bucket_uploader.errors import RemoteError

if TYPE_CHECKING:
    from bucket_uploader.cancellation import CancellationToken

logger = logging.getLogger(__name__)

TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

# Some S3-compatible stores send these with a 200 or a 503
TRANSIENT_ERROR_CODES = frozenset({"SlowDown", "RequestTimeout", "InternalError"})

TRANSIENT_NETWORK_ERRORS = (
    EndpointConnectionError,
    ConnectTimeoutError,
    ReadTimeoutError,
    ConnectionClosedError,
)

DEFAULT_RETRY_DELAYS = (1.0, 2.0, 4.0)


class RetryExhausted(Exception):
    """The last permitted attempt failed with a transient error."""

    def __init__(self, attempts: int, last_error: Exception):
        super().__init__(f"Gave up after {attempts} attempt(s): {last_error}")
        self.attempts = attempts
        self.last_error = last_error


def is_retryable_error(error: Exception) -> bool:
    """Tell whether another attempt could succeed where ``error`` failed."""
    if isinstance(error, RemoteError):
        return error.retryable

    if isinstance(error, TRANSIENT_NETWORK_ERRORS):
        return True

    if isinstance(error, ClientError):
        code = error.response.get("Error", {}).get("Code")
        status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        return status in TRANSIENT_STATUS_CODES or code in TRANSIENT_ERROR_CODES

    return False


def _delay_before_retry(retry_number: int, delays: Sequence[float]) -> float:
    if not delays:
        return 0.0
    # The last delay is reused once the sequence runs out
    return delays[min(retry_number, len(delays)) - 1]


def retry_with_backoff(
    func: Callable[..., Any],
    max_attempts: int = 3,
    delays: Sequence[float] = DEFAULT_RETRY_DELAYS,
    args: tuple = (),
    kwargs: Optional[dict] = None,
    cancellation_token: Optional["CancellationToken"] = None,
) -> Any:
    """Call ``func(*args, **kwargs)``, retrying transient failures.

    Args:
        func: Callable to run.
        max_attempts: Total number of calls allowed, the first included.
        delays: Seconds to sleep before the first, second, ... retry.
        args: Positional arguments for ``func``.
        kwargs: Keyword arguments for ``func``.
        cancellation_token: When it fires, the pending wait ends and no
            further attempt is made; the last failure is raised as is.

    Returns:
        Whatever ``func`` returns.

    Raises:
        RetryExhausted: If the final attempt failed with a transient error.
        Exception: The first non-transient error, or the last failure
                   if the token fired, unchanged.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
    kwargs = kwargs or {}

    attempt = 1
    while True:
        try:
            return func(*args, **kwargs)
        except Exception as e:
            if not is_retryable_error(e):
                raise
            if attempt == max_attempts:
                raise RetryExhausted(max_attempts, e) from e
            if cancellation_token is not None and cancellation_token.cancelled:
                raise

            delay = _delay_before_retry(attempt, delays)
            logger.warning(
                "Transient failure on attempt %d of %d, retrying in %.1fs: %s",
                attempt,
                max_attempts,
                delay,
                e,
            )
            if cancellation_token is None:
                time.sleep(delay)
            elif cancellation_token.wait(delay):
                raise
            attempt += 1
