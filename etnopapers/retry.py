"""Retry with exponential backoff for AI provider calls"""
import logging
import threading
import time
from typing import Callable, Optional, TypeVar

from .config import DEFAULT_INITIAL_DELAY, DEFAULT_MAX_ATTEMPTS
from .errors import CancelledError, ProviderCallError, ProviderConnectionError, ProviderTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_STATUS_CODES = (429, 500, 502, 503, 504)


class CancellationToken:
    """Cooperative cancellation flag shared between a caller and a running extraction"""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise CancelledError()

    def wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`; returns True as soon as the token is cancelled"""
        return self._event.wait(seconds)


def is_transient_error(error: BaseException, status_code: Optional[int] = None) -> bool:
    """
    Whether a failure is worth retrying

    - Timeouts and cancellations: no
    - HTTP 429, 500, 502, 503, 504: yes; any other status: no
    - Network/connection failures: yes
    """
    if isinstance(error, (CancelledError, ProviderTimeoutError, TimeoutError)):
        return False

    if status_code is None:
        status_code = getattr(error, "status_code", None)
    if status_code is not None:
        return status_code in TRANSIENT_STATUS_CODES

    if isinstance(error, (ProviderConnectionError, ConnectionError)):
        return True
    # A provider failure without a status code is a network-level failure
    if isinstance(error, ProviderCallError):
        return True
    return False


class RetryPolicy:
    """
    Calls an operation up to `max_attempts` times with exponential backoff.

    The delay starts at `initial_delay` seconds and doubles after every
    failed attempt. Cancellation is never retried.

    Example:
        policy = RetryPolicy(max_attempts=3, initial_delay=2.0, should_retry=is_transient_error)
        raw = policy.execute(lambda: provider.extract_metadata(text), "extract_metadata", token)
    """

    def __init__(self,
                 max_attempts: int = DEFAULT_MAX_ATTEMPTS,
                 initial_delay: float = DEFAULT_INITIAL_DELAY,
                 should_retry: Optional[Callable[[BaseException], bool]] = None,
                 sleep: Optional[Callable[[float], None]] = None):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if initial_delay < 0:
            raise ValueError("initial_delay must be non-negative")
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.should_retry = should_retry
        self.sleep = sleep

    def _wait(self, delay: float, cancel_token: Optional[CancellationToken]):
        if self.sleep is not None:
            self.sleep(delay)
        elif cancel_token is not None:
            if cancel_token.wait(delay):
                raise CancelledError()
        else:
            time.sleep(delay)
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

    def execute(self,
                operation: Callable[[], T],
                operation_name: str = "operation",
                cancel_token: Optional[CancellationToken] = None) -> T:
        """
        Run the operation, retrying failures

        Args:
            operation: Zero-argument callable
            operation_name: Label used in log messages
            cancel_token: Optional token checked before every attempt and while waiting

        Returns:
            The operation's result

        Raises:
            CancelledError: immediately, on cancellation
            The last failure once attempts are exhausted or the failure is not retryable
        """
        current_delay = self.initial_delay
        start_ts = time.perf_counter()

        for attempt in range(1, self.max_attempts + 1):
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            try:
                logger.debug("[%s] Attempt %d/%d", operation_name, attempt, self.max_attempts)
                return operation()
            except CancelledError:
                raise
            except Exception as e:
                elapsed = time.perf_counter() - start_ts
                if attempt >= self.max_attempts:
                    logger.error("[%s] Failed after %d attempts (%.1fs): %s",
                                 operation_name, attempt, elapsed, e)
                    raise
                if self.should_retry is not None and not self.should_retry(e):
                    logger.error("[%s] Attempt %d failed with a non-retryable error (%.1fs): %s",
                                 operation_name, attempt, elapsed, e)
                    raise

                logger.warning("[%s] Attempt %d failed: %s. Retrying in %.1fs",
                               operation_name, attempt, e, current_delay)
                self._wait(current_delay, cancel_token)
                current_delay *= 2

        # max_attempts >= 1, so the loop always returns or raises
        raise RuntimeError(f"{operation_name} did not run")


def execute_with_retry(operation: Callable[[], T],
                       operation_name: str = "operation",
                       max_attempts: int = DEFAULT_MAX_ATTEMPTS,
                       initial_delay: float = DEFAULT_INITIAL_DELAY,
                       cancel_token: Optional[CancellationToken] = None) -> T:
    """Shortcut for RetryPolicy(max_attempts, initial_delay).execute(...)"""
    policy = RetryPolicy(max_attempts=max_attempts, initial_delay=initial_delay)
    return policy.execute(operation, operation_name, cancel_token)
