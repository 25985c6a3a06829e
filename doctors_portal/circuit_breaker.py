"""Circuit breaker for the payment provider.

Purpose: Fail fast while the provider is down instead of stacking up
slow, doomed requests.

States:
- CLOSED: Normal operation, requests pass through
- OPEN: Provider failing, requests fail immediately
- HALF_OPEN: Timeout elapsed, one trial request allowed
"""
import threading
import time
from enum import Enum
from typing import Any, Callable, Optional

from doctors_portal.logging_config import get_logger

logger = get_logger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpen(Exception):
    """Raised when circuit breaker is open (fail fast)."""

    def __init__(self, name: str, retry_in: float):
        super().__init__(f"{name} unavailable, retry in {retry_in:.1f}s")
        self.retry_in = retry_in


class CircuitBreaker:
    """Named breaker shared by concurrent request handlers."""

    def __init__(self, name: str = "provider", failure_threshold: int = 5, timeout: int = 60):
        """
        Args:
            name: Protected dependency, used in logs and errors
            failure_threshold: Consecutive failures before opening
            timeout: Seconds to stay open before a half-open trial
        """
        self.name = name
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.failure_count = 0
        self.opened_at: Optional[float] = None
        self._state = CircuitState.CLOSED
        self._lock = threading.Lock()

    @property
    def state(self) -> str:
        return self._state.value

    def call(self, func: Callable, *args, **kwargs) -> Any:
        """
        Run ``func`` unless the circuit is open.

        Raises:
            CircuitBreakerOpen: Circuit open and the timeout has not elapsed
            Exception: Whatever ``func`` raises (counted as a failure)
        """
        self._admit()
        try:
            result = func(*args, **kwargs)
        except Exception:
            self._record_failure()
            raise
        self._record_success()
        return result

    def _admit(self) -> None:
        with self._lock:
            if self._state != CircuitState.OPEN:
                return
            elapsed = time.monotonic() - self.opened_at
            if elapsed < self.timeout:
                raise CircuitBreakerOpen(self.name, self.timeout - elapsed)
            self._state = CircuitState.HALF_OPEN
            logger.info("circuit_half_open", circuit=self.name)

    def _record_success(self) -> None:
        with self._lock:
            self.failure_count = 0
            if self._state == CircuitState.HALF_OPEN:
                self._state = CircuitState.CLOSED
                logger.info("circuit_closed", circuit=self.name)

    def _record_failure(self) -> None:
        with self._lock:
            self.failure_count += 1
            trial_failed = self._state == CircuitState.HALF_OPEN
            if trial_failed or self.failure_count >= self.failure_threshold:
                self._state = CircuitState.OPEN
                self.opened_at = time.monotonic()
                logger.warning(
                    "circuit_opened",
                    circuit=self.name,
                    failures=self.failure_count,
                    trial_failed=trial_failed,
                    timeout=self.timeout,
                )
