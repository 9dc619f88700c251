"""
Circuit Breaker: resilience for outbound API calls.

Protects the Gemini client against:
- Transient API failures (retry with exponential backoff)
- Cascading failures (circuit opens after repeated failed calls)
- Errors that retrying cannot fix (``retry_if`` short-circuits them
  without counting toward opening the circuit)
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"      # Normal operation
    OPEN = "open"          # Failing, reject calls
    HALF_OPEN = "half_open"  # Testing recovery


class CircuitOpenError(RuntimeError):
    """Raised when a call is rejected because the circuit is open."""


class CircuitBreaker:
    """
    Circuit breaker with exponential backoff.

    ``max_retries`` counts retries after the first attempt, so a call makes
    at most ``max_retries + 1`` attempts.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        backoff_max: float = 30.0,
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure: Optional[datetime] = None

    @property
    def state(self) -> CircuitState:
        if self._state == CircuitState.OPEN:
            if self._last_failure and (
                datetime.now(timezone.utc) - self._last_failure
            ).total_seconds() > self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def reset(self) -> None:
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure = None

    async def call(
        self,
        func: Callable,
        *args,
        max_retries: Optional[int] = None,
        retry_if: Optional[Callable[[Exception], bool]] = None,
        **kwargs,
    ) -> Any:
        """Execute an async function with circuit breaker protection."""

        if self.state == CircuitState.OPEN:
            raise CircuitOpenError(f"Circuit breaker OPEN. Retry after {self.recovery_timeout}s")

        retries = self.max_retries if max_retries is None else max_retries

        # Retry with exponential backoff
        last_error: Optional[Exception] = None
        for attempt in range(retries + 1):
            try:
                result = await func(*args, **kwargs)

                # Success resets the circuit
                self._failure_count = 0
                self._state = CircuitState.CLOSED
                return result

            except Exception as e:
                last_error = e
                if retry_if is not None and not retry_if(e):
                    # Not a service failure; leaves the circuit untouched
                    raise
                if attempt < retries:
                    backoff = min(
                        self.backoff_base * (2 ** attempt),
                        self.backoff_max,
                    )
                    logger.warning(
                        "Attempt %d/%d failed (%s), retrying in %.1fs",
                        attempt + 1, retries + 1, e, backoff,
                    )
                    await asyncio.sleep(backoff)

        # All retries failed
        self._failure_count += 1
        self._last_failure = datetime.now(timezone.utc)

        if self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.error("Circuit breaker opened after %d failed calls", self._failure_count)

        raise last_error
