"""
Resilience primitives for outbound calls and inbound webhooks.

- CircuitBreaker: retry with backoff, open after repeated failures
- IdempotencyStore: handle each webhook event id at most once
"""
from core.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitOpenError,
    CircuitState,
)
from core.resilience.idempotency import (
    EventRecord,
    EventStatus,
    IdempotencyStore,
)

__all__ = [
    # Circuit breaker
    "CircuitBreaker",
    "CircuitOpenError",
    "CircuitState",
    # Webhook idempotency
    "EventRecord",
    "EventStatus",
    "IdempotencyStore",
]
