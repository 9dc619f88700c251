"""Test circuit breaker and webhook idempotency."""
import pytest

from core.resilience import (
    CircuitBreaker,
    CircuitOpenError,
    CircuitState,
    EventStatus,
    IdempotencyStore,
)


def test_circuit_breaker_initial_state():
    cb = CircuitBreaker()
    assert cb.state == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_circuit_breaker_success():
    async def ok():
        return "ok"

    cb = CircuitBreaker()
    assert await cb.call(ok) == "ok"
    assert cb.state == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_circuit_breaker_retries_then_succeeds():
    attempts = 0

    async def flaky():
        nonlocal attempts
        attempts += 1
        if attempts < 3:
            raise ConnectionError("boom")
        return attempts

    cb = CircuitBreaker(max_retries=3, backoff_base=0)
    assert await cb.call(flaky) == 3


@pytest.mark.asyncio
async def test_circuit_breaker_retry_if_stops_early():
    attempts = 0

    async def bad_key():
        nonlocal attempts
        attempts += 1
        raise PermissionError("invalid key")

    cb = CircuitBreaker(max_retries=3, backoff_base=0)
    with pytest.raises(PermissionError):
        await cb.call(bad_key, retry_if=lambda e: not isinstance(e, PermissionError))
    assert attempts == 1


@pytest.mark.asyncio
async def test_circuit_breaker_ignores_rejected_errors():
    async def bad_key():
        raise PermissionError("invalid key")

    cb = CircuitBreaker(failure_threshold=2, max_retries=0, backoff_base=0)
    for _ in range(3):
        with pytest.raises(PermissionError):
            await cb.call(bad_key, retry_if=lambda e: not isinstance(e, PermissionError))
    assert cb.state == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_circuit_breaker_opens_after_threshold():
    async def failing():
        raise TimeoutError("slow")

    cb = CircuitBreaker(failure_threshold=2, max_retries=0, backoff_base=0)
    for _ in range(2):
        with pytest.raises(TimeoutError):
            await cb.call(failing)
    assert cb.state == CircuitState.OPEN
    with pytest.raises(CircuitOpenError):
        await cb.call(failing)

    cb.reset()
    assert cb.state == CircuitState.CLOSED


def test_event_reserved_once():
    store = IdempotencyStore()
    assert store.reserve("evt_1", "checkout.session.completed")
    assert not store.reserve("evt_1", "checkout.session.completed")

    store.complete("evt_1")
    record = store.seen("evt_1")
    assert record.status == EventStatus.PROCESSED
    assert record.event_type == "checkout.session.completed"
    assert record.processed_at is not None
    assert not store.reserve("evt_1", "checkout.session.completed")


def test_release_allows_redelivery():
    store = IdempotencyStore()
    store.reserve("evt_2", "checkout.session.completed")
    store.release("evt_2")
    assert store.seen("evt_2") is None
    assert store.reserve("evt_2", "checkout.session.completed")


def test_expired_events_are_forgotten():
    store = IdempotencyStore()
    store.reserve("evt_3", "customer.created", ttl_seconds=-1)
    store.reserve("evt_4", "customer.created", ttl_seconds=-1)
    store.reserve("evt_5", "customer.created")

    assert store.seen("evt_3") is None
    assert store.purge_expired() == 1
    assert len(store) == 1
