"""
Processed-event store for inbound webhooks.

Stripe redelivers an event until it gets a 2xx, so one event id can
arrive several times. A delivery reserves its event id before any work
runs; the reservation is kept once handling succeeds and dropped when it
fails, so the next redelivery is handled again.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class EventStatus(str, Enum):
    PROCESSING = "processing"
    PROCESSED = "processed"


@dataclass
class EventRecord:
    event_id: str
    event_type: str
    expires_at: datetime
    status: EventStatus = EventStatus.PROCESSING
    received_at: datetime = field(default_factory=_now)
    processed_at: datetime | None = None

    @property
    def is_expired(self) -> bool:
        return _now() >= self.expires_at


class IdempotencyStore:
    """Event ids seen by this process, each remembered for ``ttl_seconds``."""

    def __init__(self, ttl_seconds: int = 86400):
        self.ttl_seconds = ttl_seconds
        self._events: dict[str, EventRecord] = {}

    def __len__(self) -> int:
        return len(self._events)

    def seen(self, event_id: str) -> EventRecord | None:
        """The live record for ``event_id``, or None (expired records are dropped)."""
        record = self._events.get(event_id)
        if record is not None and record.is_expired:
            del self._events[event_id]
            return None
        return record

    def reserve(self, event_id: str, event_type: str, ttl_seconds: int | None = None) -> bool:
        """Claim ``event_id``. False when it is already being or has been handled."""
        if self.seen(event_id) is not None:
            return False
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        self._events[event_id] = EventRecord(
            event_id=event_id,
            event_type=event_type,
            expires_at=_now() + timedelta(seconds=ttl),
        )
        if len(self._events) % 1000 == 0:
            self.purge_expired()
        return True

    def complete(self, event_id: str) -> None:
        record = self._events.get(event_id)
        if record is not None:
            record.status = EventStatus.PROCESSED
            record.processed_at = _now()

    def release(self, event_id: str) -> None:
        """Forget a failed delivery so a redelivery can reserve it again."""
        if self._events.pop(event_id, None) is not None:
            logger.warning("Released webhook event %s after a failed delivery", event_id)

    def purge_expired(self) -> int:
        expired = [key for key, record in self._events.items() if record.is_expired]
        for key in expired:
            del self._events[key]
        return len(expired)

    def clear(self) -> None:
        self._events.clear()
