"""Base model and mixins for all SQLAlchemy models.

Provides:
- Base: Declarative base class for all models
- RecordMixin: Adds a UUID primary key and audit timestamps
- UTCDateTime: DateTime column type that always hands back aware UTC values

Every model inherits from Base and includes RecordMixin. Timestamps are
generated client-side so freshly flushed rows can be serialised without
another round trip.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import DateTime, TypeDecorator, Uuid, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware DateTime that normalises to UTC on both sides.

    SQLite drops tzinfo on the way back; PostgreSQL keeps it. Either way
    callers get an aware datetime they can compare against ``utcnow()``.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


class Base(DeclarativeBase):
    """Declarative base for all store models."""
    pass


class RecordMixin:
    """Mixin providing the standard identity and audit columns.

    Adds:
    - id: UUID primary key (auto-generated)
    - created_at: Timestamp set on insert
    - updated_at: Timestamp updated on every change
    """

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
        nullable=False,
    )


# ---------------------------------------------------------------------------
# Serialisation helpers shared by to_dict() implementations
# ---------------------------------------------------------------------------

def money(value: Decimal | float | None) -> float | None:
    """Render a Numeric column as a JSON-friendly float."""
    return float(value) if value is not None else None


def iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def to_decimal(value) -> Decimal | None:
    """Coerce request numbers to Decimal without float artefacts."""
    if value is None or isinstance(value, Decimal):
        return value
    return Decimal(str(value))
