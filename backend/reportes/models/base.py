"""
Base models and mixins for SQLAlchemy ORM.

Provides reusable base classes, mixins for timestamps and UUIDs,
and common utilities for all database models.
"""

from datetime import datetime, timezone
from typing import Any
import json
import uuid

from sqlalchemy import Column, String, inspect
from sqlalchemy.orm import declarative_base


# SQLAlchemy declarative base for all ORM models
Base = declarative_base()


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """
    Get current UTC timestamp in ISO format.

    Returns:
        ISO format timestamp string (e.g., "2025-01-15T10:30:45.123456+00:00")

    Note:
        Microsecond precision keeps rows created in the same second
        in insertion order when sorted by timestamp.
    """
    return utc_now().isoformat(timespec="microseconds")


def parse_iso(value: str | None) -> datetime | None:
    """
    Parse an ISO timestamp stored by this application.

    Naive values are treated as UTC.

    Args:
        value: ISO format string or None

    Returns:
        Aware datetime, or None when value is empty
    """
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class TimestampMixin:
    """
    Mixin that adds created_at and updated_at timestamp columns.

    Uses TEXT type for SQLite compatibility (ISO format strings).
    Timestamps are stored in UTC ISO format for PostgreSQL compatibility.

    Attributes:
        created_at: Timestamp when record was created (immutable)
        updated_at: Timestamp when record was last updated (auto-updated)
    """

    created_at = Column(
        String,
        nullable=False,
        default=utc_now_iso,
        doc="UTC timestamp when record was created"
    )

    updated_at = Column(
        String,
        nullable=False,
        default=utc_now_iso,
        onupdate=utc_now_iso,
        doc="UTC timestamp when record was last updated"
    )


class UUIDMixin:
    """
    Mixin that adds a UUID primary key column.

    Uses TEXT type for SQLite compatibility (string format UUIDs).

    Attributes:
        id: UUID primary key as TEXT
    """

    id = Column(
        String,
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        doc="UUID primary key"
    )


def load_json(raw: str | None, default: Any) -> Any:
    """Decode a JSON text column, falling back to default when empty."""
    if not raw:
        return default
    return json.loads(raw)


def dump_json(value: Any) -> str | None:
    """Encode a value for a JSON text column (None stays NULL)."""
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False)


class ModelMixin:
    """
    Mixin providing common model utilities.

    Adds helper methods for serialization and representation.
    """

    def to_dict(self) -> dict[str, Any]:
        """
        Convert model instance to dictionary.

        Returns:
            Dictionary keyed by column name with raw column values

        Note:
            Only includes columns, not relationships.
            JSON text columns are returned as stored.
        """
        mapper = inspect(self).mapper
        return {
            attr.columns[0].name: getattr(self, attr.key)
            for attr in mapper.column_attrs
        }

    def __repr__(self) -> str:
        """
        String representation of model instance.

        Returns:
            String like "ModelName(id='uuid', status='draft')"
        """
        attrs = ", ".join(
            f"{key}={repr(value)}"
            for key, value in self.to_dict().items()
            if key in ["id", "email", "codigo_tienda", "status"]
        )
        return f"{self.__class__.__name__}({attrs})"
