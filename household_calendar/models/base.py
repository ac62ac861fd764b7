"""
Declarative base and shared column types for calendar storage.

Rows are never removed: deleting a calendar event stamps deleted_at, and
every query goes through CalendarRecord.active() so deleted rows stay
invisible.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, JSON, TypeDecorator, func
from sqlalchemy.dialects.postgresql import JSONB, UUID as PostgreSQL_UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql.elements import ColumnElement
from sqlalchemy.types import CHAR

from household_calendar.config import get_settings
from household_calendar.timeutils import utcnow


class GUID(TypeDecorator):
    """
    Event IDs as native UUID on PostgreSQL, 32-char hex on SQLite.

    Accepts uuid.UUID values or their string form on the way in and always
    returns uuid.UUID.
    """

    impl = CHAR(32)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PostgreSQL_UUID())
        return dialect.type_descriptor(CHAR(32))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        event_id = value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
        return str(event_id) if dialect.name == "postgresql" else event_id.hex

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(value)


def get_json_type():
    """JSON column type for reminder settings (JSONB on PostgreSQL)."""
    if get_settings().uses_postgresql:
        return JSONB
    return JSON


class Base(DeclarativeBase):
    """Declarative base for calendar tables."""

    type_annotation_map = {
        uuid.UUID: GUID,
    }


class CalendarRecord(Base):
    """
    Columns shared by stored calendar rows.

    - id: UUID primary key, exposed to clients as the event ID
    - created_at / updated_at: maintained by the database
    - deleted_at: set once the row is deleted, NULL while it is live
    """

    __abstract__ = True

    id: Mapped[uuid.UUID] = mapped_column(GUID, primary_key=True, default=uuid.uuid4)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )

    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=None,
    )

    @classmethod
    def active(cls) -> ColumnElement[bool]:
        """Filter clause matching rows that have not been deleted."""
        return cls.deleted_at.is_(None)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def soft_delete(self) -> bool:
        """
        Stamp deleted_at, keeping the row for auditing.

        Returns:
            False if the row was already deleted (its timestamp is kept)
        """
        if self.is_deleted:
            return False
        self.deleted_at = utcnow()
        return True

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(id={self.id})>"
