"""
Shared column helpers for SQLModel tables
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Type

import sqlalchemy as sa


def enum_type(enum_cls: Type[Enum]) -> sa.Enum:
    """VARCHAR-backed enum storing member values (e.g. "paid") rather than names"""
    return sa.Enum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        validate_strings=True,
        length=32,
    )


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Aware UTC copy of value; naive values are taken to already be UTC"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UTCDateTime(sa.types.TypeDecorator):
    """Timestamp column that always binds and returns aware UTC datetimes

    SQLite keeps no offset, so values read back there are re-tagged as UTC.
    """

    impl = sa.DateTime
    cache_ok = True

    def __init__(self, with_timezone: bool = True):
        super().__init__(timezone=with_timezone)

    def process_bind_param(self, value, dialect):
        return as_utc(value)

    def process_result_value(self, value, dialect):
        return as_utc(value)
