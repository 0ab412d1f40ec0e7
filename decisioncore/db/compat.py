"""
Database compatibility layer.

Provides types that behave the same on SQLite (dev/tests) and PostgreSQL (prod):
- UTCDateTime: timezone-aware UTC datetimes on both. SQLite stores naive
  values, so they are normalized to UTC on the way in and tagged on the way out.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, TypeDecorator


class UTCDateTime(TypeDecorator):
    """Platform-independent aware datetime.

    Uses TIMESTAMP WITH TIME ZONE on PostgreSQL, naive UTC on SQLite.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if isinstance(value, datetime) and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
