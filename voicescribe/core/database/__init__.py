"""Database configuration and models."""

from voicescribe.core.database.base import Base, TimestampMixin, UUIDMixin
from voicescribe.core.database.session import (
    engine,
    async_session_factory,
    get_db,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    "engine",
    "async_session_factory",
    "get_db",
]
