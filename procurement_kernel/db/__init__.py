"""Database layer - engine, base classes, types."""

from procurement_kernel.db.base import Base, TimestampedBase
from procurement_kernel.db.engine import (
    create_engine_from_url,
    create_tables,
    drop_tables,
    make_session_factory,
    session_scope,
)
from procurement_kernel.db.types import IdType, LongText, Money, ShortCode

__all__ = [
    "Base",
    "TimestampedBase",
    "IdType",
    "LongText",
    "Money",
    "ShortCode",
    "create_engine_from_url",
    "create_tables",
    "drop_tables",
    "make_session_factory",
    "session_scope",
]
