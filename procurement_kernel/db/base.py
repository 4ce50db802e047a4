"""
Module: procurement_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the integer primary key convention, the type annotation map for consistent
    column types, and the TimestampedBase mixin.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel.  ALL model files import from here.  This module MUST NOT import
    from models/, services/, selectors/, or outer layers.

Invariants enforced:
    - Integer primary keys, monotonically assigned by the database.  Stable
      "lowest id first" ordering (approver selection, route tie-breaks) relies
      on this.
    - Decimal precision: Decimal maps to Numeric(38, 9).  NEVER float for
      amounts.
    - Timestamps are timezone-aware.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar

from sqlalchemy import DateTime, Numeric, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from procurement_kernel.db.types import IdType


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is an auto-incrementing integer (BIGINT on PostgreSQL,
          INTEGER on SQLite so that rowid aliasing keeps autoincrement).
        - Decimal maps to Numeric(38, 9).
        - datetime maps to DateTime(timezone=True).
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        int: IdType,
    }

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)


class TimestampedBase(Base):
    """
    Abstract base with creation and modification timestamps.

    Guarantees:
        - created_at is set to server NOW() on INSERT and never changes.
        - updated_at is set on INSERT and refreshed on every UPDATE.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
