"""
Module: procurement_kernel.db.engine
Responsibility: SQLAlchemy engine construction, session factories, and the
    transactional scope used by every entry point.
Architecture position: Kernel > DB.  May import from db/base.py.
    create_tables/drop_tables import models/ lazily so that Base.metadata is
    complete.

Invariants enforced:
    - No module-level engine.  The runtime builds one engine at startup and
      passes the session factory down explicitly.
    - PostgreSQL sessions run at READ COMMITTED with explicit row locks
      (SELECT ... FOR UPDATE) where read-modify-write needs them.
    - SQLite (tests, local runs) uses StaticPool for in-memory URLs so that
      every session sees the same database.

Failure modes:
    - OperationalError if the database is unreachable.
    - session_scope re-raises whatever the body raised after rolling back.
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from procurement_kernel.logging_config import get_logger

logger = get_logger("db.engine")


def create_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Build the SQLAlchemy engine for a database URL.

    Args:
        database_url: PostgreSQL or SQLite connection URL.
        echo: If True, log all SQL statements.
        pool_size: Connections kept in the pool (PostgreSQL only).
        max_overflow: Max connections beyond pool_size (PostgreSQL only).
        pool_pre_ping: Test connections before use.
        pool_timeout: Seconds to wait for a pooled connection.
        pool_recycle: Seconds after which a connection is recycled.

    Returns:
        SQLAlchemy Engine instance.
    """
    if database_url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url.rstrip("/") in ("sqlite:", "sqlite+pysqlite:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, echo=echo, **kwargs)
        dialect = "sqlite"
    else:
        engine = create_engine(
            database_url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            isolation_level="READ COMMITTED",
        )
        dialect = engine.dialect.name

    logger.info(
        "engine_initialized",
        extra={"dialect": dialect, "echo": echo},
    )
    return engine


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Session factory bound to ``engine``; objects stay usable after commit."""
    return sessionmaker(bind=engine, expire_on_commit=False)


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Postconditions: On normal exit, the session is committed and closed.
        On exception, the session is rolled back and closed, and the
        exception is re-raised to the caller.

    Usage:
        with session_scope(factory) as session:
            session.add(entity)
    """
    session = factory()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables(engine: Engine) -> None:
    """Create every table known to the ORM."""
    from procurement_kernel.db.base import Base
    import procurement_kernel.models  # noqa: F401

    Base.metadata.create_all(engine)
    logger.info(
        "tables_created",
        extra={"table_count": len(Base.metadata.tables)},
    )


def drop_tables(engine: Engine) -> None:
    """
    Drop all tables. Use with caution - primarily for testing.
    """
    from procurement_kernel.db.base import Base
    import procurement_kernel.models  # noqa: F401

    Base.metadata.drop_all(engine)


def is_postgres(engine: Engine) -> bool:
    """Check if the engine talks to PostgreSQL."""
    return engine.dialect.name == "postgresql"
