"""
procurement_services.runtime -- one-time process initialisation.

Responsibility:
    ``bootstrap()`` runs once at process start: configures logging, loads
    and validates the workflow configuration, builds the database engine
    and session factory, optionally creates the schema, and picks the
    notifier.  The result is a frozen ``WorkflowRuntime`` that is passed
    explicitly to ``ProcurementWorkflow``; nothing is cached at module
    level.

Failure modes:
    - InvalidWorkflowConfigError when the configuration does not validate.
    - SQLAlchemy errors when the database URL is unusable.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from procurement_config import load_workflow_config
from procurement_config.schema import WorkflowConfig
from procurement_kernel.db.engine import (
    create_engine_from_url,
    create_tables,
    make_session_factory,
)
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.logging_config import configure_logging, get_logger
from procurement_kernel.services.notifications import DatabaseNotifier, Notifier

logger = get_logger("runtime")

DATABASE_URL_ENV = "PROCUREMENT_DATABASE_URL"


@dataclass(frozen=True)
class WorkflowRuntime:
    """Everything a workflow call needs, built once per process."""

    engine: Engine
    session_factory: sessionmaker[Session]
    config: WorkflowConfig
    clock: Clock
    notifier: Notifier


def database_url_from_env(default: str | None = None) -> str:
    url = os.environ.get(DATABASE_URL_ENV, default)
    if not url:
        raise RuntimeError(f"Set {DATABASE_URL_ENV} or pass --database-url")
    return url


def bootstrap(
    database_url: str,
    *,
    config: WorkflowConfig | None = None,
    config_path: Path | str | None = None,
    notifier: Notifier | None = None,
    clock: Clock | None = None,
    create_schema: bool = False,
    log_level: int = logging.INFO,
    echo: bool = False,
) -> WorkflowRuntime:
    """
    Build the runtime.

    Args:
        database_url: SQLAlchemy URL of the workflow database.
        config: Pre-loaded configuration; wins over ``config_path``.
        config_path: YAML configuration set; the packaged default if None.
        notifier: Post-commit notifier; in-app notifications by default.
        clock: Time source shared by every service.
        create_schema: Create missing tables (tests, first start).
    """
    configure_logging(level=log_level)
    workflow_config = config or load_workflow_config(config_path)
    engine = create_engine_from_url(database_url, echo=echo)
    if create_schema:
        create_tables(engine)
    session_factory = make_session_factory(engine)
    runtime_clock = clock or SystemClock()
    runtime = WorkflowRuntime(
        engine=engine,
        session_factory=session_factory,
        config=workflow_config,
        clock=runtime_clock,
        notifier=notifier or DatabaseNotifier(session_factory, runtime_clock),
    )
    logger.info(
        "workflow_runtime_ready",
        extra={
            "dialect": engine.dialect.name,
            "config_checksum": workflow_config.checksum,
            "static_chain_count": len(workflow_config.static_routes),
            "notifier": type(runtime.notifier).__name__,
        },
    )
    return runtime


def shutdown(runtime: WorkflowRuntime) -> None:
    runtime.engine.dispose()
    logger.info("workflow_runtime_disposed")
