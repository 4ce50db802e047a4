"""
Structured JSON logging for the procurement workflow.

Every logger lives under the ``procurement`` namespace and writes one JSON
object per line::

    {"ts": "...", "level": "INFO", "logger": "procurement.services.request",
     "message": "request_created", "correlation_id": "...", "request_id": "12",
     "route_source": "static", "levels": [1, 2, 3]}

Workflow identifiers bound through ``LogContext.bind`` are added to every
line written inside the block.  Keys passed with ``extra=`` follow; a
bound context key is never overwritten by an ``extra`` key of the same name.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Workflow context
# ---------------------------------------------------------------------------

CONTEXT_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "request_id",
    "approval_id",
    "actor_id",
    "trace_id",
)

_context: ContextVar[dict[str, str]] = ContextVar("procurement_log_context", default={})


class LogContext:
    """
    Identifiers of the workflow operation currently running.

    Values are stored as strings.  Names outside ``CONTEXT_FIELDS`` and
    ``None`` values are ignored.  Backed by a ContextVar, so threads and
    asyncio tasks each see their own fields.
    """

    @staticmethod
    def _merged(fields: dict[str, Any]) -> dict[str, str]:
        merged = dict(_context.get())
        for name, value in fields.items():
            if name in CONTEXT_FIELDS and value is not None:
                merged[name] = str(value)
        return merged

    @classmethod
    def set(cls, **fields: Any) -> None:
        _context.set(cls._merged(fields))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_context.get())

    @classmethod
    def clear(cls) -> None:
        _context.set({})

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[type["LogContext"]]:
        """Add fields for the duration of the block, then restore the previous set."""
        token = _context.set(cls._merged(fields))
        try:
            yield cls
        finally:
            _context.reset(token)


# ---------------------------------------------------------------------------
# JSON formatter
# ---------------------------------------------------------------------------

_RESERVED_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


class _JSONEncoder(json.JSONEncoder):
    """Money, timestamps and workflow enums as they appear in the database."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, (set, frozenset)):
            return sorted(obj, key=str)
        return str(obj)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    # ProcurementWorkflowError subclasses keep their context as attributes.
    for name, value in vars(exc).items():
        if not name.startswith("_") and name not in ("args", "code"):
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED_KEYS:
                payload.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, cls=_JSONEncoder)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------

LOGGER_NAMESPACE = "procurement"


def get_logger(name: str) -> logging.Logger:
    """``get_logger("services.request")`` -> ``procurement.services.request``."""
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


_setup_lock = threading.Lock()
_handler_installed = False


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach the JSON handler to the ``procurement`` logger.

    Only the first call has an effect; ``bootstrap`` and the maintenance
    CLI may both call it.
    """
    global _handler_installed
    with _setup_lock:
        if _handler_installed:
            return
        _handler_installed = True

    namespace_logger = logging.getLogger(LOGGER_NAMESPACE)
    namespace_logger.setLevel(level)
    namespace_logger.propagate = False

    target = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())
    namespace_logger.addHandler(target)


def reset_logging() -> None:
    """Remove the handler so the next ``configure_logging`` call installs one (tests)."""
    global _handler_installed
    with _setup_lock:
        _handler_installed = False
    namespace_logger = logging.getLogger(LOGGER_NAMESPACE)
    namespace_logger.handlers.clear()
    namespace_logger.setLevel(logging.WARNING)
