"""
procurement_engines.tracer -- trace records for pure workflow transitions.

``@traced_engine`` wraps a pure engine function and logs one
``WORKFLOW_ENGINE_TRACE`` record per call.  The record holds the engine
name and version, a fingerprint of selected keyword arguments, the
duration, and a short summary of the outcome.  For a
``PipelineTransition`` the summary is the verdict, the activated slots and
whether the request was finalised.

Engines stay pure; the decorator only writes a DEBUG log line.

Usage:
    @traced_engine("pipeline.record", "1.0", fingerprint_fields=("decision",))
    def record_decision(state, *, decision):
        ...
"""

from __future__ import annotations

import functools
import hashlib
import logging
import time
from collections.abc import Callable
from dataclasses import asdict, is_dataclass
from enum import Enum
from typing import Any

# Engines may not import the kernel's logging module; the name keeps the
# record inside the procurement logger hierarchy.
_logger = logging.getLogger("procurement.engines.tracer")

TRACE_TYPE = "WORKFLOW_ENGINE_TRACE"


def _canonical(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, Enum):
        return str(value.value)
    if is_dataclass(value) and not isinstance(value, type):
        return _canonical(asdict(value))
    if isinstance(value, dict):
        pairs = sorted(value.items(), key=lambda kv: str(kv[0]))
        return "{" + ",".join(f"{k}:{_canonical(v)}" for k, v in pairs) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonical(v) for v in value) + "]"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: dict[str, Any],
) -> str:
    """First 16 hex chars of SHA-256 over ``name=value`` of each field."""
    canonical = "|".join(f"{name}={_canonical(kwargs.get(name))}" for name in fingerprint_fields)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def _outcome(result: Any) -> dict[str, Any]:
    summary: dict[str, Any] = {}
    status = getattr(result, "request_status", None)
    if isinstance(status, Enum):
        summary["outcome_status"] = status.value
    activated = getattr(result, "activated", None)
    if activated is not None:
        summary["activated_approval_ids"] = [slot.approval_id for slot in activated]
    finalized = getattr(result, "finalized", None)
    if isinstance(finalized, bool):
        summary["finalized"] = finalized
    return summary


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = (
                compute_input_fingerprint(fingerprint_fields, kwargs) if fingerprint_fields else ""
            )
            started = time.monotonic()
            result = func(*args, **kwargs)
            _logger.debug(
                TRACE_TYPE,
                extra={
                    "trace_type": TRACE_TYPE,
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fingerprint,
                    "duration_ms": round((time.monotonic() - started) * 1000, 2),
                    "function": func.__qualname__,
                    **_outcome(result),
                },
            )
            return result

        return wrapper

    return decorator
