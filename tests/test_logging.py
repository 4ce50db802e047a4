"""Tests for the structured logging system (procurement_kernel/logging_config.py)."""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from procurement_kernel.domain.workflow import RequestStatus
from procurement_kernel.exceptions import NotAssignedApproverError
from procurement_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "procurement.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("decided", extra={"level": 2, "decision": "Approved"})

        record = _parse_log(stream)
        # "level" collides with the formatter's own key and is dropped
        assert record["level"] == "INFO"
        assert record["decision"] == "Approved"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="abc-123", request_id="42")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["request_id"] == "42"

    def test_context_wins_over_extra(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        with LogContext.bind(approval_id=7):
            get_logger("test").info("msg", extra={"approval_id": 99})

        assert _parse_log(stream)["approval_id"] == "7"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        try:
            raise ValueError("boom")
        except ValueError:
            logger.error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_workflow_exception_code_extracted(self):
        """Workflow exceptions carry a .code attribute and structured fields."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")

        try:
            raise NotAssignedApproverError(11, 5, 9)
        except NotAssignedApproverError:
            logger.error("decision_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == NotAssignedApproverError.code
        assert record["exc_type"] == "NotAssignedApproverError"
        assert record["exc_approval_id"] == 11
        assert record["exc_actor_id"] == 5
        assert record["exc_approver_id"] == 9

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "request_id" not in record

    def test_value_serialization(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info(
            "values",
            extra={
                "trace": uid,
                "amount": Decimal("3000.50"),
                "at": datetime(2024, 3, 15, 9, 0, tzinfo=timezone.utc),
                "status": RequestStatus.APPROVED,
                "levels": (1, 2),
                "roles": {"SCM", "CMO"},
            },
        )

        record = _parse_log(stream)
        assert record["trace"] == str(uid)
        assert record["amount"] == "3000.50"
        assert record["at"] == "2024-03-15T09:00:00+00:00"
        assert record["status"] == "Approved"
        assert record["levels"] == [1, 2]
        assert record["roles"] == ["CMO", "SCM"]

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        # INFO is the default level
        assert len(logs) == 2
        for record in logs:
            assert {"ts", "level", "logger", "message"} <= set(record)


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", approval_id="y")
        assert LogContext.get_all() == {"correlation_id": "x", "approval_id": "y"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(correlation_id="outer")
        with LogContext.bind(correlation_id="inner"):
            assert LogContext.get_all()["correlation_id"] == "inner"
        assert LogContext.get_all()["correlation_id"] == "outer"

    def test_bind_restores_none(self):
        """bind() restores to None if there was no previous value."""
        assert "correlation_id" not in LogContext.get_all()
        with LogContext.bind(correlation_id="temp"):
            assert LogContext.get_all()["correlation_id"] == "temp"
        assert "correlation_id" not in LogContext.get_all()

    def test_bind_stringifies_and_ignores_unknown_fields(self):
        with LogContext.bind(request_id=5, actor_id=None, department="x"):
            assert LogContext.get_all() == {"request_id": "5"}

    def test_nested_bind_merges_fields(self):
        with LogContext.bind(correlation_id="c"):
            with LogContext.bind(request_id=3, approval_id=8):
                assert LogContext.get_all() == {
                    "correlation_id": "c",
                    "request_id": "3",
                    "approval_id": "8",
                }
            assert LogContext.get_all() == {"correlation_id": "c"}

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            request_id="r",
            approval_id="a",
            actor_id="u",
            trace_id="t",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 5
        assert ctx["trace_id"] == "t"


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)  # second call is no-op
        assert len(logging.getLogger("procurement").handlers) == 1

    def test_get_logger_returns_child(self):
        assert get_logger("services.approval_pipeline").name == "procurement.services.approval_pipeline"

    def test_logger_hierarchy(self):
        """Child loggers inherit the procurement root config."""
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("deep.nested.module").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "procurement.deep.nested.module"
