"""Tests for the structured logging system (sync_kernel/logging_config.py)."""

import json
import logging
from datetime import datetime, timezone
from io import StringIO
from pathlib import Path

import pytest

from sync_kernel.exceptions import BudgetStepError, CycleFailedError
from sync_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    parse_log_level,
)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_all_logs(stream)[0]
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "ledger_sync.test"
        assert "ts" in record

    def test_extra_fields_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info(
            "scheduled",
            extra={
                "next_run_at": datetime(2024, 1, 2, 1, 0, tzinfo=timezone.utc),
                "data_dir": Path("/data"),
                "failed_sync_ids": frozenset({"b2", "b1"}),
            },
        )

        record = _parse_all_logs(stream)[0]
        assert record["next_run_at"] == "2024-01-02T01:00:00+00:00"
        assert record["data_dir"] == "/data"
        assert record["failed_sync_ids"] == ["b1", "b2"]

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        with LogContext.bind(cycle_id="c-1", sync_id="b1", attempt=2):
            get_logger("test").info("inside")
        get_logger("test").info("outside")

        inside, outside = _parse_all_logs(stream)
        assert inside["cycle_id"] == "c-1"
        assert inside["sync_id"] == "b1"
        assert inside["attempt"] == "2"
        assert "sync_id" not in outside

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise BudgetStepError("b1", "push", 1, "server said no")
        except BudgetStepError:
            get_logger("test").exception("failed")

        record = _parse_all_logs(stream)[0]
        assert record["exc_type"] == "BudgetStepError"
        assert record["exc_code"] == "BUDGET_STEP_FAILED"
        assert record["exc_step"] == "push"
        assert "Traceback" in record["traceback"]

    def test_cycle_report_not_dumped(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise CycleFailedError(["b1"], report=object())
        except CycleFailedError:
            get_logger("test").exception("cycle")

        record = _parse_all_logs(stream)[0]
        assert "exc_report" not in record
        assert record["exc_failed_sync_ids"] == ["b1"]


# ---------------------------------------------------------------------------
# configure_logging / parse_log_level
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    def test_idempotent(self):
        handler, _ = _make_handler()
        configure_logging(handler=handler)
        configure_logging(handler=logging.StreamHandler(StringIO()))

        assert logging.getLogger("ledger_sync").handlers == [handler]

    def test_level_applied(self):
        handler, stream = _make_handler()
        configure_logging(level=logging.WARNING, handler=handler)
        get_logger("test").info("hidden")
        get_logger("test").warning("shown")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["shown"]


class TestParseLogLevel:
    @pytest.mark.parametrize(
        "name, level",
        [
            ("debug", logging.DEBUG),
            ("info", logging.INFO),
            ("warn", logging.WARNING),
            ("WARNING", logging.WARNING),
            (" error ", logging.ERROR),
        ],
    )
    def test_known_levels(self, name, level):
        assert parse_log_level(name) == level

    def test_unknown_level(self):
        with pytest.raises(ValueError, match="Unsupported log level"):
            parse_log_level("verbose")
