"""
Unit tests for tool event loggers.

Tests cover:
- ConsoleEventLogger output
- AuditEventLogger persistence
- CompositeEventLogger fan-out
- print_events tables
"""

from io import StringIO

import pytest
from rich.console import Console

from toolrun.events import (
    AuditEventLogger,
    CompositeEventLogger,
    ConsoleEventLogger,
    NullEventLogger,
    print_events,
)
from toolrun.schema import ToolEventKind
from toolrun.store import AuditLog


def make_console() -> tuple[Console, StringIO]:
    buffer = StringIO()
    return Console(file=buffer, width=120, no_color=True), buffer


@pytest.fixture
def audit_log() -> AuditLog:
    log = AuditLog(":memory:")
    yield log
    log.close()


class TestConsoleEventLogger:
    """Tests for ConsoleEventLogger."""

    def test_start(self) -> None:
        console, buffer = make_console()
        ConsoleEventLogger(console).on_start("grep", {"pattern": "x"})
        assert "grep" in buffer.getvalue()
        assert "pattern" not in buffer.getvalue()

    def test_start_verbose_shows_args(self) -> None:
        console, buffer = make_console()
        ConsoleEventLogger(console, verbose=True).on_start("grep", {"pattern": "x"})
        assert '"pattern": "x"' in buffer.getvalue()

    def test_success(self) -> None:
        console, buffer = make_console()
        ConsoleEventLogger(console).on_success("grep", 12.0, "3 matches")
        output = buffer.getvalue()
        assert "✓" in output
        assert "(12ms)" in output
        assert "3 matches" in output

    def test_approval(self) -> None:
        console, buffer = make_console()
        ConsoleEventLogger(console).on_approval_required("mv", 1.0, "About to move")
        output = buffer.getvalue()
        assert "needs approval" in output
        assert "About to move" not in output

    def test_error(self) -> None:
        console, buffer = make_console()
        ConsoleEventLogger(console).on_error("mv", 1.0, "Destination exists")
        assert "Destination exists" in buffer.getvalue()


class TestAuditEventLogger:
    """Tests for AuditEventLogger."""

    def test_records_lifecycle(self, audit_log: AuditLog) -> None:
        logger = AuditEventLogger(audit_log)
        logger.on_start("edit_file", {"path": "a.txt"})
        logger.on_approval_required("edit_file", 3.0, "About to edit file")
        events = audit_log.list_events()
        assert [e.kind for e in events] == [
            ToolEventKind.APPROVAL_REQUIRED,
            ToolEventKind.START,
        ]
        assert events[0].message == "About to edit file"
        assert events[1].args == {"path": "a.txt"}

    def test_success_and_error(self, audit_log: AuditLog) -> None:
        logger = AuditEventLogger(audit_log)
        logger.on_success("pwd", 1.0, "cwd")
        logger.on_error("cd", 1.0, "Path does not exist")
        assert audit_log.count_events(ToolEventKind.SUCCESS) == 1
        assert audit_log.count_events(ToolEventKind.ERROR) == 1


class TestCompositeEventLogger:
    """Tests for CompositeEventLogger."""

    def test_fans_out(self, audit_log: AuditLog) -> None:
        console, buffer = make_console()
        logger = CompositeEventLogger(
            NullEventLogger(), ConsoleEventLogger(console), AuditEventLogger(audit_log)
        )
        logger.on_start("pwd", {})
        logger.on_success("pwd", 2.0, "/tmp")
        assert "pwd" in buffer.getvalue()
        assert audit_log.count_events() == 2

    def test_failure_propagates(self) -> None:
        """The composite does not hide failures; the engine counts them."""

        class Failing(NullEventLogger):
            def on_start(self, name, args) -> None:
                raise RuntimeError("down")

        with pytest.raises(RuntimeError):
            CompositeEventLogger(Failing()).on_start("pwd", {})


class TestPrintEvents:
    """Tests for print_events."""

    def test_empty(self) -> None:
        console, buffer = make_console()
        print_events([], console)
        assert "No events recorded." in buffer.getvalue()

    def test_table(self, audit_log: AuditLog) -> None:
        audit_log.record_event("grep", ToolEventKind.START, args={"pattern": "TODO"})
        audit_log.record_event(
            "grep", ToolEventKind.SUCCESS, duration_ms=5.0, summary="2 matches\nmore"
        )
        console, buffer = make_console()
        print_events(audit_log.list_events(), console)
        output = buffer.getvalue()
        assert "grep" in output
        assert "2 matches" in output
        assert "more" not in output
        assert "5ms" in output
