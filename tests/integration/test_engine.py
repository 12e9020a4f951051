"""
Integration tests for the Toolrun Engine.

Tests cover:
- End-to-end approval replay with the built-in tools
- Event recording into the audit log
- Batches of model-issued calls
- Failure normalization across tools
"""

import json
from io import StringIO
from pathlib import Path
from typing import Generator

import pytest
from rich.console import Console

from toolrun.engine import Engine, ToolCall
from toolrun.events import AuditEventLogger, CompositeEventLogger, ConsoleEventLogger
from toolrun.schema import ToolEventKind
from toolrun.store import AuditLog
from toolrun.tools import ToolContext, ToolRegistry


# =============================================================================
# Test Fixtures
# =============================================================================


@pytest.fixture
def audit(temp_dir: Path) -> Generator[AuditLog, None, None]:
    """Audit log in the temp dir."""
    log = AuditLog(temp_dir / "audit.db")
    yield log
    log.close()


@pytest.fixture
def audited_engine(registry: ToolRegistry, audit: AuditLog) -> Engine:
    """Engine recording every event to the audit log."""
    return Engine(registry, logger=AuditEventLogger(audit))


# =============================================================================
# Approval Replay
# =============================================================================


class TestApprovalReplay:
    """Proposal then commit, as an orchestrator would run them."""

    @pytest.mark.asyncio
    async def test_edit_round_trip(
        self, audited_engine: Engine, context: ToolContext, sample_file: Path, audit: AuditLog
    ) -> None:
        proposal = await audited_engine.execute(
            "edit_file",
            {
                "path": "sample.txt",
                "edits": [
                    {"type": "replace_lines", "startLine": 2, "endLine": 2, "content": "LINE 2"}
                ],
            },
            context,
        )
        assert proposal.requires_approval is True
        assert sample_file.read_text() == "line 1\nline 2\nline 3\nline 4\nline 5\n"

        payload = proposal.result
        assert payload["executeToolName"] == "execute_edit_file"
        assert "+LINE 2" in payload["previewDiff"]

        committed = await audited_engine.execute(
            payload["executeToolName"], payload["executeArgs"], context
        )
        assert committed.success is True
        assert committed.summary == "1 edit(s) to sample.txt: 5 -> 5 lines"
        assert sample_file.read_text() == "line 1\nLINE 2\nline 3\nline 4\nline 5\n"

        kinds = [e.kind for e in reversed(audit.list_events())]
        assert kinds == [
            ToolEventKind.START,
            ToolEventKind.APPROVAL_REQUIRED,
            ToolEventKind.START,
            ToolEventKind.SUCCESS,
        ]

    @pytest.mark.asyncio
    async def test_replay_through_json(
        self, engine: Engine, context: ToolContext, temp_dir: Path
    ) -> None:
        """executeArgs survive a JSON round trip through the model."""
        proposal = await engine.execute_call(
            "write_file", '{"path": "notes/todo.txt", "content": "a\\n", "createDirs": true}', context
        )
        payload = proposal.result
        assert payload["executeArgs"]["createDirs"] is True

        committed = await engine.execute_call(
            payload["executeToolName"], json.dumps(payload["executeArgs"]), context
        )
        assert committed.success is True
        assert (temp_dir / "notes" / "todo.txt").read_text() == "a\n"
        assert committed.result["isNewFile"] is True

    @pytest.mark.asyncio
    async def test_stale_commit_fails_cleanly(
        self, engine: Engine, context: ToolContext, sample_file: Path
    ) -> None:
        """A commit whose target changed since the proposal reports the edit failure."""
        proposal = await engine.execute(
            "edit_file",
            {
                "path": "sample.txt",
                "edits": [{"type": "replace_pattern", "pattern": "line 3", "replacement": "x"}],
            },
            context,
        )
        sample_file.write_text("rewritten\n")

        payload = proposal.result
        committed = await engine.execute(payload["executeToolName"], payload["executeArgs"], context)
        assert committed.success is False
        assert committed.error_kind == "pattern_not_found"
        assert sample_file.read_text() == "rewritten\n"


# =============================================================================
# Event Recording
# =============================================================================


class TestEventRecording:
    """Events reach every configured logger."""

    @pytest.mark.asyncio
    async def test_composite_logging(
        self, registry: ToolRegistry, audit: AuditLog, context: ToolContext
    ) -> None:
        buffer = StringIO()
        engine = Engine(
            registry,
            logger=CompositeEventLogger(
                ConsoleEventLogger(console=Console(file=buffer, no_color=True)),
                AuditEventLogger(audit),
            ),
        )
        await engine.execute("pwd", {}, context)
        await engine.execute("read_file", {"path": "absent.txt"}, context)

        assert audit.count_events(ToolEventKind.SUCCESS) == 1
        assert audit.count_events(ToolEventKind.ERROR) == 1
        errors = audit.list_events(tool_name="read_file")
        assert errors[0].kind == ToolEventKind.ERROR
        assert "absent.txt" in errors[0].message

        output = buffer.getvalue()
        assert "pwd" in output
        assert "read_file" in output

    @pytest.mark.asyncio
    async def test_unknown_tool_recorded_without_start(
        self, audited_engine: Engine, audit: AuditLog, context: ToolContext
    ) -> None:
        result = await audited_engine.execute("nope", {}, context)
        assert result.error_kind == "tool_not_found"
        assert [e.kind for e in audit.list_events()] == [ToolEventKind.ERROR]

    @pytest.mark.asyncio
    async def test_arguments_recorded(
        self, audited_engine: Engine, audit: AuditLog, context: ToolContext, sample_file: Path
    ) -> None:
        await audited_engine.execute("read_file", {"path": "sample.txt", "maxBytes": 20}, context)
        start = audit.list_events(tool_name="read_file")[-1]
        assert start.kind == ToolEventKind.START
        assert start.args == {"path": "sample.txt", "maxBytes": 20}
        assert start.args_hash


# =============================================================================
# Batches
# =============================================================================


class TestBatches:
    """Several calls issued in one model turn."""

    @pytest.mark.asyncio
    async def test_mixed_batch(
        self, engine: Engine, context: ToolContext, sample_file: Path
    ) -> None:
        results = await engine.execute_many(
            [
                ToolCall("pwd"),
                ToolCall("read_file", '{"path": "sample.txt"}'),
                ToolCall("read_file", "{not json"),
                ToolCall("missing_tool", {}),
                ToolCall("write_file", {"path": "b.txt"}),
            ],
            context,
        )
        assert [r.success for r in results] == [True, True, False, False, False]
        assert [r.error_kind for r in results[2:]] == [
            "invalid_arguments",
            "tool_not_found",
            "validation",
        ]
        assert results[1].result["totalLines"] == 5
