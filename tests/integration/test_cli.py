"""
Integration tests for the command-line interface.

Tests cover:
- Tool catalog listing and description
- Tool calls with and without approval
- Environment checks
- Reading back recorded events
"""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from toolrun import __version__
from toolrun.cli import app


runner = CliRunner()


@pytest.fixture
def config_file(temp_dir: Path) -> Path:
    """Runtime config keeping the audit database inside the temp dir."""
    path = temp_dir / "toolrun.yaml"
    path.write_text(
        "audit:\n"
        f"  db_path: {temp_dir / 'audit.db'}\n"
        "search:\n"
        "  parent_levels: 0\n"
    )
    return path


@pytest.fixture
def workdir(temp_dir: Path) -> Path:
    """Working directory for CLI calls, separate from the config file."""
    path = temp_dir / "work"
    path.mkdir()
    (path / "notes.txt").write_text("alpha\nbeta\n")
    return path


def invoke(config_file: Path, *args: str, input: str | None = None):
    return runner.invoke(app, ["--config", str(config_file), *args], input=input)


# =============================================================================
# Catalog
# =============================================================================


class TestVersion:
    """Tests for `toolrun --version`."""

    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout


class TestToolsCommand:
    """Tests for `toolrun tools`."""

    def test_lists_visible_tools(self, config_file: Path) -> None:
        result = invoke(config_file, "tools")
        assert result.exit_code == 0
        assert "read_file" in result.stdout
        assert "grep" in result.stdout

    def test_all_includes_hidden(self, config_file: Path) -> None:
        result = invoke(config_file, "tools", "--all")
        assert result.exit_code == 0
        assert "execute_edit_file" in result.stdout
        assert "(hidden)" in result.stdout

    def test_json_definitions(self, config_file: Path) -> None:
        """--json emits the function definitions a model receives."""
        result = invoke(config_file, "tools", "--json")
        assert result.exit_code == 0

        definitions = json.loads(result.stdout)
        names = [d["function"]["name"] for d in definitions]
        assert "edit_file" in names
        assert not any(name.startswith("execute_") for name in names)
        assert all(d["type"] == "function" for d in definitions)


class TestDescribeCommand:
    """Tests for `toolrun describe`."""

    def test_describe(self, config_file: Path) -> None:
        result = invoke(config_file, "describe", "read_file")
        assert result.exit_code == 0
        assert '"read_file"' in result.stdout

    def test_describe_hidden(self, config_file: Path) -> None:
        result = invoke(config_file, "describe", "execute_mv")
        assert result.exit_code == 0
        assert '"execute_mv"' in result.stdout

    def test_describe_unknown(self, config_file: Path) -> None:
        result = invoke(config_file, "describe", "no_such_tool")
        assert result.exit_code == 1
        assert "no_such_tool" in result.stdout


# =============================================================================
# Execution
# =============================================================================


class TestCallCommand:
    """Tests for `toolrun call`."""

    def test_call_pwd(self, config_file: Path, workdir: Path) -> None:
        result = invoke(config_file, "call", "pwd", "--cwd", str(workdir), "--json")
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["success"] is True
        assert data["result"] == str(workdir)

    def test_call_read_file(self, config_file: Path, workdir: Path) -> None:
        result = invoke(
            config_file,
            "call",
            "read_file",
            '{"path": "notes.txt", "startLine": 2}',
            "--cwd",
            str(workdir),
            "--json",
        )
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["result"]["content"] == "beta"

    def test_call_failure_exit_code(self, config_file: Path, workdir: Path) -> None:
        result = invoke(
            config_file, "call", "read_file", '{"path": "absent.txt"}', "--cwd", str(workdir)
        )
        assert result.exit_code == 1
        assert "absent.txt" in result.stdout

    def test_invalid_json(self, config_file: Path, workdir: Path) -> None:
        result = invoke(config_file, "call", "read_file", "{oops", "--cwd", str(workdir))
        assert result.exit_code == 1
        assert "Invalid JSON arguments" in result.stdout

    def test_approved_write(self, config_file: Path, workdir: Path) -> None:
        """--yes replays the commit call from the proposal."""
        result = invoke(
            config_file,
            "call",
            "write_file",
            '{"path": "new.txt", "content": "hello\\n"}',
            "--yes",
            "--cwd",
            str(workdir),
            "--json",
        )
        assert result.exit_code == 0
        assert (workdir / "new.txt").read_text() == "hello\n"
        data = json.loads(result.stdout[result.stdout.index("{"):])
        assert data["result"]["isNewFile"] is True

    def test_declined_write(self, config_file: Path, workdir: Path) -> None:
        result = invoke(
            config_file,
            "call",
            "write_file",
            '{"path": "new.txt", "content": "hello\\n"}',
            "--cwd",
            str(workdir),
            input="n\n",
        )
        assert result.exit_code == 1
        assert "Cancelled" in result.stdout
        assert not (workdir / "new.txt").exists()

    def test_confirmed_edit(self, config_file: Path, workdir: Path) -> None:
        arguments = json.dumps({
            "path": "notes.txt",
            "edits": [{"type": "replace_pattern", "pattern": "beta", "replacement": "gamma"}],
        })
        result = invoke(
            config_file,
            "call",
            "edit_file",
            arguments,
            "--cwd",
            str(workdir),
            input="y\n",
        )
        assert result.exit_code == 0
        assert "Approval required" in result.stdout
        assert (workdir / "notes.txt").read_text() == "alpha\ngamma\n"


# =============================================================================
# Environment
# =============================================================================


class TestDoctorCommand:
    """Tests for `toolrun doctor`."""

    def test_doctor_json(self, config_file: Path) -> None:
        result = invoke(config_file, "doctor", "--json")
        assert result.exit_code in (0, 1)

        data = json.loads(result.stdout)
        assert data["version"] == __version__
        names = [check["name"] for check in data["checks"]]
        assert "Python version" in names
        assert "Search backend rg" in names
        assert "Audit database" in names


class TestEventsCommand:
    """Tests for `toolrun events`."""

    def test_missing_database(self, config_file: Path) -> None:
        result = invoke(config_file, "events")
        assert result.exit_code == 1
        assert "Database not found" in result.stdout

    def test_events_after_call(self, config_file: Path, workdir: Path) -> None:
        invoke(config_file, "call", "pwd", "--cwd", str(workdir))
        invoke(config_file, "call", "read_file", '{"path": "absent.txt"}', "--cwd", str(workdir))

        result = invoke(config_file, "events", "--json")
        assert result.exit_code == 0
        events = json.loads(result.stdout)
        assert [(e["tool_name"], e["kind"]) for e in events] == [
            ("read_file", "error"),
            ("read_file", "start"),
            ("pwd", "success"),
            ("pwd", "start"),
        ]

    def test_events_filtered(self, config_file: Path, workdir: Path) -> None:
        invoke(config_file, "call", "pwd", "--cwd", str(workdir))
        invoke(config_file, "call", "read_file", '{"path": "notes.txt"}', "--cwd", str(workdir))

        result = invoke(config_file, "events", "--tool", "pwd", "--json")
        events = json.loads(result.stdout)
        assert {e["tool_name"] for e in events} == {"pwd"}
        assert len(events) == 2
