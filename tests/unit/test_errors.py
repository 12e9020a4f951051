"""
Unit tests for error hierarchy.

Tests cover:
- Base ToolrunError behavior
- Tool errors with context
- Edit errors and batch positions
- File errors
- Search backend and storage errors
- Error serialization
"""

import pytest

from toolrun.errors import (
    ERROR_EDIT_LINE_RANGE,
    ERROR_FILE_CRITICAL_PATH,
    ERROR_FILE_NOT_FOUND,
    ERROR_SEARCH_BACKEND_FAILED,
    ERROR_STORAGE_CONNECTION,
    ERROR_TOOL_NOT_FOUND,
    CriticalPathError,
    DestinationExistsError,
    EditError,
    FileAccessError,
    InsertPositionError,
    InvalidPatternError,
    IterationLimitError,
    LineRangeError,
    PathNotFoundError,
    PatternNotFoundError,
    SearchBackendError,
    StorageConnectionError,
    StorageError,
    ToolError,
    ToolInvalidArgsError,
    ToolNotFoundError,
    ToolrunError,
    ToolTimeoutError,
)


class TestToolrunError:
    """Tests for base ToolrunError."""

    def test_basic_error(self) -> None:
        """Create a basic error with message."""
        err = ToolrunError(message="Something went wrong", code=9999)
        assert err.message == "Something went wrong"
        assert err.code == 9999
        assert err.suggestion is None
        assert err.context == {}
        assert err.kind == "error"

    def test_str_format(self) -> None:
        """String format includes code and message."""
        err = ToolrunError(message="Test error", code=1234)
        assert str(err) == "[E1234] Test error"

    def test_str_with_suggestion(self) -> None:
        """Suggestion is appended on its own line."""
        err = ToolrunError(message="Failed", code=1, suggestion="Try again")
        assert "Suggestion: Try again" in str(err)

    def test_repr_format(self) -> None:
        """Repr includes class name and details."""
        err = ToolrunError(message="Test", code=1)
        assert "ToolrunError" in repr(err)
        assert "message='Test'" in repr(err)

    def test_can_be_raised(self) -> None:
        """Errors are real exceptions."""
        with pytest.raises(ToolrunError):
            raise ToolrunError(message="boom", code=1)


class TestToolErrors:
    """Tests for tool-level errors."""

    def test_not_found_defaults(self) -> None:
        """ToolNotFoundError fills message, code and kind."""
        err = ToolNotFoundError(tool="reed_file")
        assert err.message == "Tool not found: reed_file"
        assert err.code == ERROR_TOOL_NOT_FOUND
        assert err.kind == "tool_not_found"
        assert err.context["tool"] == "reed_file"
        assert isinstance(err, ToolError)

    def test_not_found_keeps_suggestion(self) -> None:
        """An explicit suggestion is not overwritten."""
        err = ToolNotFoundError(tool="reed_file", suggestion="Did you mean: read_file?")
        assert err.suggestion == "Did you mean: read_file?"

    def test_invalid_args_joins_errors(self) -> None:
        """Field errors become the message."""
        err = ToolInvalidArgsError(tool="cd", errors=["path: Field required", "x: extra"])
        assert err.message == "path: Field required; x: extra"
        assert err.kind == "validation"

    def test_timeout(self) -> None:
        """Timeout names the tool and the limit."""
        err = ToolTimeoutError(tool="rg", timeout_seconds=30)
        assert "rg timed out after 30s" in err.message
        assert err.kind == "timeout"


class TestEditErrors:
    """Tests for edit operation errors."""

    def test_line_range(self) -> None:
        """LineRangeError reports the range and file size."""
        err = LineRangeError(start_line=4, end_line=9, line_count=5)
        assert "4-9" in err.message
        assert "5 lines" in err.message
        assert err.code == ERROR_EDIT_LINE_RANGE
        assert err.context["line_count"] == 5
        assert err.suggestion

    def test_at_sets_index_and_prefix(self) -> None:
        """at() records the 0-based index and prefixes a 1-based label."""
        err = PatternNotFoundError(pattern="foo").at(2)
        assert err.operation_index == 2
        assert err.context["operation_index"] == 2
        assert err.message.startswith("Edit #3 failed: ")
        assert "foo" in err.message

    def test_family(self) -> None:
        """Every edit failure is an EditError."""
        for err in (
            LineRangeError(),
            InsertPositionError(line=9, line_count=2),
            PatternNotFoundError(pattern="x"),
            IterationLimitError(pattern="x", limit=10),
            InvalidPatternError(pattern="(", reason="bad"),
        ):
            assert isinstance(err, EditError)

    def test_kinds_are_distinct(self) -> None:
        """Each edit error has its own kind."""
        kinds = {
            LineRangeError.kind,
            InsertPositionError.kind,
            PatternNotFoundError.kind,
            IterationLimitError.kind,
            InvalidPatternError.kind,
        }
        assert len(kinds) == 5


class TestFileErrors:
    """Tests for path and file errors."""

    def test_path_not_found(self) -> None:
        """PathNotFoundError names the path."""
        err = PathNotFoundError(path="/nope")
        assert err.message == "Path does not exist: /nope"
        assert err.code == ERROR_FILE_NOT_FOUND
        assert err.kind == "not_found"
        assert err.context["path"] == "/nope"
        assert isinstance(err, FileAccessError)

    def test_critical_path(self) -> None:
        """CriticalPathError has its own code."""
        err = CriticalPathError(path="/")
        assert err.code == ERROR_FILE_CRITICAL_PATH
        assert err.kind == "critical_path"

    def test_destination_exists_suggests_force(self) -> None:
        """The default suggestion points at force."""
        err = DestinationExistsError(path="/tmp/b")
        assert "Destination exists" in err.message
        assert "force" in err.suggestion


class TestSearchAndStorageErrors:
    """Tests for search backend and storage errors."""

    def test_backend_failed(self) -> None:
        """SearchBackendError carries exit code and stderr."""
        err = SearchBackendError(backend="grep", exit_code=2, stderr="bad regex")
        assert err.message == "grep command failed: bad regex"
        assert err.code == ERROR_SEARCH_BACKEND_FAILED
        assert err.context == {"backend": "grep", "exit_code": 2, "stderr": "bad regex"}

    def test_storage_connection(self) -> None:
        """StorageConnectionError names the database."""
        err = StorageConnectionError(db_path="/x/y.db", operation="connect")
        assert err.code == ERROR_STORAGE_CONNECTION
        assert err.context["db_path"] == "/x/y.db"
        assert isinstance(err, StorageError)


class TestErrorSerialization:
    """Tests for to_dict()."""

    def test_to_dict(self) -> None:
        """to_dict includes type, kind and context."""
        err = LineRangeError(start_line=1, end_line=3, line_count=2)
        data = err.to_dict()
        assert data["error_type"] == "LineRangeError"
        assert data["kind"] == "line_range"
        assert data["code"] == ERROR_EDIT_LINE_RANGE
        assert data["context"]["end_line"] == 3
        assert data["suggestion"]
