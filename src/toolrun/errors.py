"""
Exception hierarchy for Toolrun.

All Toolrun exceptions inherit from ToolrunError, allowing callers to catch
all Toolrun-specific exceptions with a single except clause.

Exception Categories:
    - ToolError: Tool lookup/argument/timeout failures
    - EditError: Edit operation failures (bounds, patterns, runaway regex)
    - FileAccessError: Path and file I/O failures
    - SearchBackendError: External search binary failures
    - StorageError: Audit log operation failed

Design Principles:
    - All errors have error codes for programmatic handling
    - All errors carry a short `kind` tag the engine exposes as errorKind
    - All errors include context (tool, range, pattern where applicable)
    - Errors are designed to be both human-readable and machine-parseable
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Tool errors: 1xxx
ERROR_TOOL_NOT_FOUND = 1001
ERROR_TOOL_INVALID_ARGS = 1002
ERROR_TOOL_TIMEOUT = 1004

# Edit errors: 2xxx
ERROR_EDIT_LINE_RANGE = 2001
ERROR_EDIT_INSERT_POSITION = 2002
ERROR_EDIT_PATTERN_NOT_FOUND = 2003
ERROR_EDIT_ITERATION_LIMIT = 2004
ERROR_EDIT_INVALID_PATTERN = 2005

# File errors: 3xxx
ERROR_FILE_NOT_FOUND = 3001
ERROR_FILE_READ = 3002
ERROR_FILE_WRITE = 3003
ERROR_FILE_CRITICAL_PATH = 3004
ERROR_FILE_DESTINATION_EXISTS = 3005

# Search / process errors: 4xxx
ERROR_SEARCH_BACKEND_FAILED = 4001

# Storage errors: 5xxx
ERROR_STORAGE_CONNECTION = 5001
ERROR_STORAGE_WRITE = 5002
ERROR_STORAGE_READ = 5003


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class ToolrunError(Exception):
    """
    Base exception for all Toolrun errors.

    All Toolrun exceptions inherit from this class, providing:
    - Consistent error code for programmatic handling
    - A `kind` discriminator surfaced to callers as errorKind
    - Human-readable message
    - Optional suggestion for resolution
    - Optional context dict for debugging

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    kind = "error"

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "kind": self.kind,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Tool Errors
# =============================================================================


@dataclass
class ToolError(ToolrunError):
    """
    Base class for tool-level errors.

    Attributes:
        tool: Name of the tool involved
    """

    tool: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context["tool"] = self.tool


@dataclass
class ToolNotFoundError(ToolError):
    """Raised when a tool is not registered."""

    kind = "tool_not_found"

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Tool not found: {self.tool}"
        if self.code == 0:
            self.code = ERROR_TOOL_NOT_FOUND
        if not self.suggestion:
            self.suggestion = "Check tool name spelling or list the available tools"
        super().__post_init__()


@dataclass
class ToolInvalidArgsError(ToolError):
    """Raised when tool arguments fail validation."""

    errors: list[str] = field(default_factory=list)

    kind = "validation"

    def __post_init__(self) -> None:
        if not self.message:
            self.message = "; ".join(self.errors) or "Invalid arguments"
        if self.code == 0:
            self.code = ERROR_TOOL_INVALID_ARGS
        super().__post_init__()
        self.context["errors"] = list(self.errors)


@dataclass
class ToolTimeoutError(ToolError):
    """Raised when a tool or the process it spawned exceeds its timeout."""

    timeout_seconds: float = 0

    kind = "timeout"

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Tool {self.tool} timed out after {self.timeout_seconds}s"
        if self.code == 0:
            self.code = ERROR_TOOL_TIMEOUT
        if not self.suggestion:
            self.suggestion = "Increase process.timeout_seconds or narrow the operation"
        super().__post_init__()
        self.context["timeout_seconds"] = self.timeout_seconds


# =============================================================================
# Edit Errors
# =============================================================================


@dataclass
class EditError(ToolrunError):
    """
    Base class for edit operation failures.

    Attributes:
        operation_index: 0-based position of the failing operation in the batch
    """

    operation_index: int | None = None

    kind = "edit_failed"

    def __post_init__(self) -> None:
        self.context["operation_index"] = self.operation_index

    def at(self, index: int) -> "EditError":
        """Attach the batch position and prefix the message with it."""
        self.operation_index = index
        self.context["operation_index"] = index
        self.message = f"Edit #{index + 1} failed: {self.message}"
        return self


@dataclass
class LineRangeError(EditError):
    """Raised when a line range falls outside the current file."""

    start_line: int = 0
    end_line: int = 0
    line_count: int = 0

    kind = "line_range"

    def __post_init__(self) -> None:
        if not self.message:
            self.message = (
                f"Line range {self.start_line}-{self.end_line} is out of bounds "
                f"(file has {self.line_count} lines)"
            )
        if self.code == 0:
            self.code = ERROR_EDIT_LINE_RANGE
        if not self.suggestion:
            self.suggestion = "Re-read the file to get current line numbers"
        super().__post_init__()
        self.context.update({
            "start_line": self.start_line,
            "end_line": self.end_line,
            "line_count": self.line_count,
        })


@dataclass
class InsertPositionError(EditError):
    """Raised when an insert position falls outside [0, line_count]."""

    line: int = 0
    line_count: int = 0

    kind = "insert_position"

    def __post_init__(self) -> None:
        if not self.message:
            self.message = (
                f"Insert position {self.line} is out of bounds "
                f"(file has {self.line_count} lines)"
            )
        if self.code == 0:
            self.code = ERROR_EDIT_INSERT_POSITION
        super().__post_init__()
        self.context.update({"line": self.line, "line_count": self.line_count})


@dataclass
class PatternNotFoundError(EditError):
    """Raised when a replace_pattern operation matches nothing."""

    pattern: str = ""

    kind = "pattern_not_found"

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Pattern not found: {self.pattern!r}"
        if self.code == 0:
            self.code = ERROR_EDIT_PATTERN_NOT_FOUND
        if not self.suggestion:
            self.suggestion = "Check whitespace and escaping, or use grep to locate the text"
        super().__post_init__()
        self.context["pattern"] = self.pattern


@dataclass
class IterationLimitError(EditError):
    """Raised when pattern matching exceeds the iteration ceiling."""

    pattern: str = ""
    limit: int = 0

    kind = "iteration_limit"

    def __post_init__(self) -> None:
        if not self.message:
            self.message = (
                f"Pattern {self.pattern!r} exceeded the limit of {self.limit} match iterations"
            )
        if self.code == 0:
            self.code = ERROR_EDIT_ITERATION_LIMIT
        if not self.suggestion:
            self.suggestion = "Use a more specific pattern or a smaller count"
        super().__post_init__()
        self.context.update({"pattern": self.pattern, "limit": self.limit})


@dataclass
class InvalidPatternError(EditError):
    """Raised for empty literals and unsafe or malformed regular expressions."""

    pattern: str = ""
    reason: str = ""

    kind = "invalid_pattern"

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Invalid pattern {self.pattern!r}: {self.reason}"
        if self.code == 0:
            self.code = ERROR_EDIT_INVALID_PATTERN
        super().__post_init__()
        self.context.update({"pattern": self.pattern, "reason": self.reason})


# =============================================================================
# File Errors
# =============================================================================


@dataclass
class FileAccessError(ToolrunError):
    """
    Base class for path and file I/O failures.

    Attributes:
        path: The path involved
    """

    path: str = ""

    kind = "file_access"

    def __post_init__(self) -> None:
        self.context["path"] = self.path


@dataclass
class PathNotFoundError(FileAccessError):
    """Raised when a path does not exist."""

    kind = "not_found"

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Path does not exist: {self.path}"
        if self.code == 0:
            self.code = ERROR_FILE_NOT_FOUND
        super().__post_init__()


@dataclass
class FileReadError(FileAccessError):
    """Raised when a file exists but cannot be read."""

    underlying_error: str = ""

    kind = "unreadable"

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Cannot read {self.path}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_FILE_READ
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class FileWriteError(FileAccessError):
    """Raised when a file cannot be written, moved or created."""

    underlying_error: str = ""

    kind = "unwritable"

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Cannot write {self.path}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_FILE_WRITE
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class CriticalPathError(FileAccessError):
    """Raised when a destructive operation targets root or the home directory."""

    kind = "critical_path"

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Refusing to modify critical path: {self.path}"
        if self.code == 0:
            self.code = ERROR_FILE_CRITICAL_PATH
        super().__post_init__()


@dataclass
class DestinationExistsError(FileAccessError):
    """Raised when a move would overwrite an existing destination."""

    kind = "destination_exists"

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Destination exists: {self.path}"
        if self.code == 0:
            self.code = ERROR_FILE_DESTINATION_EXISTS
        if not self.suggestion:
            self.suggestion = "Use force: true to overwrite"
        super().__post_init__()


# =============================================================================
# Search Errors
# =============================================================================


@dataclass
class SearchBackendError(ToolrunError):
    """
    Raised when every eligible search backend failed.

    Attributes:
        backend: Name of the last backend tried
        exit_code: Its exit status
        stderr: Its captured error output
    """

    backend: str = ""
    exit_code: int = 0
    stderr: str = ""

    kind = "backend_failed"

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"{self.backend} command failed: {self.stderr}"
        if self.code == 0:
            self.code = ERROR_SEARCH_BACKEND_FAILED
        self.context.update({
            "backend": self.backend,
            "exit_code": self.exit_code,
            "stderr": self.stderr,
        })


# =============================================================================
# Storage Errors
# =============================================================================


@dataclass
class StorageError(ToolrunError):
    """
    Base class for audit log errors.

    Attributes:
        operation: The operation that failed (e.g., "insert", "query")
    """

    operation: str = ""

    kind = "storage"

    def __post_init__(self) -> None:
        self.context["operation"] = self.operation


@dataclass
class StorageConnectionError(StorageError):
    """Raised when the audit database cannot be opened."""

    db_path: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Failed to connect to database: {self.db_path}"
        if self.code == 0:
            self.code = ERROR_STORAGE_CONNECTION
        if not self.suggestion:
            self.suggestion = "Check that the database path is valid and writable"
        super().__post_init__()
        self.context["db_path"] = self.db_path


@dataclass
class StorageWriteError(StorageError):
    """Raised when a write operation fails."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Database write failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_STORAGE_WRITE
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class StorageReadError(StorageError):
    """Raised when a read operation fails."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Database read failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_STORAGE_READ
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error
