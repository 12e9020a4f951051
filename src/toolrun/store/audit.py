"""
SQLite audit log for Toolrun.

Every lifecycle event the engine emits (start, success, approval, error)
can be appended to a single SQLite file for later inspection.

Design Principles:
    - Append-only: Recorded events are never modified
    - Integrity: Argument hashes allow correlating calls without payloads
    - Self-contained: Single .db file, no server

Tables:
    - tool_events: One row per lifecycle event
"""

import hashlib
import json
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from toolrun.errors import StorageConnectionError, StorageReadError, StorageWriteError
from toolrun.schema import ToolEventKind

# Schema version for migrations
SCHEMA_VERSION = 1

CREATE_TABLES_SQL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL
);

-- Tool events: one row per lifecycle event
CREATE TABLE IF NOT EXISTS tool_events (
    event_id TEXT PRIMARY KEY,
    tool_name TEXT NOT NULL,
    kind TEXT NOT NULL,
    created_at TEXT NOT NULL,
    duration_ms REAL,
    args_json TEXT,
    args_hash TEXT,
    summary TEXT,
    message TEXT
);

CREATE INDEX IF NOT EXISTS idx_tool_events_tool_name ON tool_events(tool_name);
CREATE INDEX IF NOT EXISTS idx_tool_events_created_at ON tool_events(created_at);
"""


def generate_id() -> str:
    """Generate a unique ID for events."""
    return str(uuid.uuid4())[:8]


def compute_hash(data: Any) -> str:
    """Compute SHA256 hash of data."""
    if data is None:
        return ""
    if isinstance(data, str):
        content = data.encode("utf-8")
    elif isinstance(data, bytes):
        content = data
    else:
        content = json.dumps(data, sort_keys=True, default=str).encode("utf-8")
    return hashlib.sha256(content).hexdigest()


def now_iso() -> str:
    """Get current UTC time in ISO format."""
    return datetime.now(UTC).isoformat()


@dataclass(frozen=True)
class ToolEvent:
    """A recorded lifecycle event."""

    event_id: str
    tool_name: str
    kind: ToolEventKind
    created_at: datetime
    duration_ms: float | None = None
    args: dict[str, Any] | None = None
    args_hash: str = ""
    summary: str | None = None
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "tool_name": self.tool_name,
            "kind": self.kind.value,
            "created_at": self.created_at.isoformat(),
            "duration_ms": self.duration_ms,
            "args": self.args,
            "args_hash": self.args_hash,
            "summary": self.summary,
            "message": self.message,
        }


class AuditLog:
    """
    SQLite-backed append-only event log.

    Usage:
        with AuditLog("toolrun.db") as log:
            log.record_event("grep", ToolEventKind.START, args={"pattern": "x"})
            events = log.list_events(limit=20)
    """

    def __init__(self, db_path: str | Path) -> None:
        """
        Open (creating if needed) the audit database.

        Args:
            db_path: Path to the SQLite file, or ":memory:"
        """
        self.db_path = str(db_path) if str(db_path) == ":memory:" else str(
            Path(db_path).expanduser()
        )
        self._conn: sqlite3.Connection | None = None
        self._connect()
        self._init_schema()

    def _connect(self) -> None:
        """Establish database connection."""
        try:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        except sqlite3.Error as e:
            raise StorageConnectionError(
                db_path=self.db_path,
                operation="connect",
                message=f"Failed to connect to database: {e}",
            ) from e

    def _init_schema(self) -> None:
        """Initialize database schema if needed."""
        try:
            self._conn.executescript(CREATE_TABLES_SQL).close()
            row = self._conn.execute(
                "SELECT version FROM schema_version ORDER BY version DESC LIMIT 1"
            ).fetchone()
            if row is None:
                self._conn.execute(
                    "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                    (SCHEMA_VERSION, now_iso()),
                )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StorageWriteError(
                operation="init_schema",
                underlying_error=str(e),
            ) from e

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "AuditLog":
        """Enter context manager."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context manager."""
        self.close()

    def record_event(
        self,
        tool_name: str,
        kind: ToolEventKind,
        duration_ms: float | None = None,
        args: dict[str, Any] | None = None,
        summary: str | None = None,
        message: str | None = None,
    ) -> str:
        """
        Append one event.

        Returns:
            The generated event id
        """
        event_id = generate_id()
        try:
            self._conn.execute(
                """
                INSERT INTO tool_events
                    (event_id, tool_name, kind, created_at, duration_ms,
                     args_json, args_hash, summary, message)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    event_id,
                    tool_name,
                    kind.value,
                    now_iso(),
                    duration_ms,
                    json.dumps(args, default=str) if args is not None else None,
                    compute_hash(args),
                    summary,
                    message,
                ),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StorageWriteError(operation="record_event", underlying_error=str(e)) from e
        return event_id

    def list_events(self, limit: int = 100, tool_name: str | None = None) -> list[ToolEvent]:
        """Most recent events first, optionally for a single tool."""
        query = "SELECT * FROM tool_events"
        params: list[Any] = []
        if tool_name is not None:
            query += " WHERE tool_name = ?"
            params.append(tool_name)
        query += " ORDER BY created_at DESC, rowid DESC LIMIT ?"
        params.append(limit)
        try:
            rows = self._conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            raise StorageReadError(operation="list_events", underlying_error=str(e)) from e
        return [self._row_to_event(row) for row in rows]

    def count_events(self, kind: ToolEventKind | None = None) -> int:
        """Number of recorded events, optionally of one kind."""
        try:
            if kind is None:
                row = self._conn.execute("SELECT COUNT(*) FROM tool_events").fetchone()
            else:
                row = self._conn.execute(
                    "SELECT COUNT(*) FROM tool_events WHERE kind = ?", (kind.value,)
                ).fetchone()
        except sqlite3.Error as e:
            raise StorageReadError(operation="count_events", underlying_error=str(e)) from e
        return int(row[0])

    @staticmethod
    def _row_to_event(row: sqlite3.Row) -> ToolEvent:
        return ToolEvent(
            event_id=row["event_id"],
            tool_name=row["tool_name"],
            kind=ToolEventKind(row["kind"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            duration_ms=row["duration_ms"],
            args=json.loads(row["args_json"]) if row["args_json"] else None,
            args_hash=row["args_hash"] or "",
            summary=row["summary"],
            message=row["message"],
        )
