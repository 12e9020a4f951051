"""
Storage module for Toolrun.

This module provides the SQLite audit log the engine's event logger
writes to. It is a log file, not application state: nothing in the
runtime reads it back to make decisions.

Tables:
    - tool_events: One row per tool lifecycle event
"""

from toolrun.store.audit import AuditLog, ToolEvent, compute_hash, generate_id

__all__ = [
    "AuditLog",
    "ToolEvent",
    "compute_hash",
    "generate_id",
]
