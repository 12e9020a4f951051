"""
Tools module for Toolrun.

This module provides the tool interface and the built-in tools an agent
calls through the Engine.

Built-in tools:
    File System: pwd, cd, read_file, edit_file, write_file, mv
    Search:      find, grep, find_content

edit_file, write_file and mv are approval pairs: each also registers a
hidden execute_<name> tool that performs the change once the user has
confirmed it.

Architecture:
    - Tool: Abstract base class defining the tool interface
    - ToolRegistry: Lookup by name, categories, external definitions
    - ApprovalOperation: One mutating operation, exposed as two tools
    - ToolServices: Collaborators handed to the built-in tools
"""

from toolrun.tools.approval import (
    ApprovalMessage,
    ApprovalOperation,
    ApprovalToolPair,
    define_approval_tools,
)
from toolrun.tools.base import Tool, ToolArgs, ToolContext, ToolResult, ValidationResult
from toolrun.tools.fs import register_fs_tools
from toolrun.tools.registry import ToolRegistry
from toolrun.tools.search import register_search_tools
from toolrun.tools.services import ToolServices


def build_registry(services: ToolServices | None = None) -> ToolRegistry:
    """Create a registry holding every built-in tool."""
    services = services or ToolServices()
    registry = ToolRegistry()
    register_fs_tools(registry, services)
    register_search_tools(registry, services)
    return registry


__all__ = [
    "ApprovalMessage",
    "ApprovalOperation",
    "ApprovalToolPair",
    "Tool",
    "ToolArgs",
    "ToolContext",
    "ToolRegistry",
    "ToolResult",
    "ToolServices",
    "ValidationResult",
    "build_registry",
    "define_approval_tools",
    "register_fs_tools",
    "register_search_tools",
]
