"""
Tool registry for Toolrun.

The registry is the central location for all registered tools.
Tools must be registered before the engine can execute them.

Design:
    - Instances are injected into the Engine; no hidden module state
    - Hidden tools are callable by name but absent from listings
    - Category views are sorted so output is deterministic
    - The external definition list is memoized and rebuilt lazily

Usage:
    from toolrun.tools.registry import ToolRegistry

    registry = ToolRegistry()
    registry.register(MyTool(), category=FILESYSTEM_CATEGORY)

    tool = registry.get("my_tool")
"""

import difflib
from typing import Any, Callable, Iterator

from toolrun.errors import ToolNotFoundError
from toolrun.schema import ToolCategory
from toolrun.tools.base import Tool

DEFAULT_CATEGORY_NAME = "Other"


class ToolRegistry:
    """
    Registry for looking up tools by name.

    Attributes:
        _tools: Mapping of tool names to tool instances
        _tool_categories: Mapping of tool names to category ids
        _categories: Mapping of category ids to ToolCategory
        _definitions: Cached visible definitions (None when stale)
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._tools: dict[str, Tool] = {}
        self._tool_categories: dict[str, str] = {}
        self._categories: dict[str, ToolCategory] = {}
        self._definitions: list[dict[str, Any]] | None = None

    def register(self, tool: Tool, category: ToolCategory | None = None) -> None:
        """
        Register a tool, replacing any tool with the same name.

        Args:
            tool: The tool instance to register
            category: Optional category to file it under

        Raises:
            ValueError: If tool is None or has an empty name
        """
        if tool is None:
            msg = "Cannot register None as a tool"
            raise ValueError(msg)

        name = tool.name
        if not name:
            msg = "Tool must have a non-empty name"
            raise ValueError(msg)

        self._tools[name] = tool
        if category is not None:
            self._tool_categories[name] = category.id
            self._categories.setdefault(category.id, category)
        self._definitions = None

    def register_for_category(self, category: ToolCategory) -> Callable[[Tool], None]:
        """
        Return a function that registers tools under one category.

        Example:
            register = registry.register_for_category(SEARCH_CATEGORY)
            register(FindTool(services))
            register(GrepTool(services))
        """

        def register(tool: Tool) -> None:
            self.register(tool, category)

        return register

    def get(self, name: str) -> Tool:
        """
        Look up a tool by name, hidden tools included.

        Raises:
            ToolNotFoundError: If no tool with that name is registered
        """
        tool = self._tools.get(name)
        if tool is None:
            close = difflib.get_close_matches(name, self.list_tools(), n=3)
            suggestion = (
                f"Did you mean: {', '.join(close)}?"
                if close
                else "Check tool name spelling or list the available tools"
            )
            raise ToolNotFoundError(tool=name, suggestion=suggestion)
        return tool

    def get_optional(self, name: str) -> Tool | None:
        """Look up a tool by name, returning None if not found."""
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self._tools

    def unregister(self, name: str) -> bool:
        """
        Remove a tool from the registry.

        Returns:
            True if the tool was removed, False if it wasn't registered
        """
        if name not in self._tools:
            return False
        del self._tools[name]
        self._tool_categories.pop(name, None)
        self._definitions = None
        return True

    def clear(self) -> None:
        """Remove all tools and categories from the registry."""
        self._tools.clear()
        self._tool_categories.clear()
        self._categories.clear()
        self._definitions = None

    def list_tools(self) -> list[str]:
        """Visible tool names in sorted order."""
        return sorted(name for name, tool in self._tools.items() if not tool.hidden)

    def list_all_tools(self) -> list[str]:
        """All tool names, hidden included, in sorted order."""
        return sorted(self._tools)

    def get_tool_definitions(self) -> list[dict[str, Any]]:
        """
        Function definitions for every visible tool.

        The list is built once and reused until the next registration
        change.
        """
        if self._definitions is None:
            self._definitions = [
                self._tools[name].definition() for name in self.list_tools()
            ]
        return self._definitions

    def list_tools_by_category(self) -> dict[str, list[str]]:
        """
        Visible tools grouped by category display name.

        Categories and the names inside each are sorted alphabetically;
        uncategorized tools are listed under "Other".
        """
        groups: dict[str, list[str]] = {}
        for name in self.list_tools():
            category_id = self._tool_categories.get(name)
            if category_id is None:
                label = DEFAULT_CATEGORY_NAME
            else:
                category = self._categories.get(category_id)
                label = category.display_name if category else category_id
            groups.setdefault(label, []).append(name)
        return {label: sorted(groups[label]) for label in sorted(groups)}

    def get_tools_in_category(self, category_id: str) -> list[str]:
        """Visible tool names filed under a category id."""
        return [
            name
            for name in self.list_tools()
            if self._tool_categories.get(name) == category_id
        ]

    def list_categories(self) -> list[ToolCategory]:
        """Categories that contain at least one visible tool, by display name."""
        ids = {
            self._tool_categories[name]
            for name in self.list_tools()
            if name in self._tool_categories
        }
        categories = [self._categories[i] for i in ids if i in self._categories]
        return sorted(categories, key=lambda c: c.display_name)

    def category_of(self, name: str) -> ToolCategory | None:
        """The category a tool was registered under, if any."""
        category_id = self._tool_categories.get(name)
        return self._categories.get(category_id) if category_id else None

    def __len__(self) -> int:
        """Return the number of registered tools."""
        return len(self._tools)

    def __iter__(self) -> Iterator[Tool]:
        """Iterate over all registered tools."""
        return iter(self._tools.values())

    def __contains__(self, name: str) -> bool:
        """Check if a tool is registered using 'in' operator."""
        return name in self._tools

    def __repr__(self) -> str:
        """String representation of the registry."""
        tools = ", ".join(self.list_all_tools())
        return f"<ToolRegistry: [{tools}]>"
