"""
Search tools for Toolrun.

This module exposes the search engine to the orchestrator:
- find: Locate files and directories by name, type, size, age or path
- grep: Search file contents (matching lines, file names, or counts)
- find_content: Content search restricted to files matching a glob

All three are read-only. Backend choice (walker, fd/find, rg/grep) is
made by the SearchEngine and reported in the result.
"""

import os

from pydantic import Field, field_validator

from toolrun.schema import SEARCH_CATEGORY, RiskLevel
from toolrun.search.query import (
    ContentQuery,
    ContentResult,
    EntryType,
    FindQuery,
    MtimeFilter,
    OutputMode,
    SizeFilter,
)
from toolrun.tools.base import Tool, ToolArgs, ToolContext, ToolResult
from toolrun.tools.registry import ToolRegistry
from toolrun.tools.services import ToolServices


def _content_message(result: ContentResult, pattern: str) -> str:
    if result.total_found == 0:
        return f'No matches found for pattern "{pattern}"'
    if result.mode == OutputMode.FILES:
        return f'Found {result.total_found} files matching pattern "{pattern}"'
    if result.mode == OutputMode.COUNT:
        return f'Found matches in {result.total_found} files for pattern "{pattern}"'
    return f'Found {result.total_found} matches for pattern "{pattern}"'


def _content_payload(result: ContentResult) -> dict:
    """Mode-specific part of a content search result."""
    if result.mode == OutputMode.FILES:
        items = {"files": result.files}
        returned = len(result.files)
    elif result.mode == OutputMode.COUNT:
        items = {"counts": [c.to_dict() for c in result.counts]}
        returned = len(result.counts)
    else:
        items = {"matches": [m.to_dict() for m in result.matches]}
        returned = len(result.matches)
    return {
        "outputMode": result.mode.value,
        "backend": result.backend,
        **items,
        "totalFound": result.total_found,
        "truncated": returned < result.total_found,
    }


# =============================================================================
# find
# =============================================================================


class FindArgs(ToolArgs):
    path: str | None = Field(
        default=None,
        description="Directory to search. Omit to use smart search (cwd, parents, home).",
    )
    name: str | None = Field(
        default=None,
        description="Name filter: substring, glob (e.g. '*.py'), or 're:<regex>'",
    )
    type: EntryType = Field(default=EntryType.ALL, description="Entry type: file, dir, symlink or all")
    max_depth: int | None = Field(default=None, ge=0, description="Maximum depth (default 25)")
    min_depth: int = Field(default=0, ge=0, description="Minimum depth of reported entries")
    size: str | None = Field(
        default=None, description="Size filter in find style: '+100k', '-1M', '500'"
    )
    mtime: str | None = Field(
        default=None, description="Modified age in days, find style: '-7', '+30', '3'"
    )
    path_pattern: str | None = Field(
        default=None, description="Glob matched against the full path (e.g. '*/src/*.py')"
    )
    exclude_paths: list[str] = Field(
        default_factory=list, description="Paths or directory names to skip"
    )
    include_hidden: bool = Field(default=False, description="Include dotfiles and dot-directories")
    case_sensitive: bool = Field(default=True, description="Case-sensitive name matching")
    max_results: int | None = Field(
        default=None, gt=0, description="Maximum results to return (default 200, hard cap 2000)"
    )
    smart: bool = Field(
        default=True,
        description="Use smart hierarchical search when path is omitted (cwd, parents, home)",
    )

    @field_validator("size")
    @classmethod
    def check_size(cls, v: str | None) -> str | None:
        if v is not None:
            SizeFilter.parse(v)
        return v

    @field_validator("mtime")
    @classmethod
    def check_mtime(cls, v: str | None) -> str | None:
        if v is not None:
            MtimeFilter.parse(v)
        return v


class FindTool(Tool[FindArgs]):
    """
    Name search over directory trees.

    Results are sorted most recently modified first and capped at
    maxResults. Each entry is {path, name, type}.
    """

    parameters = FindArgs
    tags = ("filesystem", "search")
    risk_level = RiskLevel.LOW

    def __init__(self, services: ToolServices) -> None:
        self.services = services

    @property
    def name(self) -> str:
        return "find"

    @property
    def description(self) -> str:
        return (
            "Advanced file and directory search. When path is omitted, searches the "
            "current directory, then up to 3 parent directories, then the home "
            "directory. Never pass path '/'. Supports glob and 're:' regex names, type, "
            "size, mtime, depth and path filters, and hidden files. Results are sorted "
            "by most recently modified first (default 200, hard cap 2000)."
        )

    async def handler(self, args: FindArgs, context: ToolContext) -> ToolResult:
        cwd = self.services.cwd(context)
        if args.path is not None:
            root = self.services.resolve(context, args.path)
        elif not args.smart:
            root = cwd
        else:
            root = None

        query = FindQuery(
            root=root,
            name=args.name,
            type=args.type,
            max_depth=args.max_depth,
            min_depth=args.min_depth,
            size=SizeFilter.parse(args.size) if args.size else None,
            mtime=MtimeFilter.parse(args.mtime) if args.mtime else None,
            path_pattern=args.path_pattern,
            exclude_paths=tuple(os.path.expanduser(p) for p in args.exclude_paths),
            include_hidden=args.include_hidden,
            case_sensitive=args.case_sensitive,
            max_results=args.max_results,
        )
        found = await self.services.search.find(query, cwd=cwd)

        return ToolResult.ok({
            "entries": [e.to_dict() for e in found.entries],
            "totalFound": found.total_found,
            "truncated": len(found.entries) < found.total_found,
            "searchedRoots": found.roots,
            "backend": found.backend,
        })

    def create_summary(self, result: ToolResult) -> str | None:
        data = result.result
        summary = f"Found {len(data['entries'])} entries"
        if data["truncated"]:
            summary += f" (of {data['totalFound']})"
        return summary


# =============================================================================
# grep
# =============================================================================


class GrepArgs(ToolArgs):
    pattern: str = Field(
        ..., min_length=1, description="Text to search for, or a regex with regex: true or 're:' prefix"
    )
    path: str | None = Field(default=None, description="File or directory to search (default: cwd)")
    recursive: bool = Field(default=True, description="Search subdirectories")
    regex: bool = Field(default=False, description="Treat pattern as a regular expression")
    ignore_case: bool = Field(default=False, description="Case-insensitive search")
    file_pattern: str | None = Field(default=None, description="Only search files matching this glob")
    exclude: str | None = Field(default=None, description="Skip files matching this glob")
    exclude_dir: str | None = Field(default=None, description="Skip directories matching this glob")
    context_lines: int = Field(default=0, ge=0, le=20, description="Lines of context around matches")
    output_mode: OutputMode = Field(
        default=OutputMode.CONTENT,
        description="content (matching lines), files (file names only) or count (matches per file)",
    )
    max_results: int | None = Field(
        default=None, gt=0, description="Maximum results to return (default 200, hard cap 2000)"
    )
    include_hidden: bool = Field(default=False, description="Search dotfiles and dot-directories")


class GrepTool(Tool[GrepArgs]):
    """Content search with ripgrep, falling back to grep."""

    parameters = GrepArgs
    tags = ("filesystem", "search")
    risk_level = RiskLevel.LOW

    def __init__(self, services: ToolServices) -> None:
        self.services = services

    @property
    def name(self) -> str:
        return "grep"

    @property
    def description(self) -> str:
        return (
            "Search file contents for a pattern. outputMode 'content' returns matching "
            "lines with file and line number, 'files' only the matching file names, "
            "'count' the number of matches per file. Supports file/directory filters "
            "and context lines. Uses ripgrep when installed, grep otherwise."
        )

    async def handler(self, args: GrepArgs, context: ToolContext) -> ToolResult:
        root = (
            self.services.resolve(context, args.path)
            if args.path is not None
            else self.services.cwd(context)
        )
        query = ContentQuery(
            pattern=args.pattern,
            root=root,
            regex=args.regex,
            ignore_case=args.ignore_case,
            file_pattern=args.file_pattern,
            exclude=args.exclude,
            exclude_dir=args.exclude_dir,
            context_lines=args.context_lines,
            mode=args.output_mode,
            recursive=args.recursive,
            include_hidden=args.include_hidden,
            max_results=args.max_results,
        )
        found = await self.services.search.search_content(query)

        return ToolResult.ok({
            "pattern": args.pattern,
            "searchPath": root,
            **_content_payload(found),
            "message": _content_message(found, args.pattern),
        })

    def create_summary(self, result: ToolResult) -> str | None:
        return result.result["message"]


# =============================================================================
# find_content
# =============================================================================


class FindContentArgs(ToolArgs):
    content_pattern: str = Field(
        ..., min_length=1, description="Text to search for (or 're:<regex>' / regex: true)"
    )
    file_pattern: str = Field(
        ..., min_length=1, description="Glob of files to search (e.g. '*.ts', 'src/**/*.py')"
    )
    path: str | None = Field(default=None, description="Directory to search (default: cwd)")
    regex: bool = Field(default=False, description="Treat contentPattern as a regular expression")
    ignore_case: bool = Field(default=False, description="Case-insensitive search")
    max_results: int | None = Field(
        default=None, gt=0, description="Maximum matches to return (default 200, hard cap 2000)"
    )
    max_depth: int | None = Field(default=None, ge=1, description="Maximum directory depth")
    exclude_dir: str | None = Field(default=None, description="Skip directories matching this glob")
    context_lines: int = Field(default=0, ge=0, le=20, description="Lines of context around matches")


class FindContentTool(Tool[FindContentArgs]):
    """Content search limited to files whose name matches a glob."""

    parameters = FindContentArgs
    tags = ("filesystem", "search")
    risk_level = RiskLevel.LOW

    def __init__(self, services: ToolServices) -> None:
        self.services = services

    @property
    def name(self) -> str:
        return "find_content"

    @property
    def description(self) -> str:
        return (
            "Search for text inside files matching a file pattern, e.g. all '*.py' "
            "files containing 'TODO'. Returns file, line number and line text for "
            "each match."
        )

    async def handler(self, args: FindContentArgs, context: ToolContext) -> ToolResult:
        root = (
            self.services.resolve(context, args.path)
            if args.path is not None
            else self.services.cwd(context)
        )
        query = ContentQuery(
            pattern=args.content_pattern,
            root=root,
            regex=args.regex,
            ignore_case=args.ignore_case,
            file_pattern=args.file_pattern,
            exclude_dir=args.exclude_dir,
            context_lines=args.context_lines,
            mode=OutputMode.CONTENT,
            max_depth=args.max_depth,
            max_results=args.max_results,
        )
        found = await self.services.search.search_content(query)

        if found.total_found == 0:
            message = (
                f'No matches found for "{args.content_pattern}" '
                f'in files matching "{args.file_pattern}"'
            )
        else:
            message = (
                f'Found {found.total_found} matches for "{args.content_pattern}" '
                f'in files matching "{args.file_pattern}"'
            )
            if args.context_lines:
                message += f" (with {args.context_lines} context lines)"

        return ToolResult.ok({
            "contentPattern": args.content_pattern,
            "filePattern": args.file_pattern,
            "searchPath": root,
            **_content_payload(found),
            "message": message,
        })

    def create_summary(self, result: ToolResult) -> str | None:
        return result.result["message"]


def register_search_tools(registry: ToolRegistry, services: ToolServices) -> None:
    """Register the search tools in registry."""
    registry.register(FindTool(services), SEARCH_CATEGORY)
    registry.register(GrepTool(services), SEARCH_CATEGORY)
    registry.register(FindContentTool(services), SEARCH_CATEGORY)
