"""
Filesystem tools for Toolrun.

This module provides tools for navigating, reading and changing files:
- pwd: Show the session's working directory
- cd: Change the session's working directory
- read_file: Read a text file, optionally a line range
- edit_file / execute_edit_file: Apply a batch of line/pattern edits
- write_file / execute_write_file: Create or overwrite a file
- mv / execute_mv: Move or rename a path

Mutating operations are approval pairs: the visible tool only describes
the change, the hidden execute_ tool performs it.

Safety Note:
    - Edits are applied in memory and written once, only if every
      operation succeeded
    - mv refuses to move "/" or the home directory, whatever force says
    - force only relaxes mv's "destination exists" check; it never turns
      a failure into a success
"""

import os

from pydantic import Field

from toolrun.editing import (
    EditOperation,
    apply_edits,
    describe_edit,
    generate_diff,
    join_lines,
    split_lines,
)
from toolrun.errors import (
    CriticalPathError,
    DestinationExistsError,
    EditError,
    FileAccessError,
    FileWriteError,
)
from toolrun.fsys import FileType
from toolrun.schema import FILESYSTEM_CATEGORY, RiskLevel
from toolrun.tools.approval import ApprovalMessage, ApprovalOperation, define_approval_tools
from toolrun.tools.base import Tool, ToolArgs, ToolContext, ToolResult
from toolrun.tools.registry import ToolRegistry
from toolrun.tools.services import ToolServices

# read_file size limits (characters)
DEFAULT_MAX_BYTES = 131_072
HARD_MAX_BYTES = 524_288

UTF8_BOM = "\ufeff"


# =============================================================================
# Navigation
# =============================================================================


class PwdArgs(ToolArgs):
    pass


class PwdTool(Tool[PwdArgs]):
    """Report the current working directory of the calling session."""

    parameters = PwdArgs
    tags = ("filesystem", "navigation")
    risk_level = RiskLevel.LOW

    def __init__(self, services: ToolServices) -> None:
        self.services = services

    @property
    def name(self) -> str:
        return "pwd"

    @property
    def description(self) -> str:
        return "Print the current working directory for this agent session."

    async def handler(self, args: PwdArgs, context: ToolContext) -> ToolResult:
        return ToolResult.ok(self.services.cwd(context))


class CdArgs(ToolArgs):
    path: str = Field(..., min_length=1, description="Directory to change to (relative or absolute)")


class CdTool(Tool[CdArgs]):
    """Change the working directory of the calling session."""

    parameters = CdArgs
    tags = ("filesystem", "navigation")
    risk_level = RiskLevel.LOW

    def __init__(self, services: ToolServices) -> None:
        self.services = services

    @property
    def name(self) -> str:
        return "cd"

    @property
    def description(self) -> str:
        return (
            "Change the current working directory for this agent session. "
            "Relative paths in later tool calls resolve against it."
        )

    async def handler(self, args: CdArgs, context: ToolContext) -> ToolResult:
        target = self.services.paths.set_cwd(context.session_key, args.path)
        return ToolResult.ok(target)

    def create_summary(self, result: ToolResult) -> str | None:
        return f"cwd is now {result.result}"


# =============================================================================
# read_file
# =============================================================================


class ReadFileArgs(ToolArgs):
    path: str = Field(..., min_length=1, description="File path to read (relative to cwd allowed)")
    start_line: int | None = Field(default=None, ge=1, description="1-based start line (inclusive)")
    end_line: int | None = Field(default=None, ge=1, description="1-based end line (inclusive)")
    max_bytes: int | None = Field(
        default=None,
        gt=0,
        description=f"Maximum characters to return (default {DEFAULT_MAX_BYTES}, hard cap {HARD_MAX_BYTES})",
    )


class ReadFileTool(Tool[ReadFileArgs]):
    """
    Read a text file.

    Arguments:
        path (str): File to read (required)
        startLine / endLine (int): Optional 1-based inclusive line range
        maxBytes (int): Truncate the returned content to this many characters

    Returns:
        On success: {path, content, truncated, totalLines, returnedLines, range?}
        On failure: not_found, file_access for directories, unreadable for non-UTF-8 files
    """

    parameters = ReadFileArgs
    tags = ("filesystem", "read")
    risk_level = RiskLevel.LOW

    def __init__(self, services: ToolServices) -> None:
        self.services = services

    @property
    def name(self) -> str:
        return "read_file"

    @property
    def description(self) -> str:
        return (
            "Read the contents of a text file with optional line range selection "
            "(startLine/endLine). Strips a UTF-8 BOM, enforces a size limit "
            f"(default {DEFAULT_MAX_BYTES // 1024}KB, hard cap {HARD_MAX_BYTES // 1024}KB) "
            "and reports truncation."
        )

    async def handler(self, args: ReadFileArgs, context: ToolContext) -> ToolResult:
        fs = self.services.fs
        target = self.services.resolve(context, args.path)

        stat = await fs.stat(target)
        if stat.type == FileType.DIRECTORY:
            raise FileAccessError(path=target, message=f"Not a file: {target}")

        content = await fs.read_file_string(target)
        if content.startswith(UTF8_BOM):
            content = content[1:]

        result: dict = {"path": target}
        if args.start_line is not None or args.end_line is not None:
            lines = content.splitlines()
            total = len(lines)
            start = args.start_line or 1
            end = max(start, min(args.end_line or total, total))
            content = "\n".join(lines[start - 1 : end])
            returned = max(0, min(end, total) - start + 1)
            result["range"] = {"startLine": start, "endLine": end}
        else:
            total = len(content.splitlines())
            returned = total

        max_bytes = min(args.max_bytes or DEFAULT_MAX_BYTES, HARD_MAX_BYTES)
        truncated = len(content) > max_bytes
        if truncated:
            content = content[:max_bytes]

        result.update({
            "content": content,
            "truncated": truncated,
            "totalLines": total,
            "returnedLines": returned,
        })
        return ToolResult.ok(result)

    def create_summary(self, result: ToolResult) -> str | None:
        data = result.result
        summary = f"{data['returnedLines']} of {data['totalLines']} lines"
        if data["truncated"]:
            summary += " (truncated)"
        return summary


# =============================================================================
# edit_file
# =============================================================================


class EditFileArgs(ToolArgs):
    path: str = Field(..., min_length=1, description="File path to edit (file must exist)")
    edits: list[EditOperation] = Field(
        ...,
        min_length=1,
        description=(
            "Edit operations, applied in order. Use replace_lines when you know exact "
            "line numbers (from read_file or grep), replace_pattern to find and replace "
            "text, insert to add content, delete_lines to remove lines."
        ),
    )


class EditFileOperation(ApprovalOperation[EditFileArgs]):
    """Apply a batch of edits to one file."""

    parameters = EditFileArgs
    tags = ("filesystem", "write", "edit")
    risk_level = RiskLevel.MEDIUM
    approval_error = "Approval required: File editing requires user confirmation."

    def __init__(self, services: ToolServices) -> None:
        self.services = services

    @property
    def name(self) -> str:
        return "edit_file"

    @property
    def description(self) -> str:
        return (
            "Edit specific parts of a file without rewriting the entire file. "
            "Supports several operations per call: replace lines by number, replace "
            "patterns (literal or 're:<regex>'), insert content at a line, or delete "
            "lines. All edits are applied in order; if any fails, the file is unchanged."
        )

    async def _load(self, args: EditFileArgs, context: ToolContext) -> tuple[str, str]:
        target = self.services.resolve(context, args.path)
        stat = await self.services.fs.stat(target)
        if stat.type == FileType.DIRECTORY:
            raise FileAccessError(path=target, message=f"Not a file: {target}")
        return target, await self.services.fs.read_file_string(target)

    async def describe(self, args: EditFileArgs, context: ToolContext) -> ApprovalMessage:
        target, original = await self._load(args, context)
        lines = split_lines(original)
        steps = "\n".join(describe_edit(edit, i) for i, edit in enumerate(args.edits))
        message = (
            f"About to edit file: {target} ({len(lines)} lines total)\n\n"
            f"Edits to perform:\n{steps}"
        )

        preview = None
        try:
            outcome = apply_edits(lines, args.edits, self.services.config.edit.max_iterations)
        except EditError as e:
            message += f"\n\nWARNING: These edits will fail as written: {e.message}"
        else:
            preview = generate_diff(
                original,
                join_lines(outcome.lines),
                target,
                self.services.config.edit.max_diff_lines,
            )
        return ApprovalMessage(message=message, preview_diff=preview or None)

    async def perform(self, args: EditFileArgs, context: ToolContext) -> ToolResult:
        target, original = await self._load(args, context)
        lines = split_lines(original)
        outcome = apply_edits(lines, args.edits, self.services.config.edit.max_iterations)
        updated = join_lines(outcome.lines)
        await self.services.fs.write_file_string(target, updated)

        return ToolResult.ok({
            "path": target,
            "editsApplied": outcome.applied,
            "totalEdits": len(args.edits),
            "replacements": outcome.replacements,
            "originalLines": len(lines),
            "newLines": len(outcome.lines),
            "diff": generate_diff(
                original, updated, target, self.services.config.edit.max_diff_lines
            ),
        })

    def create_summary(self, result: ToolResult) -> str | None:
        data = result.result
        return (
            f"{data['totalEdits']} edit(s) to {os.path.basename(data['path'])}: "
            f"{data['originalLines']} -> {data['newLines']} lines"
        )


# =============================================================================
# write_file
# =============================================================================


class WriteFileArgs(ToolArgs):
    path: str = Field(..., min_length=1, description="File path to write (relative to cwd allowed)")
    content: str = Field(..., description="Full file content")
    create_dirs: bool = Field(default=False, description="Create missing parent directories")


class WriteFileOperation(ApprovalOperation[WriteFileArgs]):
    """Create a file or replace its whole content."""

    parameters = WriteFileArgs
    tags = ("filesystem", "write")
    risk_level = RiskLevel.MEDIUM
    approval_error = "Approval required: File writing requires user confirmation."

    def __init__(self, services: ToolServices) -> None:
        self.services = services

    @property
    def name(self) -> str:
        return "write_file"

    @property
    def description(self) -> str:
        return (
            "Write content to a file, creating it or replacing its entire content. "
            "Prefer edit_file to change part of an existing file."
        )

    async def _existing_content(self, target: str) -> str | None:
        if not await self.services.fs.exists(target):
            return None
        return await self.services.fs.read_file_string(target)

    async def describe(self, args: WriteFileArgs, context: ToolContext) -> ApprovalMessage:
        target = self.services.resolve(context, args.path, must_exist=False)
        original = await self._existing_content(target)

        options = " (will create parent directories)" if args.create_dirs else ""
        message = f"About to write {len(args.content)} characters to file: {target}{options}"
        if original is not None:
            message += (
                f"\n\nWARNING: This will overwrite the existing file "
                f"({len(split_lines(original)) if original else 0} lines).\n"
                "   Consider using edit_file instead if you only need to modify part of the file."
            )
        diff = generate_diff(
            original or "", args.content, target, self.services.config.edit.max_diff_lines
        )
        return ApprovalMessage(message=message, preview_diff=diff or None)

    async def perform(self, args: WriteFileArgs, context: ToolContext) -> ToolResult:
        fs = self.services.fs
        target = self.services.resolve(context, args.path, must_exist=False)

        parent = os.path.dirname(target)
        if parent and not await fs.exists(parent):
            if not args.create_dirs:
                raise FileWriteError(
                    path=target,
                    underlying_error=f"parent directory does not exist: {parent}",
                    suggestion="Pass createDirs: true to create it",
                )
            await fs.make_directory(parent, recursive=True)

        original = await self._existing_content(target)
        await fs.write_file_string(target, args.content)

        is_new = original is None
        return ToolResult.ok({
            "path": target,
            "message": f"File created: {target}" if is_new else f"File written: {target}",
            "isNewFile": is_new,
            "diff": generate_diff(
                original or "", args.content, target, self.services.config.edit.max_diff_lines
            ),
        })

    def create_summary(self, result: ToolResult) -> str | None:
        return result.result["message"]


# =============================================================================
# mv
# =============================================================================


class MoveArgs(ToolArgs):
    source: str = Field(..., min_length=1, description="Path to move")
    destination: str = Field(..., min_length=1, description="New path")
    force: bool = Field(default=False, description="Overwrite destination if it exists")


def is_critical_path(path: str) -> bool:
    """Whether path is the filesystem root or the user's home directory."""
    normalized = os.path.normpath(path)
    home = os.path.normpath(os.path.expanduser("~"))
    return normalized == "/" or normalized == home


class MoveOperation(ApprovalOperation[MoveArgs]):
    """Move or rename a file or directory."""

    parameters = MoveArgs
    tags = ("filesystem", "write")
    risk_level = RiskLevel.HIGH
    approval_error = "Approval required: Moving files requires user confirmation."

    def __init__(self, services: ToolServices) -> None:
        self.services = services

    @property
    def name(self) -> str:
        return "mv"

    @property
    def description(self) -> str:
        return (
            "Move or rename a file or directory. Fails if the destination exists "
            "unless force is true. Never moves / or the home directory."
        )

    def _resolve(self, args: MoveArgs, context: ToolContext) -> tuple[str, str]:
        source = self.services.resolve(context, args.source)
        destination = self.services.resolve(context, args.destination, must_exist=False)
        return source, destination

    async def describe(self, args: MoveArgs, context: ToolContext) -> str:
        source, destination = self._resolve(args, context)
        overwrite = " (will overwrite if exists)" if args.force else ""
        return f"About to move: {source}\n       to: {destination}{overwrite}"

    async def perform(self, args: MoveArgs, context: ToolContext) -> ToolResult:
        source, destination = self._resolve(args, context)

        if is_critical_path(source):
            raise CriticalPathError(path=source, message=f"Refusing to move critical path: {source}")

        if source == destination:
            raise FileWriteError(
                path=destination,
                underlying_error="source and destination are the same path",
            )
        if os.path.isdir(source) and destination.startswith(source.rstrip(os.sep) + os.sep):
            raise FileWriteError(
                path=destination,
                underlying_error=f"cannot move a directory into itself: {source}",
            )

        if await self.services.fs.exists(destination):
            if not args.force:
                raise DestinationExistsError(path=destination)
            if os.path.isdir(destination) and not os.path.islink(destination):
                raise DestinationExistsError(
                    path=destination,
                    message=f"Destination is an existing directory: {destination}",
                    suggestion="Move into the directory by naming the full destination path",
                )

        # rename replaces an existing file in one step
        await self.services.fs.rename(source, destination)
        return ToolResult.ok({"source": source, "destination": destination})

    def create_summary(self, result: ToolResult) -> str | None:
        return f"Moved: {result.result['source']} -> {result.result['destination']}"


def register_fs_tools(registry: ToolRegistry, services: ToolServices) -> None:
    """Register the filesystem tools (and their commit halves) in registry."""
    registry.register(PwdTool(services), FILESYSTEM_CATEGORY)
    registry.register(CdTool(services), FILESYSTEM_CATEGORY)
    registry.register(ReadFileTool(services), FILESYSTEM_CATEGORY)
    for operation in (
        EditFileOperation(services),
        WriteFileOperation(services),
        MoveOperation(services),
    ):
        for tool in define_approval_tools(operation).all():
            registry.register(tool, FILESYSTEM_CATEGORY)
