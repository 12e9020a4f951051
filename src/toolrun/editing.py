"""
Edit operation engine.

A batch of typed edits is applied, left to right, to the lines of a file.
Every operation sees the result of the ones before it. Any failure
aborts the whole batch; callers write the file only when apply_edits()
returns.

Operations (wire shape uses camelCase):
    replace_lines  {startLine, endLine, content}   1-based, inclusive
    delete_lines   {startLine, endLine}            1-based, inclusive
    insert         {line, content}                 0 = before the first line
    replace_pattern {pattern, replacement, count}  literal or "re:<regex>"

Safety:
    - Line bounds are checked against the current (already edited) lines
    - Unsafe regexes (nested quantifiers, very long) are rejected
    - Pattern scanning stops at an iteration ceiling
"""

import difflib
import re
from dataclasses import dataclass, field
from typing import Annotated, Literal, Union

from pydantic import Field, field_validator, model_validator

from toolrun.errors import (
    EditError,
    InsertPositionError,
    InvalidPatternError,
    IterationLimitError,
    LineRangeError,
    PatternNotFoundError,
)
from toolrun.schema import ToolArgs
from toolrun.search.patterns import normalize_filter_pattern

DEFAULT_MAX_ITERATIONS = 100_000


# =============================================================================
# Operation models
# =============================================================================


class _LineRange(ToolArgs):
    start_line: int = Field(..., ge=1, description="Starting line number (1-based, inclusive)")
    end_line: int = Field(..., ge=1, description="Ending line number (1-based, inclusive)")

    @model_validator(mode="after")
    def check_range(self) -> "_LineRange":
        if self.start_line > self.end_line:
            msg = "startLine must be less than or equal to endLine"
            raise ValueError(msg)
        return self


class ReplaceLinesEdit(_LineRange):
    """Replace lines startLine..endLine with content."""

    type: Literal["replace_lines"]
    content: str = Field(..., description="New content to replace the specified lines")


class DeleteLinesEdit(_LineRange):
    """Delete lines startLine..endLine."""

    type: Literal["delete_lines"]


class InsertEdit(ToolArgs):
    """Insert content at a 0-based position."""

    type: Literal["insert"]
    line: int = Field(
        ...,
        ge=0,
        description="Line number to insert after (0 = before first line, 1 = after line 1)",
    )
    content: str = Field(..., description="Content to insert")


class ReplacePatternEdit(ToolArgs):
    """Replace up to count occurrences of a literal or regex pattern."""

    type: Literal["replace_pattern"]
    pattern: str = Field(
        ...,
        min_length=1,
        description="Pattern to find (literal string or 're:<regex>' for regex patterns)",
    )
    replacement: str = Field(..., description="Replacement text (inserted literally)")
    count: int = Field(
        default=1,
        description="Number of occurrences to replace (default: 1, use -1 for all occurrences)",
    )

    @field_validator("count")
    @classmethod
    def check_count(cls, v: int) -> int:
        if v == 0 or v < -1:
            msg = "count must be a positive integer or -1 for all occurrences"
            raise ValueError(msg)
        return v


EditOperation = Annotated[
    Union[ReplaceLinesEdit, ReplacePatternEdit, InsertEdit, DeleteLinesEdit],
    Field(discriminator="type"),
]


# =============================================================================
# Application
# =============================================================================


@dataclass
class EditOutcome:
    """
    Result of a successful batch.

    Attributes:
        lines: The edited lines
        applied: One description per applied operation
        replacements: Total pattern replacements across the batch
    """

    lines: list[str]
    applied: list[str] = field(default_factory=list)
    replacements: int = 0


def split_lines(content: str) -> list[str]:
    """Split file content on "\\n"; a trailing newline yields a final empty line."""
    return content.split("\n")


def join_lines(lines: list[str]) -> str:
    return "\n".join(lines)


def _check_range(start_line: int, end_line: int, lines: list[str]) -> None:
    if start_line < 1 or end_line > len(lines):
        raise LineRangeError(start_line=start_line, end_line=end_line, line_count=len(lines))


def find_pattern_spans(
    content: str,
    pattern: str,
    count: int,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> list[tuple[int, int]]:
    """
    Locate up to count matches of pattern (-1 for all).

    Regexes are compiled with re.MULTILINE, so ^ and $ anchor at lines.
    A zero-width match advances the scan by one character.

    Raises:
        InvalidPatternError: Empty literal, or unsafe/invalid regex
        IterationLimitError: More than max_iterations scan steps
    """
    normalized = normalize_filter_pattern(pattern, flags=re.MULTILINE, strip=False)
    if normalized.error:
        raise InvalidPatternError(pattern=pattern, reason=normalized.error)
    if not normalized.is_regex and not normalized.value:
        raise InvalidPatternError(pattern=pattern, reason="empty pattern")

    limit = None if count == -1 else count
    spans: list[tuple[int, int]] = []
    pos = 0
    iterations = 0

    while pos <= len(content):
        if limit is not None and len(spans) >= limit:
            break
        iterations += 1
        if iterations > max_iterations:
            raise IterationLimitError(pattern=pattern, limit=max_iterations)

        if normalized.is_regex:
            match = normalized.regex.search(content, pos)
            if match is None:
                break
            start, end = match.span()
        else:
            start = content.find(normalized.value, pos)
            if start == -1:
                break
            end = start + len(normalized.value)

        spans.append((start, end))
        pos = end if end > start else end + 1

    return spans


def replace_spans(content: str, spans: list[tuple[int, int]], replacement: str) -> str:
    """Substitute spans from last to first so earlier offsets stay valid."""
    for start, end in reversed(spans):
        content = content[:start] + replacement + content[end:]
    return content


def _apply_one(
    lines: list[str],
    edit: ReplaceLinesEdit | ReplacePatternEdit | InsertEdit | DeleteLinesEdit,
    max_iterations: int,
) -> tuple[list[str], str, int]:
    if isinstance(edit, ReplaceLinesEdit):
        _check_range(edit.start_line, edit.end_line, lines)
        new_lines = split_lines(edit.content)
        result = lines[: edit.start_line - 1] + new_lines + lines[edit.end_line :]
        return (
            result,
            f"Replaced lines {edit.start_line}-{edit.end_line} with {len(new_lines)} line(s)",
            0,
        )

    if isinstance(edit, DeleteLinesEdit):
        _check_range(edit.start_line, edit.end_line, lines)
        deleted = edit.end_line - edit.start_line + 1
        result = lines[: edit.start_line - 1] + lines[edit.end_line :]
        return (
            result,
            f"Deleted lines {edit.start_line}-{edit.end_line} ({deleted} line(s))",
            0,
        )

    if isinstance(edit, InsertEdit):
        if edit.line < 0 or edit.line > len(lines):
            raise InsertPositionError(line=edit.line, line_count=len(lines))
        new_lines = split_lines(edit.content)
        result = lines[: edit.line] + new_lines + lines[edit.line :]
        return result, f"Inserted {len(new_lines)} line(s) after line {edit.line}", 0

    content = join_lines(lines)
    spans = find_pattern_spans(content, edit.pattern, edit.count, max_iterations)
    if not spans:
        raise PatternNotFoundError(pattern=edit.pattern)
    content = replace_spans(content, spans, edit.replacement)
    return (
        split_lines(content),
        f"Replaced pattern {edit.pattern!r} {len(spans)} time(s) with {edit.replacement!r}",
        len(spans),
    )


def apply_edits(
    lines: list[str],
    edits: list[ReplaceLinesEdit | ReplacePatternEdit | InsertEdit | DeleteLinesEdit],
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> EditOutcome:
    """
    Apply a batch of edits.

    Args:
        lines: Current file lines (not modified)
        edits: Operations in apply order
        max_iterations: Ceiling on scan steps per replace_pattern

    Returns:
        EditOutcome with the new lines

    Raises:
        EditError: The first failing operation, with operation_index set
    """
    current = list(lines)
    outcome = EditOutcome(lines=current)
    for index, edit in enumerate(edits):
        try:
            current, description, replaced = _apply_one(current, edit, max_iterations)
        except EditError as e:
            raise e.at(index) from None
        outcome.applied.append(description)
        outcome.replacements += replaced
    outcome.lines = current
    return outcome


# =============================================================================
# Presentation
# =============================================================================


def describe_edit(
    edit: ReplaceLinesEdit | ReplacePatternEdit | InsertEdit | DeleteLinesEdit,
    index: int,
) -> str:
    """One numbered line describing an operation, for approval messages."""
    prefix = f"  {index + 1}."
    if isinstance(edit, ReplaceLinesEdit):
        n = len(split_lines(edit.content))
        return (
            f"{prefix} Replace lines {edit.start_line}-{edit.end_line} "
            f"with new content ({n} lines)"
        )
    if isinstance(edit, ReplacePatternEdit):
        if edit.count == -1:
            scope = "all occurrences"
        elif edit.count == 1:
            scope = "first occurrence"
        else:
            scope = f"{edit.count} occurrences"
        return f"{prefix} Replace pattern {edit.pattern!r} with {edit.replacement!r} ({scope})"
    if isinstance(edit, InsertEdit):
        n = len(split_lines(edit.content))
        return f"{prefix} Insert content after line {edit.line} ({n} lines)"
    return f"{prefix} Delete lines {edit.start_line}-{edit.end_line}"


def generate_diff(original: str, updated: str, path: str, max_lines: int | None = None) -> str:
    """
    Unified diff between two versions of a file.

    Args:
        original: Content before
        updated: Content after
        path: Shown in the a/ and b/ headers
        max_lines: Truncate to this many diff lines

    Returns:
        The diff text ("" when nothing changed)
    """
    diff = list(
        difflib.unified_diff(
            original.splitlines(),
            updated.splitlines(),
            fromfile=f"a/{path.lstrip('/')}",
            tofile=f"b/{path.lstrip('/')}",
            lineterm="",
        )
    )
    if max_lines is not None and len(diff) > max_lines:
        hidden = len(diff) - max_lines
        diff = diff[:max_lines] + [f"... ({hidden} more diff lines)"]
    return "\n".join(diff)
