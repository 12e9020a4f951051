"""
Search queries and results.

FindQuery describes a name search, ContentQuery a content search. Both
are plain frozen dataclasses built by the search tools from validated
arguments; backends only read them.
"""

import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from toolrun.fsys import FileType
from toolrun.search.patterns import REGEX_PREFIX


class EntryType(str, Enum):
    """Type filter for find queries."""

    FILE = "file"
    DIRECTORY = "dir"
    SYMLINK = "symlink"
    ALL = "all"


class OutputMode(str, Enum):
    """What a content search returns."""

    CONTENT = "content"
    FILES = "files"
    COUNT = "count"


# =============================================================================
# Size / mtime filters
# =============================================================================

SIZE_RE = re.compile(r"^([+-]?)(\d+)([ckMG]?)$")
MTIME_RE = re.compile(r"^([+-]?)(\d+)$")

SIZE_UNITS = {"": 1, "c": 1, "k": 1024, "M": 1024**2, "G": 1024**3}

SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class SizeFilter:
    """
    Size constraint in find(1) style.

    "+10k" is more than 10 KiB, "-1M" less than 1 MiB, "500" exactly 500
    bytes. Units: none or c (bytes), k, M, G.
    """

    op: str
    size_bytes: int

    @classmethod
    def parse(cls, spec: str) -> "SizeFilter":
        match = SIZE_RE.match(spec.strip())
        if match is None:
            msg = f"Invalid size filter {spec!r} (expected e.g. '+100k', '-1M', '500')"
            raise ValueError(msg)
        sign, number, unit = match.groups()
        return cls(op=sign or "=", size_bytes=int(number) * SIZE_UNITS[unit])

    def matches(self, size: int) -> bool:
        if self.op == "+":
            return size > self.size_bytes
        if self.op == "-":
            return size < self.size_bytes
        return size == self.size_bytes

    def find_arg(self) -> str:
        sign = "" if self.op == "=" else self.op
        return f"{sign}{self.size_bytes}c"

    def fd_arg(self) -> str | None:
        """fd bounds are inclusive and need a sign; exact sizes cannot be expressed."""
        if self.op == "+":
            return f"+{self.size_bytes + 1}b"
        if self.op == "-" and self.size_bytes > 0:
            return f"-{self.size_bytes - 1}b"
        return None

    def __str__(self) -> str:
        return self.find_arg()


@dataclass(frozen=True)
class MtimeFilter:
    """
    Modification age in whole days, find(1) style.

    "-7" is modified within the last 7 days, "+30" more than 30 whole
    days ago, "3" exactly 3 whole days ago.
    """

    op: str
    days: int

    @classmethod
    def parse(cls, spec: str) -> "MtimeFilter":
        match = MTIME_RE.match(spec.strip())
        if match is None:
            msg = f"Invalid mtime filter {spec!r} (expected e.g. '-7', '+30', '3')"
            raise ValueError(msg)
        sign, number = match.groups()
        return cls(op=sign or "=", days=int(number))

    def matches(self, mtime: float, now: float) -> bool:
        age_days = math.floor((now - mtime) / SECONDS_PER_DAY)
        if self.op == "+":
            return age_days > self.days
        if self.op == "-":
            return age_days < self.days
        return age_days == self.days

    def find_arg(self) -> str:
        sign = "" if self.op == "=" else self.op
        return f"{sign}{self.days}"

    def fd_args(self) -> list[str] | None:
        if self.op == "-":
            return ["--changed-within", f"{self.days}d"]
        if self.op == "+":
            return ["--changed-before", f"{self.days + 1}d"]
        return None

    def __str__(self) -> str:
        return self.find_arg()


# =============================================================================
# Queries
# =============================================================================


@dataclass(frozen=True)
class FindQuery:
    """
    A name search.

    Attributes:
        root: Start directory; None means smart search
        name: Substring, glob, or "re:<regex>" matched against entry names
        type: Entry type filter
        max_depth: Deepest level visited (entries directly under root are 1)
        min_depth: Shallowest level reported
        size: Size filter
        mtime: Modification age filter
        path_pattern: find(1) -path glob matched against the full path
        exclude_paths: Paths pruned from the walk
        include_hidden: Report dot-entries and skip ignore files
        case_sensitive: Case sensitivity of name matching
        max_results: Cap on returned entries
    """

    root: str | None = None
    name: str | None = None
    type: EntryType = EntryType.ALL
    max_depth: int | None = None
    min_depth: int = 0
    size: SizeFilter | None = None
    mtime: MtimeFilter | None = None
    path_pattern: str | None = None
    exclude_paths: tuple[str, ...] = ()
    include_hidden: bool = False
    case_sensitive: bool = True
    max_results: int | None = None

    @property
    def needs_external(self) -> bool:
        """Whether the query uses filters only find/fd handle."""
        return bool(
            self.size
            or self.mtime
            or self.min_depth > 1
            or self.path_pattern
            or self.exclude_paths
        )

    @property
    def name_is_regex(self) -> bool:
        return bool(self.name and self.name.strip().startswith(REGEX_PREFIX))


@dataclass(frozen=True)
class ContentQuery:
    """
    A content search.

    Attributes:
        pattern: Literal text, or a regex when regex is set or it starts with "re:"
        root: File or directory to search
        regex: Treat pattern as a regex
        ignore_case: Case-insensitive matching
        file_pattern: Only files whose name matches this glob
        exclude: Skip files whose name matches this glob
        exclude_dir: Skip directories whose name matches this glob
        context_lines: Lines of context around each match
        mode: content, files or count
        recursive: Descend into subdirectories
        max_depth: Deepest level searched
        include_hidden: Search dot-entries and skip ignore files
        max_results: Cap on returned items
    """

    pattern: str
    root: str
    regex: bool = False
    ignore_case: bool = False
    file_pattern: str | None = None
    exclude: str | None = None
    exclude_dir: str | None = None
    context_lines: int = 0
    mode: OutputMode = OutputMode.CONTENT
    recursive: bool = True
    max_depth: int | None = None
    include_hidden: bool = False
    max_results: int | None = None

    @property
    def is_regex(self) -> bool:
        return self.regex or self.pattern.startswith(REGEX_PREFIX)

    @property
    def search_pattern(self) -> str:
        """The pattern handed to the backend."""
        if not self.regex and self.pattern.startswith(REGEX_PREFIX):
            return self.pattern[len(REGEX_PREFIX):]
        return self.pattern

    @property
    def effective_max_depth(self) -> int | None:
        if not self.recursive:
            return 1
        return self.max_depth


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class FindEntry:
    """One entry found by a name search."""

    path: str
    name: str
    type: FileType
    mtime: float = 0.0
    size: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "name": self.name, "type": self.type.value}


@dataclass(frozen=True)
class ContentMatch:
    """One line reported by a content search."""

    file: str
    line: int
    text: str
    is_context: bool = False

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"file": self.file, "line": self.line, "text": self.text}
        if self.is_context:
            data["context"] = True
        return data


@dataclass(frozen=True)
class FileCount:
    """Match count for one file."""

    file: str
    count: int

    def to_dict(self) -> dict[str, Any]:
        return {"file": self.file, "count": self.count}


@dataclass
class FindResult:
    """Entries of a name search and how they were produced."""

    entries: list[FindEntry]
    backend: str
    roots: list[str] = field(default_factory=list)
    total_found: int = 0


@dataclass
class ContentResult:
    """Output of a content search; only the list for its mode is filled."""

    mode: OutputMode
    backend: str
    matches: list[ContentMatch] = field(default_factory=list)
    files: list[str] = field(default_factory=list)
    counts: list[FileCount] = field(default_factory=list)
    total_found: int = 0
