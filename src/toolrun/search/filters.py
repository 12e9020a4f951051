"""
Post-filters applied to every backend's output.

The in-process walker and the external binaries all hand their raw
paths to these filters, so a query yields the same set no matter which
backend ran it.
"""

import fnmatch
import os
import re
import stat as stat_module
import time

from toolrun.errors import InvalidPatternError
from toolrun.fsys import FileType, file_type_of
from toolrun.search.gitignore import is_ignored, read_gitignore_patterns
from toolrun.search.patterns import (
    FilterPattern,
    glob_match,
    glob_to_regex,
    has_glob_chars,
    normalize_filter_pattern,
)
from toolrun.search.query import ContentQuery, EntryType, FindEntry, FindQuery

TYPE_FILTERS = {
    EntryType.FILE: FileType.FILE,
    EntryType.DIRECTORY: FileType.DIRECTORY,
    EntryType.SYMLINK: FileType.SYMLINK,
}


def relative_parts(path: str, root: str) -> list[str]:
    """Components of path below root ([] for root itself)."""
    rel = os.path.relpath(path, root)
    if rel == ".":
        return []
    return rel.split(os.sep)


def has_hidden_component(parts: list[str]) -> bool:
    return any(part.startswith(".") for part in parts)


def compile_name_filter(name: str | None, case_sensitive: bool = True) -> FilterPattern | None:
    """
    Build the name matcher for a find query.

    Raises:
        InvalidPatternError: If a "re:" regex is unsafe or malformed,
            or a glob does not compile
    """
    if not name or not name.strip():
        return None
    flags = 0 if case_sensitive else re.IGNORECASE
    pattern = normalize_filter_pattern(name, flags=flags)
    if pattern.error:
        raise InvalidPatternError(pattern=pattern.value, reason=pattern.error, message=pattern.error)
    if not pattern.is_regex and has_glob_chars(pattern.value):
        glob_to_regex(pattern.value, case_sensitive)
    return pattern


def resolve_exclude_path(pattern: str, root: str) -> str:
    """Anchor a relative exclude path ("./node_modules", "build") at root."""
    if pattern.startswith("/") or pattern.startswith("*"):
        return pattern.rstrip("/") or "/"
    if pattern.startswith("./"):
        pattern = pattern[2:]
    return os.path.join(root, pattern).rstrip("/")


class FindFilter:
    """
    Decides which entries under one root a find query reports.

    Usage:
        entry_filter = FindFilter(query, root)
        if entry_filter.descend(path):
            ...
        entry = entry_filter.accept(path)
    """

    def __init__(self, query: FindQuery, root: str, max_depth: int, now: float | None = None) -> None:
        self.query = query
        self.root = root
        self.max_depth = max_depth
        self.min_depth = max(query.min_depth, 1)
        self.now = time.time() if now is None else now
        self.name_pattern = compile_name_filter(query.name, query.case_sensitive)
        self.ignore_patterns = [] if query.include_hidden else read_gitignore_patterns(root)
        self.exclude_paths = [resolve_exclude_path(p, root) for p in query.exclude_paths]

    def _excluded(self, path: str, parts: list[str]) -> bool:
        if not self.query.include_hidden and has_hidden_component(parts):
            return True
        if self.ignore_patterns and is_ignored("/".join(parts), self.ignore_patterns):
            return True
        if self.exclude_paths:
            for end in range(1, len(parts) + 1):
                candidate = os.path.join(self.root, *parts[:end])
                if any(fnmatch.fnmatchcase(candidate, ex) for ex in self.exclude_paths):
                    return True
        return False

    def descend(self, path: str) -> bool:
        """Whether a directory's children can contain accepted entries."""
        parts = relative_parts(path, self.root)
        return len(parts) < self.max_depth and not self._excluded(path, parts)

    def name_matches(self, name: str) -> bool:
        pattern = self.name_pattern
        if pattern is None:
            return True
        if pattern.is_regex:
            return pattern.regex.search(name) is not None
        if has_glob_chars(pattern.value):
            return glob_match(name, pattern.value, self.query.case_sensitive)
        if self.query.case_sensitive:
            return pattern.value in name
        return pattern.value.casefold() in name.casefold()

    def accept(self, path: str, st: os.stat_result | None = None) -> FindEntry | None:
        """
        Return the entry for path if it passes every filter.

        Args:
            path: Absolute path below root
            st: lstat result if the caller already has one
        """
        path = path.rstrip("/") or "/"
        parts = relative_parts(path, self.root)
        if not parts or parts[0] == "..":
            return None
        depth = len(parts)
        if depth < self.min_depth or depth > self.max_depth:
            return None
        if self._excluded(path, parts):
            return None

        name = parts[-1]
        if not self.name_matches(name):
            return None

        if st is None:
            try:
                st = os.lstat(path)
            except OSError:
                return None
        file_type = file_type_of(st.st_mode)

        wanted = TYPE_FILTERS.get(self.query.type)
        if wanted is not None and file_type != wanted:
            return None
        if self.query.size is not None:
            if not stat_module.S_ISREG(st.st_mode) or not self.query.size.matches(st.st_size):
                return None
        if self.query.mtime is not None and not self.query.mtime.matches(st.st_mtime, self.now):
            return None
        if self.query.path_pattern and not fnmatch.fnmatchcase(path, self.query.path_pattern):
            return None

        return FindEntry(
            path=path,
            name=name,
            type=file_type,
            mtime=st.st_mtime,
            size=st.st_size,
        )


class ContentFilter:
    """Decides which files of a content search are reported."""

    def __init__(self, query: ContentQuery, root: str, root_is_dir: bool) -> None:
        self.query = query
        self.root = root
        self.root_is_dir = root_is_dir
        self.ignore_patterns = (
            read_gitignore_patterns(root) if root_is_dir and not query.include_hidden else []
        )

    def accept_file(self, path: str) -> bool:
        if not self.root_is_dir:
            return os.path.abspath(path) == os.path.abspath(self.root)

        parts = relative_parts(path, self.root)
        if not parts or parts[0] == "..":
            return False
        max_depth = self.query.effective_max_depth
        if max_depth is not None and len(parts) > max(max_depth, 1):
            return False
        if not self.query.include_hidden and has_hidden_component(parts):
            return False
        if self.ignore_patterns and is_ignored("/".join(parts), self.ignore_patterns):
            return False

        name = parts[-1]
        file_pattern = self.query.file_pattern
        if file_pattern:
            subject = "/".join(parts) if "/" in file_pattern else name
            if not glob_match(subject, file_pattern.lstrip("/")):
                return False
        if self.query.exclude and glob_match(name, self.query.exclude):
            return False
        if self.query.exclude_dir and any(
            glob_match(part, self.query.exclude_dir) for part in parts[:-1]
        ):
            return False
        return True
