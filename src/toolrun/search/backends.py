"""
Search backends.

Name search:
    - GlobBackend: In-process directory walk (name, type, depth, ignores)
    - FdBackend: fd, preferred external binary
    - FindBackend: POSIX find, fallback external binary

Content search:
    - RipgrepBackend: rg, preferred
    - GrepBackend: grep, fallback

External backends only build argument lists and parse output. Which one
runs, and what happens when it fails, is the SearchEngine's business.
Arguments they pass are pre-filters; the shared post-filters in
toolrun.search.filters decide the final set.
"""

import os
import re
from abc import ABC, abstractmethod

from toolrun.search.filters import FindFilter, resolve_exclude_path
from toolrun.search.patterns import expand_braces, has_glob_chars
from toolrun.search.query import (
    ContentMatch,
    ContentQuery,
    EntryType,
    FileCount,
    FindEntry,
    FindQuery,
    OutputMode,
)

DEFAULT_IGNORED_NAMES = ("node_modules", ".git")

LINE_RE = re.compile(r"^(\d+)([:-])(.*)$", re.DOTALL)

FD_TYPES = {EntryType.FILE: "f", EntryType.DIRECTORY: "d", EntryType.SYMLINK: "l"}
FIND_TYPES = {EntryType.FILE: "f", EntryType.DIRECTORY: "d", EntryType.SYMLINK: "l"}


# =============================================================================
# In-process walker
# =============================================================================


class GlobBackend:
    """Walk a directory tree with os.scandir, pruning as it goes."""

    name = "glob"

    def walk(self, root: str, entry_filter: FindFilter) -> list[FindEntry]:
        """Blocking; run it in a worker thread."""
        entries: list[FindEntry] = []
        stack = [root]
        while stack:
            directory = stack.pop()
            try:
                with os.scandir(directory) as it:
                    children = list(it)
            except OSError:
                continue
            for child in children:
                try:
                    st = child.stat(follow_symlinks=False)
                except OSError:
                    continue
                entry = entry_filter.accept(child.path, st)
                if entry is not None:
                    entries.append(entry)
                if child.is_dir(follow_symlinks=False) and entry_filter.descend(child.path):
                    stack.append(child.path)
        return entries


# =============================================================================
# External name search
# =============================================================================


class ExternalFindBackend(ABC):
    """An external binary that lists paths for a FindQuery."""

    name: str
    binary: str

    def supports(self, query: FindQuery) -> bool:
        """Whether the binary can express every filter of the query."""
        return True

    @abstractmethod
    def build_args(self, query: FindQuery, root: str, max_depth: int) -> list[str]:
        ...

    def parse_paths(self, stdout: str) -> list[str]:
        paths = []
        for line in stdout.splitlines():
            line = line.strip()
            if line:
                paths.append(line.rstrip("/") or "/")
        return paths


class FdBackend(ExternalFindBackend):
    """fd: fast, but cannot express exact sizes, exact ages or -path globs."""

    name = "fd"
    binary = "fd"

    def supports(self, query: FindQuery) -> bool:
        if query.path_pattern:
            return False
        if query.size is not None and query.size.fd_arg() is None:
            return False
        if query.mtime is not None and query.mtime.fd_args() is None:
            return False
        return True

    def build_args(self, query: FindQuery, root: str, max_depth: int) -> list[str]:
        args = ["--no-ignore", "--absolute-path", "--color", "never"]
        if query.include_hidden:
            args.append("--hidden")
        else:
            for ignored in DEFAULT_IGNORED_NAMES:
                args.extend(["--exclude", ignored])

        args.extend(["--max-depth", str(max_depth)])
        if query.min_depth > 1:
            args.extend(["--min-depth", str(query.min_depth)])
        if query.type in FD_TYPES:
            args.extend(["--type", FD_TYPES[query.type]])
        args.append("--case-sensitive" if query.case_sensitive else "--ignore-case")

        if query.size is not None:
            args.extend(["--size", query.size.fd_arg()])
        if query.mtime is not None:
            args.extend(query.mtime.fd_args())

        pattern = "."
        if query.name and query.name.strip() and not query.name_is_regex:
            value = query.name.strip()
            if has_glob_chars(value):
                args.append("--glob")
            else:
                args.append("--fixed-strings")
            pattern = value

        args.extend(["--", pattern, root])
        return args


def _escape_find_glob(text: str) -> str:
    return re.sub(r"([*?\[\]\\])", r"\\\1", text)


class FindBackend(ExternalFindBackend):
    """POSIX find; expresses every filter."""

    name = "find"
    binary = "find"

    def build_args(self, query: FindQuery, root: str, max_depth: int) -> list[str]:
        args = [root, "-mindepth", str(max(query.min_depth, 1)), "-maxdepth", str(max_depth)]

        pruned: list[str] = []
        if not query.include_hidden:
            pruned.append(".*")
            pruned.extend(DEFAULT_IGNORED_NAMES)
        if pruned:
            args.append("(")
            for i, name in enumerate(pruned):
                if i:
                    args.append("-o")
                args.extend(["-name", name])
            args.extend([")", "-prune", "-o"])

        for excluded in query.exclude_paths:
            args.extend(["-path", resolve_exclude_path(excluded, root), "-prune", "-o"])

        if query.type in FIND_TYPES:
            args.extend(["-type", FIND_TYPES[query.type]])

        if query.name and query.name.strip() and not query.name_is_regex:
            value = query.name.strip()
            name_flag = "-name" if query.case_sensitive else "-iname"
            if not has_glob_chars(value):
                args.extend([name_flag, f"*{_escape_find_glob(value)}*"])
            elif "{" not in value:
                args.extend([name_flag, value])

        if query.size is not None:
            args.extend(["-size", query.size.find_arg()])
        if query.mtime is not None:
            args.extend(["-mtime", query.mtime.find_arg()])
        if query.path_pattern:
            args.extend(["-path", query.path_pattern])

        args.append("-print")
        return args


# =============================================================================
# External content search
# =============================================================================


class ContentBackend(ABC):
    """An external binary that searches file contents."""

    name: str
    binary: str

    @abstractmethod
    def build_args(self, query: ContentQuery, root: str, root_is_dir: bool) -> list[str]:
        ...

    def _mode_args(self, query: ContentQuery) -> list[str]:
        if query.mode == OutputMode.FILES:
            return ["-l"]
        if query.mode == OutputMode.COUNT:
            return ["-c"]
        args = ["-n"]
        if query.context_lines > 0:
            args.extend(["-C", str(query.context_lines)])
        return args

    def parse_matches(self, stdout: str) -> list[ContentMatch]:
        """Parse "path\\0line:text" (match) and "path\\0line-text" (context) lines."""
        matches = []
        for line in stdout.split("\n"):
            if "\0" not in line:
                continue
            path, rest = line.split("\0", 1)
            parsed = LINE_RE.match(rest)
            if parsed is None:
                continue
            number, separator, text = parsed.groups()
            matches.append(
                ContentMatch(
                    file=path,
                    line=int(number),
                    text=text.rstrip("\r"),
                    is_context=separator == "-",
                )
            )
        return matches

    def parse_files(self, stdout: str) -> list[str]:
        return [item.strip("\n") for item in stdout.split("\0") if item.strip("\n")]

    def parse_counts(self, stdout: str) -> list[FileCount]:
        counts = []
        for line in stdout.split("\n"):
            if "\0" not in line:
                continue
            path, count = line.rsplit("\0", 1)
            if count.strip().isdigit():
                counts.append(FileCount(file=path, count=int(count)))
        return counts


class RipgrepBackend(ContentBackend):
    """ripgrep; its own ignore handling is off so the shared filters decide."""

    name = "rg"
    binary = "rg"

    def build_args(self, query: ContentQuery, root: str, root_is_dir: bool) -> list[str]:
        args = ["--no-config", "--color", "never", "--no-heading", "--with-filename", "--null"]
        args.append("--no-ignore")
        if query.include_hidden:
            args.append("--hidden")
        else:
            args.extend(["-g", "!node_modules"])

        args.extend(self._mode_args(query))
        args.append("-i" if query.ignore_case else "--case-sensitive")

        if query.file_pattern:
            args.extend(["-g", query.file_pattern])
        if query.exclude:
            args.extend(["-g", f"!{query.exclude}"])
        if query.exclude_dir:
            args.extend(["-g", f"!{query.exclude_dir}/"])

        max_depth = query.effective_max_depth
        if root_is_dir and max_depth is not None:
            args.extend(["--max-depth", str(max(max_depth, 1))])
        if query.max_results:
            args.extend(["-m", str(query.max_results)])

        if not query.is_regex:
            args.append("--fixed-strings")
        args.extend(["-e", query.search_pattern, "--", root])
        return args


class GrepBackend(ContentBackend):
    """GNU/BSD grep; globs with braces are expanded since grep has none."""

    name = "grep"
    binary = "grep"

    def build_args(self, query: ContentQuery, root: str, root_is_dir: bool) -> list[str]:
        args = ["-H", "-I", "-Z", "--color=never"]
        if root_is_dir:
            args.append("-r")

        args.extend(self._mode_args(query))
        if query.ignore_case:
            args.append("-i")

        if query.file_pattern and "/" not in query.file_pattern:
            for pattern in expand_braces(query.file_pattern):
                args.extend(["--include", pattern])
        if query.exclude:
            for pattern in expand_braces(query.exclude):
                args.extend(["--exclude", pattern])
        if query.exclude_dir:
            args.extend(["--exclude-dir", query.exclude_dir])
        if root_is_dir and not query.include_hidden:
            if os.path.basename(root.rstrip("/")) not in DEFAULT_IGNORED_NAMES:
                for ignored in DEFAULT_IGNORED_NAMES:
                    args.extend(["--exclude-dir", ignored])

        if query.max_results:
            args.extend(["-m", str(query.max_results)])

        args.append("-E" if query.is_regex else "-F")
        args.extend(["-e", query.search_pattern, "--", root])
        return args
