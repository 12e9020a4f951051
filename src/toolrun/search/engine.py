"""
Search Engine for Toolrun.

The SearchEngine picks a backend for each query, falls back when the
preferred one is missing or fails, and merges multi-root results.

Selection:
    Name search
        1. Plain queries (name/type/depth/hidden) -> in-process walker
        2. Otherwise fd, if available and able to express the query
        3. Otherwise (or when fd fails) find
    Content search
        1. rg, if available
        2. Otherwise (or when rg fails) grep

A backend fails when its exit status is outside {0, 1} or it times
out. Only when the fallback fails too is the query reported as failed.

Design Principles:
    - Probe once: availability is cached per engine instance
    - Same answer: every backend's output passes the same post-filters
    - Deterministic: results are sorted before they are capped
"""

import asyncio
import os
from dataclasses import dataclass

from toolrun.errors import (
    InvalidPatternError,
    PathNotFoundError,
    SearchBackendError,
    ToolTimeoutError,
)
from toolrun.process import ProcessResult, ToolAvailabilityCache, run_process
from toolrun.schema import ProcessConfig, SearchConfig
from toolrun.search.backends import (
    ContentBackend,
    ExternalFindBackend,
    FdBackend,
    FindBackend,
    GlobBackend,
    GrepBackend,
    RipgrepBackend,
)
from toolrun.search.filters import ContentFilter, FindFilter, compile_name_filter
from toolrun.search.patterns import MAX_REGEX_PATTERN_LENGTH, is_unsafe_regex
from toolrun.search.query import (
    ContentMatch,
    ContentQuery,
    ContentResult,
    FileCount,
    FindEntry,
    FindQuery,
    FindResult,
    OutputMode,
)


@dataclass
class _Attempt:
    """Outcome of running one external backend."""

    backend: str
    result: ProcessResult


def smart_roots(cwd: str, home: str | None, parent_levels: int) -> list[str]:
    """
    Candidate roots for a search without an explicit root.

    cwd first, then up to parent_levels parents (never "/"), then home.
    Duplicates are dropped, keeping the first occurrence.
    """
    roots: list[str] = []

    def add(path: str) -> None:
        if path and path not in roots:
            roots.append(path)

    current = os.path.normpath(cwd)
    add(current)
    for _ in range(parent_levels):
        parent = os.path.dirname(current)
        if not parent or parent == current or parent == "/":
            break
        add(parent)
        current = parent
    if home:
        add(os.path.normpath(home))
    return roots


class SearchEngine:
    """
    Runs find and content queries.

    Usage:
        engine = SearchEngine(SearchConfig(), ProcessConfig())
        result = await engine.find(FindQuery(root="/repo", name="*.py"), cwd="/repo")
        result = await engine.search_content(ContentQuery(pattern="TODO", root="/repo"))

    Attributes:
        availability: Probe cache for external binaries
    """

    def __init__(
        self,
        search_config: SearchConfig | None = None,
        process_config: ProcessConfig | None = None,
        availability: ToolAvailabilityCache | None = None,
    ) -> None:
        self.config = search_config or SearchConfig()
        self.process_config = process_config or ProcessConfig()
        self.availability = availability or ToolAvailabilityCache(
            probe_timeout=self.process_config.probe_timeout_seconds
        )
        self.glob_backend = GlobBackend()
        self.find_backends: list[ExternalFindBackend] = [FdBackend(), FindBackend()]
        self.content_backends: list[ContentBackend] = [RipgrepBackend(), GrepBackend()]

    # -------------------------------------------------------------------------
    # Limits
    # -------------------------------------------------------------------------

    def effective_max_results(self, requested: int | None) -> int:
        """Requested cap, or the default, never above the hard cap."""
        wanted = requested if requested and requested > 0 else self.config.default_max_results
        return min(wanted, self.config.hard_max_results)

    def effective_max_depth(self, requested: int | None) -> int:
        """Requested depth, or the default; 0 is treated as 1."""
        depth = self.config.default_max_depth if requested is None else requested
        return max(depth, 1)

    # -------------------------------------------------------------------------
    # Name search
    # -------------------------------------------------------------------------

    async def find(self, query: FindQuery, cwd: str, home: str | None = None) -> FindResult:
        """
        Run a name search.

        With query.root set, only that root is searched. Otherwise the
        smart roots are scanned concurrently and merged in order until
        enough results are gathered.

        Raises:
            InvalidPatternError: If the name regex is unsafe or malformed
            SearchBackendError: If every eligible backend failed
            ToolTimeoutError: If the last eligible backend timed out
        """
        compile_name_filter(query.name, query.case_sensitive)
        max_results = self.effective_max_results(query.max_results)

        if query.root is not None:
            roots = [query.root]
            smart = False
        else:
            if home is None:
                home = os.path.expanduser("~")
            roots = smart_roots(cwd, home, self.config.parent_levels)
            smart = True

        scans = await asyncio.gather(*(self._find_in_root(query, root) for root in roots))

        threshold = min(max_results / 2, self.config.smart_min_results)
        merged: list[FindEntry] = []
        seen: set[str] = set()
        backends: list[str] = []
        for entries, backend in scans:
            if backend not in backends:
                backends.append(backend)
            for entry in entries:
                if entry.path not in seen:
                    seen.add(entry.path)
                    merged.append(entry)
            if smart and len(merged) >= threshold:
                break

        merged.sort(key=lambda e: (-e.mtime, e.path))
        return FindResult(
            entries=merged[:max_results],
            backend=",".join(backends),
            roots=roots,
            total_found=len(merged),
        )

    async def _find_in_root(self, query: FindQuery, root: str) -> tuple[list[FindEntry], str]:
        if not os.path.isdir(root):
            if query.root is not None:
                raise PathNotFoundError(path=root, message=f"Not a directory: {root}")
            return [], self.glob_backend.name

        max_depth = self.effective_max_depth(query.max_depth)
        entry_filter = FindFilter(query, root, max_depth)

        if not query.needs_external:
            entries = await asyncio.to_thread(self.glob_backend.walk, root, entry_filter)
            return entries, self.glob_backend.name

        attempts: list[_Attempt] = []
        for backend in self.find_backends:
            if not backend.supports(query):
                continue
            if not await self.availability.is_available(backend.binary):
                continue
            result = await run_process(
                backend.binary,
                backend.build_args(query, root, max_depth),
                cwd=root,
                timeout=self.process_config.timeout_seconds,
            )
            if result.ok:
                paths = backend.parse_paths(result.stdout)
                entries = await asyncio.to_thread(_accept_all, entry_filter, paths)
                return entries, backend.name
            attempts.append(_Attempt(backend.name, result))

        raise self._failure(attempts, [b.binary for b in self.find_backends])

    # -------------------------------------------------------------------------
    # Content search
    # -------------------------------------------------------------------------

    async def search_content(self, query: ContentQuery) -> ContentResult:
        """
        Run a content search.

        Raises:
            InvalidPatternError: If a regex pattern risks catastrophic backtracking
            PathNotFoundError: If the root does not exist
            SearchBackendError: If rg and grep both failed or are missing
            ToolTimeoutError: If the last eligible backend timed out
        """
        if query.is_regex and is_unsafe_regex(query.search_pattern):
            raise InvalidPatternError(
                pattern=query.search_pattern,
                reason=(
                    "nested quantifiers or longer than "
                    f"{MAX_REGEX_PATTERN_LENGTH} characters"
                ),
            )

        root = query.root
        if not os.path.lexists(root):
            raise PathNotFoundError(path=root)
        root_is_dir = os.path.isdir(root)
        cwd = root if root_is_dir else os.path.dirname(root) or "."
        max_results = self.effective_max_results(query.max_results)
        content_filter = ContentFilter(query, root, root_is_dir)

        attempts: list[_Attempt] = []
        for backend in self.content_backends:
            if not await self.availability.is_available(backend.binary):
                continue
            result = await run_process(
                backend.binary,
                backend.build_args(query, root, root_is_dir),
                cwd=cwd,
                timeout=self.process_config.timeout_seconds,
            )
            if result.ok:
                return self._collect(query, backend, result.stdout, content_filter, max_results)
            attempts.append(_Attempt(backend.name, result))

        raise self._failure(attempts, [b.binary for b in self.content_backends])

    def _collect(
        self,
        query: ContentQuery,
        backend: ContentBackend,
        stdout: str,
        content_filter: ContentFilter,
        max_results: int,
    ) -> ContentResult:
        out = ContentResult(mode=query.mode, backend=backend.name)

        if query.mode == OutputMode.FILES:
            files = sorted({f for f in backend.parse_files(stdout) if content_filter.accept_file(f)})
            out.files = files[:max_results]
            out.total_found = len(files)
            return out

        if query.mode == OutputMode.COUNT:
            counts: dict[str, int] = {}
            for item in backend.parse_counts(stdout):
                if item.count > 0 and content_filter.accept_file(item.file):
                    counts[item.file] = item.count
            ordered = [FileCount(file=f, count=counts[f]) for f in sorted(counts)]
            out.counts = ordered[:max_results]
            out.total_found = len(ordered)
            return out

        by_key: dict[tuple[str, int], ContentMatch] = {}
        for match in backend.parse_matches(stdout):
            if not content_filter.accept_file(match.file):
                continue
            key = (match.file, match.line)
            existing = by_key.get(key)
            # A line reported both as context and as a match is a match
            if existing is None or (existing.is_context and not match.is_context):
                by_key[key] = match
        matches = [by_key[key] for key in sorted(by_key)]
        out.matches = matches[:max_results]
        out.total_found = len(matches)
        return out

    # -------------------------------------------------------------------------
    # Failures
    # -------------------------------------------------------------------------

    def _failure(self, attempts: list[_Attempt], binaries: list[str]) -> Exception:
        if not attempts:
            return SearchBackendError(
                backend=binaries[-1],
                exit_code=127,
                stderr="not available",
                message=f"No search backend available (tried: {', '.join(binaries)})",
                suggestion=f"Install one of: {', '.join(binaries)}",
            )
        last = attempts[-1]
        if last.result.timed_out:
            return ToolTimeoutError(
                tool=last.backend,
                timeout_seconds=self.process_config.timeout_seconds,
            )
        return SearchBackendError(
            backend=last.backend,
            exit_code=last.result.exit_code,
            stderr=last.result.stderr,
        )

    async def probe(self, binaries: list[str]) -> dict[str, bool]:
        """Availability of each binary (probing as needed)."""
        return {name: await self.availability.is_available(name) for name in binaries}


def _accept_all(entry_filter: FindFilter, paths: list[str]) -> list[FindEntry]:
    entries = []
    for path in paths:
        entry = entry_filter.accept(path)
        if entry is not None:
            entries.append(entry)
    return entries
