"""
Search module for Toolrun.

Name and content search over local directory trees, backed by an
in-process walker and the fd/find and rg/grep binaries.
"""

from toolrun.search.engine import SearchEngine, smart_roots
from toolrun.search.gitignore import (
    DEFAULT_IGNORE_PATTERNS,
    parse_gitignore,
    read_gitignore_patterns,
)
from toolrun.search.patterns import (
    glob_match,
    glob_to_regex,
    is_unsafe_regex,
    normalize_filter_pattern,
)
from toolrun.search.query import (
    ContentQuery,
    ContentResult,
    EntryType,
    FindQuery,
    FindResult,
    MtimeFilter,
    OutputMode,
    SizeFilter,
)

__all__ = [
    "DEFAULT_IGNORE_PATTERNS",
    "ContentQuery",
    "ContentResult",
    "EntryType",
    "FindQuery",
    "FindResult",
    "MtimeFilter",
    "OutputMode",
    "SearchEngine",
    "SizeFilter",
    "glob_match",
    "glob_to_regex",
    "is_unsafe_regex",
    "normalize_filter_pattern",
    "parse_gitignore",
    "read_gitignore_patterns",
    "smart_roots",
]
