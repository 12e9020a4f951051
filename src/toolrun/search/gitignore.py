"""
.gitignore translation.

Lines of a .gitignore become globs relative to the directory holding
it. Negations are not supported and are skipped, as are lines that
do not form a valid glob.

Rules:
    /build    -> build, build/**
    build/    -> **/build/**
    build     -> **/build, **/build/**
"""

import os

from toolrun.errors import InvalidPatternError
from toolrun.search.patterns import glob_match, glob_to_regex

DEFAULT_IGNORE_PATTERNS = ("**/node_modules/**", "**/.git/**")


def parse_gitignore(content: str) -> list[str]:
    """Translate .gitignore content to a list of globs."""
    patterns: list[str] = []
    for raw in content.splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or line.startswith("!"):
            continue

        from_root = line.startswith("/")
        dir_only = line.endswith("/")
        pattern = line.strip("/")
        if not pattern or pattern == "**":
            continue

        try:
            glob_to_regex(pattern)
        except InvalidPatternError:
            continue

        if from_root:
            patterns.extend([pattern, f"{pattern}/**"])
        elif dir_only:
            patterns.append(f"**/{pattern}/**")
        else:
            patterns.extend([f"**/{pattern}", f"**/{pattern}/**"])
    return patterns


def read_gitignore_patterns(directory: str) -> list[str]:
    """
    Ignore globs for a search root.

    Always the defaults (node_modules, .git), plus whatever the
    directory's own .gitignore adds. A missing or unreadable file adds
    nothing.
    """
    patterns = list(DEFAULT_IGNORE_PATTERNS)
    try:
        with open(os.path.join(directory, ".gitignore"), encoding="utf-8") as f:
            content = f.read()
    except (OSError, UnicodeDecodeError):
        return patterns

    for pattern in parse_gitignore(content):
        if pattern not in patterns:
            patterns.append(pattern)
    return patterns


def is_ignored(relative_path: str, patterns: list[str]) -> bool:
    """
    Whether a root-relative path, or any directory above it, is ignored.

    Checking ancestors keeps post-filtering consistent with walkers that
    prune ignored directories.
    """
    parts = relative_path.split("/")
    for end in range(1, len(parts) + 1):
        prefix = "/".join(parts[:end])
        if any(glob_match(prefix, pattern) for pattern in patterns):
            return True
    return False
