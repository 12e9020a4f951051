"""
Unit tests for pattern helpers and .gitignore translation.

Tests cover:
- Regex safety checks
- Filter pattern normalization
- Glob translation and brace expansion
- .gitignore parsing and ignore checks
"""

from pathlib import Path

import pytest

from toolrun.errors import InvalidPatternError
from toolrun.search.gitignore import (
    DEFAULT_IGNORE_PATTERNS,
    is_ignored,
    parse_gitignore,
    read_gitignore_patterns,
)
from toolrun.search.patterns import (
    MAX_REGEX_PATTERN_LENGTH,
    expand_braces,
    glob_match,
    glob_to_regex,
    has_glob_chars,
    is_unsafe_regex,
    normalize_filter_pattern,
)

# =============================================================================
# Regex safety
# =============================================================================


class TestUnsafeRegex:
    """Tests for is_unsafe_regex."""

    @pytest.mark.parametrize("pattern", ["(a+)+", "(a*)*", "(a|b+){2,}", "((a+)b)+"])
    def test_nested_quantifiers(self, pattern: str) -> None:
        assert is_unsafe_regex(pattern) is True

    @pytest.mark.parametrize("pattern", ["a+b+", "(ab)+", "(a+)", r"\(a+\)+", "[(a+)]+"])
    def test_safe(self, pattern: str) -> None:
        assert is_unsafe_regex(pattern) is False

    def test_too_long(self) -> None:
        assert is_unsafe_regex("a" * (MAX_REGEX_PATTERN_LENGTH + 1)) is True


class TestNormalizeFilterPattern:
    """Tests for normalize_filter_pattern."""

    def test_plain_is_substring(self) -> None:
        normalized = normalize_filter_pattern("  foo.bar ")
        assert normalized.kind == "substring"
        assert normalized.value == "foo.bar"
        assert normalized.regex is None

    def test_regex_prefix(self) -> None:
        normalized = normalize_filter_pattern("re:fo+")
        assert normalized.is_regex
        assert normalized.regex.search("xfoo")

    def test_unsafe_regex_reports_error(self) -> None:
        normalized = normalize_filter_pattern("re:(a+)+")
        assert not normalized.is_regex
        assert "nested quantifiers" in normalized.error

    def test_invalid_regex_reports_error(self) -> None:
        normalized = normalize_filter_pattern("re:(")
        assert normalized.error.startswith("Invalid regex")

    def test_no_strip(self) -> None:
        assert normalize_filter_pattern(" a ", strip=False).value == " a "


# =============================================================================
# Globs
# =============================================================================


class TestGlobs:
    """Tests for glob matching."""

    @pytest.mark.parametrize(
        ("path", "glob", "expected"),
        [
            ("main.py", "*.py", True),
            ("src/main.py", "*.py", False),
            ("src/main.py", "**/*.py", True),
            ("main.py", "**/*.py", True),
            ("src/a/b/c.py", "src/**/*.py", True),
            ("src", "src/**", True),
            ("src/x", "src/**", True),
            ("a.ts", "*.{js,ts}", True),
            ("a.rs", "*.{js,ts}", False),
            ("file1.txt", "file?.txt", True),
            ("file10.txt", "file?.txt", False),
            ("a.py", "[abc].py", True),
            ("d.py", "[!abc].py", True),
            ("a.py", "[!abc].py", False),
            ("a+b.txt", "a+b.txt", True),
        ],
    )
    def test_glob_match(self, path: str, glob: str, expected: bool) -> None:
        assert glob_match(path, glob) is expected

    def test_case_insensitive(self) -> None:
        assert glob_match("README.MD", "*.md", case_sensitive=False)
        assert not glob_match("README.MD", "*.md")

    def test_expand_braces(self) -> None:
        assert expand_braces("*.{js,ts}") == ["*.js", "*.ts"]
        assert expand_braces("{a,{b,c}}") == ["a", "b", "c"]
        assert expand_braces("plain") == ["plain"]

    def test_has_glob_chars(self) -> None:
        assert has_glob_chars("*.py")
        assert has_glob_chars("{a,b}")
        assert not has_glob_chars("main.py")

    @pytest.mark.parametrize(
        ("path", "glob", "expected"),
        [
            ("a[]b", "a[]b", True),
            ("a]b", "a[]]b", True),
            ("a-b", "a[]-]b", True),
            ("x", "[!]]", True),
            ("]", "[!]]", False),
            ("a\\b", "a[\\]b", True),
        ],
    )
    def test_close_bracket_first_is_literal(self, path: str, glob: str, expected: bool) -> None:
        """A "]" right after "[" or "[!" is a class member, as in fnmatch."""
        assert glob_match(path, glob) is expected

    def test_invalid_glob_raises(self) -> None:
        with pytest.raises(InvalidPatternError) as exc_info:
            glob_to_regex("[z-a]")
        assert exc_info.value.kind == "invalid_pattern"
        assert exc_info.value.pattern == "[z-a]"


# =============================================================================
# .gitignore
# =============================================================================


class TestGitignore:
    """Tests for .gitignore translation."""

    def test_parse(self) -> None:
        content = "# comment\n\n/build\ndist/\n*.log\n!keep.log\n"
        assert parse_gitignore(content) == [
            "build",
            "build/**",
            "**/dist/**",
            "**/*.log",
            "**/*.log/**",
        ]

    def test_parse_skips_bare_globstar(self) -> None:
        assert parse_gitignore("/\n**\n") == []

    def test_parse_skips_invalid_globs(self) -> None:
        assert parse_gitignore("[z-a]\nbuild\n") == ["**/build", "**/build/**"]

    def test_empty_brackets_ignore_nothing_else(self) -> None:
        patterns = parse_gitignore("[]\n")
        assert not is_ignored("src/app.py", patterns)
        assert is_ignored("[]", patterns)

    def test_read_without_file(self, temp_dir: Path) -> None:
        assert read_gitignore_patterns(str(temp_dir)) == list(DEFAULT_IGNORE_PATTERNS)

    def test_read_with_file(self, temp_dir: Path) -> None:
        (temp_dir / ".gitignore").write_text("node_modules/\n*.tmp\n")
        patterns = read_gitignore_patterns(str(temp_dir))
        assert patterns[:2] == list(DEFAULT_IGNORE_PATTERNS)
        assert "**/*.tmp" in patterns
        assert patterns.count("**/node_modules/**") == 1

    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("node_modules/pkg.js", True),
            ("web/node_modules/a/b.js", True),
            ("a/.git/config", True),
            ("src/app.py", False),
        ],
    )
    def test_defaults(self, path: str, expected: bool) -> None:
        assert is_ignored(path, list(DEFAULT_IGNORE_PATTERNS)) is expected

    def test_root_anchored(self) -> None:
        patterns = parse_gitignore("/build\n")
        assert is_ignored("build/out/x.o", patterns)
        assert not is_ignored("src/build", patterns)

    def test_ancestor_directory(self) -> None:
        """Files under an ignored directory are ignored."""
        assert is_ignored("logs/today/app.txt", parse_gitignore("logs\n"))
