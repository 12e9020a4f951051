"""
Pattern helpers shared by the edit and search engines.

- Filter patterns: a plain string is a substring; "re:<regex>" is a regex
- Regex safety: reject patterns prone to catastrophic backtracking
- Globs: translated to Python regexes, with **, {a,b} and [...] support
"""

import re
from dataclasses import dataclass
from functools import lru_cache

from toolrun.errors import InvalidPatternError

REGEX_PREFIX = "re:"

# Longer user regexes are rejected outright
MAX_REGEX_PATTERN_LENGTH = 1000

GLOB_CHARS = frozenset("*?[{")


def is_unsafe_regex(pattern: str) -> bool:
    """
    Detect regexes likely to backtrack catastrophically.

    Rejects patterns over MAX_REGEX_PATTERN_LENGTH characters and groups
    that contain a quantifier and are themselves quantified, such as
    (a+)+, (a*)* or (a|b+){2,}.
    """
    if len(pattern) > MAX_REGEX_PATTERN_LENGTH:
        return True

    quantified_inside: list[bool] = []
    in_class = False
    escaped = False

    for i, ch in enumerate(pattern):
        if escaped:
            escaped = False
            continue
        if ch == "\\":
            escaped = True
            continue
        if in_class:
            if ch == "]":
                in_class = False
            continue
        if ch == "[":
            in_class = True
            continue

        if ch == "(":
            quantified_inside.append(False)
        elif ch == ")":
            if not quantified_inside:
                continue
            inner = quantified_inside.pop()
            next_ch = pattern[i + 1] if i + 1 < len(pattern) else ""
            if inner and next_ch in ("+", "*", "{"):
                return True
            # A quantified group makes its enclosing group quantified too
            if inner and quantified_inside:
                quantified_inside[-1] = True
        elif ch in ("+", "*", "{") and quantified_inside:
            quantified_inside[-1] = True

    return False


@dataclass(frozen=True)
class FilterPattern:
    """
    A normalized user pattern.

    Attributes:
        kind: "substring" or "regex"
        value: The literal (substring) or regex source
        regex: Compiled regex when kind is "regex"
        error: Why a requested regex was rejected, if it was
    """

    kind: str
    value: str
    regex: re.Pattern[str] | None = None
    error: str | None = None

    @property
    def is_regex(self) -> bool:
        return self.kind == "regex"


def normalize_filter_pattern(pattern: str, flags: int = 0, strip: bool = True) -> FilterPattern:
    """
    Interpret a user pattern.

    "re:<regex>" compiles the regex (after the safety check); anything
    else is a literal substring. A rejected regex comes back as a
    substring pattern with error set, so callers can report it.

    Args:
        pattern: Raw pattern
        flags: re flags for the compiled regex
        strip: Trim surrounding whitespace first
    """
    text = pattern.strip() if strip else pattern
    if not text.startswith(REGEX_PREFIX):
        return FilterPattern(kind="substring", value=text)

    body = text[len(REGEX_PREFIX):]
    if is_unsafe_regex(body):
        return FilterPattern(
            kind="substring",
            value=body,
            error=(
                f"Regex {body!r} rejected: contains nested quantifiers that risk "
                "catastrophic backtracking. Use a literal string or simplify the pattern."
            ),
        )
    try:
        compiled = re.compile(body, flags)
    except re.error as e:
        return FilterPattern(kind="substring", value=body, error=f"Invalid regex {body!r}: {e}")
    return FilterPattern(kind="regex", value=body, regex=compiled)


# =============================================================================
# Globs
# =============================================================================


def has_glob_chars(text: str) -> bool:
    """Whether text contains glob metacharacters."""
    return any(ch in GLOB_CHARS for ch in text)


def _split_braces(body: str) -> list[str]:
    """Split the inside of {...} on top-level commas."""
    parts = []
    depth = 0
    current = []
    for ch in body:
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
        if ch == "," and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    parts.append("".join(current))
    return parts


def _find_closing(glob: str, start: int, open_ch: str, close_ch: str) -> int:
    depth = 0
    for i in range(start, len(glob)):
        if glob[i] == open_ch:
            depth += 1
        elif glob[i] == close_ch:
            depth -= 1
            if depth == 0:
                return i
    return -1


def expand_braces(glob: str) -> list[str]:
    """
    Expand {a,b} alternatives into separate globs.

    "*.{js,ts}" -> ["*.js", "*.ts"]
    """
    start = glob.find("{")
    if start == -1:
        return [glob]
    end = _find_closing(glob, start, "{", "}")
    if end == -1:
        return [glob]
    prefix, body, suffix = glob[:start], glob[start + 1 : end], glob[end + 1 :]
    expanded = []
    for option in _split_braces(body):
        expanded.extend(expand_braces(prefix + option + suffix))
    return expanded


def _translate(glob: str) -> str:
    out = []
    i = 0
    n = len(glob)
    while i < n:
        ch = glob[i]
        if ch == "*":
            if glob.startswith("**", i):
                at_segment_start = i == 0 or glob[i - 1] == "/"
                if at_segment_start and glob.startswith("**/", i):
                    out.append("(?:.*/)?")
                    i += 3
                    continue
                if at_segment_start and i + 2 == n:
                    out.append(".*")
                    i += 2
                    continue
                out.append(".*")
                i += 2
                continue
            out.append("[^/]*")
        elif ch == "?":
            out.append("[^/]")
        elif ch == "/" and glob.startswith("/**", i) and i + 3 == n:
            out.append("(?:/.*)?")
            i += 3
            continue
        elif ch == "[":
            j = i + 1
            if glob[j : j + 1] in ("!", "^"):
                j += 1
            # "]" right after "[" or "[!" is a literal member
            if glob[j : j + 1] == "]":
                j += 1
            end = glob.find("]", j)
            if end == -1:
                out.append(re.escape(ch))
            else:
                body = glob[i + 1 : end]
                negate = body[:1] in ("!", "^")
                if negate:
                    body = body[1:]
                body = "".join("\\" + c if c in "\\[]^" else c for c in body)
                out.append("[" + ("^" if negate else "") + body + "]")
                i = end + 1
                continue
        elif ch == "{":
            end = _find_closing(glob, i, "{", "}")
            if end == -1:
                out.append(re.escape(ch))
            else:
                options = _split_braces(glob[i + 1 : end])
                out.append("(?:" + "|".join(_translate(o) for o in options) + ")")
                i = end + 1
                continue
        else:
            out.append(re.escape(ch))
        i += 1
    return "".join(out)


@lru_cache(maxsize=512)
def glob_to_regex(glob: str, case_sensitive: bool = True) -> re.Pattern[str]:
    """
    Compile a glob to an anchored regex.

    "*" and "?" stay within one path segment; "**" spans segments;
    a leading "**/" also matches nothing and a trailing "/**" also
    matches the directory itself.

    Raises:
        InvalidPatternError: If the glob translates to an invalid regex,
            such as a reversed range "[z-a]"
    """
    flags = 0 if case_sensitive else re.IGNORECASE
    try:
        return re.compile(r"\A" + _translate(glob) + r"\Z", flags)
    except re.error as e:
        raise InvalidPatternError(pattern=glob, reason=f"invalid glob: {e}") from e


def glob_match(path: str, glob: str, case_sensitive: bool = True) -> bool:
    """Whether a slash-separated path matches a glob."""
    return glob_to_regex(glob, case_sensitive).match(path) is not None
