"""
Unit tests for the edit operation engine.

Tests cover:
- Each operation type
- Sequential application and batch atomicity
- Pattern scanning (literal, regex, zero-width, iteration ceiling)
- Operation model validation
- Diff generation and edit descriptions
"""

import pytest
from pydantic import TypeAdapter, ValidationError

from toolrun.editing import (
    DeleteLinesEdit,
    EditOperation,
    InsertEdit,
    ReplaceLinesEdit,
    ReplacePatternEdit,
    apply_edits,
    describe_edit,
    find_pattern_spans,
    generate_diff,
    join_lines,
    split_lines,
)
from toolrun.errors import (
    InsertPositionError,
    InvalidPatternError,
    IterationLimitError,
    LineRangeError,
    PatternNotFoundError,
)

OPERATION = TypeAdapter(EditOperation)


def replace_lines(start: int, end: int, content: str) -> ReplaceLinesEdit:
    return ReplaceLinesEdit(type="replace_lines", start_line=start, end_line=end, content=content)


def delete_lines(start: int, end: int) -> DeleteLinesEdit:
    return DeleteLinesEdit(type="delete_lines", start_line=start, end_line=end)


def insert(line: int, content: str) -> InsertEdit:
    return InsertEdit(type="insert", line=line, content=content)


def replace_pattern(pattern: str, replacement: str, count: int = 1) -> ReplacePatternEdit:
    return ReplacePatternEdit(
        type="replace_pattern", pattern=pattern, replacement=replacement, count=count
    )


@pytest.fixture
def lines() -> list[str]:
    return ["alpha", "beta", "gamma", "delta"]


# =============================================================================
# Operations
# =============================================================================


class TestLineOperations:
    """replace_lines, delete_lines and insert."""

    def test_replace_lines(self, lines: list[str]) -> None:
        outcome = apply_edits(lines, [replace_lines(2, 3, "B\nC\nC2")])
        assert outcome.lines == ["alpha", "B", "C", "C2", "delta"]
        assert outcome.applied == ["Replaced lines 2-3 with 3 line(s)"]

    def test_delete_lines(self, lines: list[str]) -> None:
        outcome = apply_edits(lines, [delete_lines(1, 2)])
        assert outcome.lines == ["gamma", "delta"]

    def test_insert_at_start(self, lines: list[str]) -> None:
        outcome = apply_edits(lines, [insert(0, "header")])
        assert outcome.lines[0] == "header"

    def test_insert_at_end(self, lines: list[str]) -> None:
        outcome = apply_edits(lines, [insert(4, "footer")])
        assert outcome.lines[-1] == "footer"

    def test_range_out_of_bounds(self, lines: list[str]) -> None:
        with pytest.raises(LineRangeError) as exc_info:
            apply_edits(lines, [replace_lines(4, 5, "x")])
        assert exc_info.value.line_count == 4

    def test_insert_out_of_bounds(self, lines: list[str]) -> None:
        with pytest.raises(InsertPositionError):
            apply_edits(lines, [insert(5, "x")])


class TestReplacePattern:
    """replace_pattern with literals and regexes."""

    def test_literal_first_occurrence(self) -> None:
        outcome = apply_edits(["a.b a.b"], [replace_pattern("a.b", "X")])
        assert outcome.lines == ["X a.b"]
        assert outcome.replacements == 1

    def test_literal_is_not_regex(self) -> None:
        """A plain pattern matches its characters literally."""
        with pytest.raises(PatternNotFoundError):
            apply_edits(["axb"], [replace_pattern("a.b", "X")])

    def test_all_occurrences(self) -> None:
        outcome = apply_edits(["x x", "x"], [replace_pattern("x", "y", count=-1)])
        assert outcome.lines == ["y y", "y"]
        assert outcome.replacements == 3

    def test_regex_anchors_per_line(self) -> None:
        """^ and $ anchor at line boundaries."""
        outcome = apply_edits(
            ["foo", "bar", "foo", "foobar"], [replace_pattern("re:^foo$", "baz", count=-1)]
        )
        assert outcome.lines == ["baz", "bar", "baz", "foobar"]
        assert outcome.replacements == 2

    def test_replacement_is_literal(self) -> None:
        r"""Backreferences like \1 are not expanded."""
        outcome = apply_edits(["foo"], [replace_pattern("re:(o+)", r"\1")])
        assert outcome.lines == [r"f\1"]

    def test_multiline_literal(self) -> None:
        outcome = apply_edits(["a", "b", "c"], [replace_pattern("a\nb", "ab")])
        assert outcome.lines == ["ab", "c"]

    def test_not_found(self) -> None:
        with pytest.raises(PatternNotFoundError) as exc_info:
            apply_edits(["abc"], [replace_pattern("zzz", "y")])
        assert exc_info.value.pattern == "zzz"

    def test_unsafe_regex_rejected(self) -> None:
        with pytest.raises(InvalidPatternError) as exc_info:
            apply_edits(["aaaa"], [replace_pattern("re:(a+)+", "b")])
        assert "nested quantifiers" in exc_info.value.reason

    def test_malformed_regex_rejected(self) -> None:
        with pytest.raises(InvalidPatternError):
            apply_edits(["abc"], [replace_pattern("re:(abc", "b")])


class TestFindPatternSpans:
    """Scanning rules."""

    def test_zero_width_matches_advance(self) -> None:
        """A zero-width match advances by one character."""
        spans = find_pattern_spans("a\nb", "re:^", -1)
        assert spans == [(0, 0), (2, 2)]

    def test_count_limits_matches(self) -> None:
        assert len(find_pattern_spans("xxxx", "x", 2)) == 2

    def test_iteration_ceiling(self) -> None:
        with pytest.raises(IterationLimitError) as exc_info:
            find_pattern_spans("a" * 10, "a", -1, max_iterations=3)
        assert exc_info.value.limit == 3

    def test_empty_literal_rejected(self) -> None:
        with pytest.raises(InvalidPatternError):
            find_pattern_spans("abc", "", -1)

    def test_whitespace_is_significant(self) -> None:
        """Edit patterns are not trimmed."""
        assert find_pattern_spans("a  b", "  ", -1) == [(1, 3)]


# =============================================================================
# Batches
# =============================================================================


class TestBatches:
    """Sequential application and atomicity."""

    def test_sequential(self, lines: list[str]) -> None:
        """Later operations see the effect of earlier ones."""
        outcome = apply_edits(
            lines,
            [insert(0, "zero"), replace_lines(1, 1, "ZERO"), delete_lines(5, 5)],
        )
        assert outcome.lines == ["ZERO", "alpha", "beta", "gamma"]
        assert len(outcome.applied) == 3

    def test_input_not_modified(self, lines: list[str]) -> None:
        apply_edits(lines, [delete_lines(1, 4)])
        assert lines == ["alpha", "beta", "gamma", "delta"]

    def test_failure_reports_index(self, lines: list[str]) -> None:
        """The first failing operation aborts the batch with its position."""
        original = list(lines)
        with pytest.raises(PatternNotFoundError) as exc_info:
            apply_edits(
                lines,
                [replace_lines(1, 1, "A"), replace_pattern("nope", "x"), delete_lines(1, 1)],
            )
        assert exc_info.value.operation_index == 1
        assert exc_info.value.message.startswith("Edit #2 failed: ")
        assert lines == original

    def test_bounds_use_current_lines(self, lines: list[str]) -> None:
        """Bounds are checked after earlier deletions."""
        with pytest.raises(LineRangeError) as exc_info:
            apply_edits(lines, [delete_lines(1, 2), replace_lines(3, 3, "x")])
        assert exc_info.value.operation_index == 1
        assert exc_info.value.line_count == 2

    def test_replacements_accumulate(self) -> None:
        outcome = apply_edits(
            ["a a", "b"],
            [replace_pattern("a", "c", count=-1), replace_pattern("b", "d")],
        )
        assert outcome.replacements == 3


# =============================================================================
# Models
# =============================================================================


class TestOperationModels:
    """Wire parsing and validation."""

    def test_discriminated_by_type(self) -> None:
        edit = OPERATION.validate_python(
            {"type": "replace_lines", "startLine": 1, "endLine": 2, "content": "x"}
        )
        assert isinstance(edit, ReplaceLinesEdit)
        assert edit.end_line == 2

    def test_pattern_default_count(self) -> None:
        edit = OPERATION.validate_python(
            {"type": "replace_pattern", "pattern": "a", "replacement": "b"}
        )
        assert edit.count == 1

    def test_unknown_type(self) -> None:
        with pytest.raises(ValidationError):
            OPERATION.validate_python({"type": "rename", "line": 1})

    def test_inverted_range(self) -> None:
        with pytest.raises(ValidationError):
            OPERATION.validate_python({"type": "delete_lines", "startLine": 3, "endLine": 2})

    def test_zero_line_rejected(self) -> None:
        with pytest.raises(ValidationError):
            OPERATION.validate_python({"type": "delete_lines", "startLine": 0, "endLine": 2})

    @pytest.mark.parametrize("count", [0, -2])
    def test_invalid_count(self, count: int) -> None:
        with pytest.raises(ValidationError):
            OPERATION.validate_python(
                {"type": "replace_pattern", "pattern": "a", "replacement": "b", "count": count}
            )

    def test_extra_field(self) -> None:
        with pytest.raises(ValidationError):
            OPERATION.validate_python({"type": "insert", "line": 0, "content": "x", "at": 1})


# =============================================================================
# Presentation
# =============================================================================


class TestPresentation:
    """Line splitting, descriptions and diffs."""

    def test_split_keeps_trailing_empty_line(self) -> None:
        assert split_lines("a\nb\n") == ["a", "b", ""]
        assert join_lines(split_lines("a\nb\n")) == "a\nb\n"

    def test_describe_edit(self) -> None:
        assert describe_edit(delete_lines(2, 3), 0) == "  1. Delete lines 2-3"
        assert "all occurrences" in describe_edit(replace_pattern("a", "b", -1), 1)
        assert "first occurrence" in describe_edit(replace_pattern("a", "b"), 1)
        assert "(2 lines)" in describe_edit(insert(0, "x\ny"), 2)

    def test_diff(self) -> None:
        diff = generate_diff("a\nb\n", "a\nc\n", "/tmp/f.txt")
        assert diff.startswith("--- a/tmp/f.txt\n+++ b/tmp/f.txt")
        assert "-b" in diff
        assert "+c" in diff

    def test_diff_no_change(self) -> None:
        assert generate_diff("same", "same", "f") == ""

    def test_diff_truncated(self) -> None:
        original = "\n".join(str(i) for i in range(50))
        diff = generate_diff(original, "", "f", max_lines=5)
        assert diff.splitlines()[-1].startswith("... (")
        assert len(diff.splitlines()) == 6
