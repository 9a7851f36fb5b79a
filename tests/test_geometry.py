"""Tests for canonical keys, stroke geometry and line estimation."""

import pytest

from penbridge.models import Stroke, YInterval
from penbridge.pipeline import (
    canonicalize,
    estimate_lines,
    estimate_stroke_ids,
    is_same_text,
    resolve_shared_strokes,
    strokes_overlapping,
)


class TestCanonicalize:
    """Tests for canonicalize."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Meeting Notes", "meetingnotes"),
            ("MEETING NOTES.", "meetingnotes"),
            ("  call   Alice! ", "callalice"),
            ("Item #3 (draft)", "item3draft"),
            ("", ""),
            (None, ""),
        ],
    )
    def test_keys(self, text, expected):
        assert canonicalize(text) == expected

    def test_is_same_text(self):
        assert is_same_text("Buy milk", "buy-milk")
        assert not is_same_text("Buy milk", "Buy oat milk")


class TestStrokesOverlapping:
    """Tests for the vertical overlap query."""

    def test_tolerance_expands_query(self, page, make_stroke):
        stroke = make_stroke(page, 1, 124, 130)

        assert strokes_overlapping([stroke], YInterval(min_y=100, max_y=120), tolerance=5)
        assert not strokes_overlapping([stroke], YInterval(min_y=100, max_y=120), tolerance=3)

    def test_deleted_excluded_by_default(self, page, make_stroke):
        stroke = make_stroke(page, 1, 102, 118)
        stroke.deleted = True
        query = YInterval(min_y=100, max_y=120)

        assert strokes_overlapping([stroke], query) == []
        assert strokes_overlapping([stroke], query, include_deleted=True) == [stroke]

    def test_pointless_strokes_never_match(self, page):
        empty = Stroke(id="s1", start_time=1, page=page)

        assert strokes_overlapping([empty], YInterval(min_y=0, max_y=1000)) == []


class TestEstimate:
    """Tests for line-to-stroke estimation."""

    def test_estimate_ids(self, three_line_strokes, three_lines):
        ids = estimate_stroke_ids(three_lines[1], three_line_strokes)

        assert ids == {"s1010", "s1011", "s1012"}

    def test_line_without_strokes(self, three_line_strokes, make_line):
        assert estimate_stroke_ids(make_line("Typed", 500, 520), three_line_strokes) == set()

    def test_estimate_lines(self, three_line_strokes, three_lines):
        estimated = estimate_lines(three_lines, three_line_strokes)

        assert [e.index for e in estimated] == [0, 1, 2]
        assert estimated[0].canonical == "meetingnotes"
        assert all(len(e.stroke_ids) == 3 for e in estimated)

    def test_shared_stroke_goes_to_larger_overlap(self, page, make_stroke, make_line):
        """A descender reaching into the next line stays with its own line."""
        lines = [make_line("Top", 100, 120), make_line("Bottom", 124, 144)]
        descender = make_stroke(page, 1, 105, 126)

        estimated = estimate_lines(lines, [descender], tolerance=5)

        assert estimated[0].stroke_ids == frozenset({"s1"})
        assert estimated[1].stroke_ids == frozenset()

    def test_non_exclusive_keeps_shared(self, page, make_stroke, make_line):
        lines = [make_line("Top", 100, 120), make_line("Bottom", 124, 144)]
        descender = make_stroke(page, 1, 105, 126)

        estimated = estimate_lines(lines, [descender], tolerance=5, exclusive=False)

        assert all(e.stroke_ids == frozenset({"s1"}) for e in estimated)

    def test_resolve_ties_to_lowest_index(self, page, make_stroke):
        intervals = [YInterval(min_y=0, max_y=10), YInterval(min_y=0, max_y=10)]
        stroke = make_stroke(page, 1, 2, 8)

        resolved = resolve_shared_strokes(intervals, [{"s1"}, {"s1"}], [stroke])

        assert resolved == [{"s1"}, set()]
