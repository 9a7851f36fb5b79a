"""Tests for the change-set calculator."""

from penbridge.models import PageRef
from penbridge.pipeline import compute_change_set, compute_changes_by_page, summarize_changes


class TestComputeChangeSet:
    """Tests for compute_change_set."""

    def test_unsaved_page(self, page, three_line_strokes):
        change = compute_change_set(three_line_strokes, page, None)

        assert len(change.additions) == 9
        assert change.deletions == []
        assert not change.is_saved

    def test_additions_and_deletions(self, page, three_line_strokes):
        persisted = {s.id for s in three_line_strokes[:6]}
        three_line_strokes[0].deleted = True

        change = compute_change_set(three_line_strokes, page, persisted)

        assert change.additions == ["s1020", "s1021", "s1022"]
        assert change.deletions == ["s1000"]
        assert change.is_saved
        assert change.total == 4

    def test_deleted_unsaved_stroke_is_not_a_change(self, page, make_stroke):
        stroke = make_stroke(page, 1, 0, 10)
        stroke.deleted = True

        assert not compute_change_set([stroke], page, set()).has_changes

    def test_other_pages_ignored(self, page, make_stroke):
        other = make_stroke(PageRef(book=1, page=1), 1, 0, 10)

        assert not compute_change_set([other], page, None).has_changes


class TestChangesByPage:
    """Tests for per-page grouping and totals."""

    def test_only_changed_pages(self, page, three_line_strokes, make_stroke):
        other_page = PageRef(book=1, page=7)
        strokes = three_line_strokes + [make_stroke(other_page, 5, 0, 10)]
        persisted = {page: {s.id for s in three_line_strokes}}

        changes = compute_changes_by_page(strokes, persisted)

        assert [c.page for c in changes] == [other_page]

    def test_summary(self, page, three_line_strokes, make_stroke):
        other_page = PageRef(book=1, page=7)
        three_line_strokes[0].deleted = True
        strokes = three_line_strokes + [make_stroke(other_page, 5, 0, 10)]
        persisted = {page: {s.id for s in three_line_strokes}}

        summary = summarize_changes(compute_changes_by_page(strokes, persisted))

        assert summary.pages_with_changes == 2
        assert summary.total_additions == 1
        assert summary.total_deletions == 1
