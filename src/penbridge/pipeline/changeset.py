"""Change-Set Calculator - net stroke changes per page for save confirmation.

Compares the in-memory stroke collection with each page's persisted
snapshot by stroke id, so a save that rewrites the whole page is shown as
the handful of strokes that actually changed.
"""

from typing import Iterable, Mapping, Optional

from penbridge.models import (
    ChangeSet,
    ChangeSummary,
    PageRef,
    Stroke,
    active_page_strokes,
    deduplicate_strokes,
)


def compute_change_set(
    strokes: Iterable[Stroke],
    page: PageRef,
    persisted_ids: Optional[Iterable[str]],
) -> ChangeSet:
    """Diff the page's in-memory strokes against its persisted snapshot.

    Args:
        strokes: In-memory strokes (any pages; others are ignored).
        page: Page to diff.
        persisted_ids: Stroke ids in the persisted snapshot, or None when
            the page has never been saved.

    Returns:
        ChangeSet where additions are live strokes missing from the
        snapshot and deletions are soft-deleted strokes still in it.
    """
    page_strokes = [s for s in strokes if s.page == page]
    persisted = set(persisted_ids or ())

    active = active_page_strokes(page_strokes, page)
    additions = [s.id for s in deduplicate_strokes(persisted, active)]
    deletions = [s.id for s in page_strokes if s.deleted and s.id in persisted]

    return ChangeSet(
        page=page,
        additions=additions,
        deletions=deletions,
        is_saved=bool(persisted),
    )


def compute_changes_by_page(
    strokes: Iterable[Stroke],
    persisted_by_page: Mapping[PageRef, set[str]],
) -> list[ChangeSet]:
    """Change sets for every page in the collection that has changes.

    Pages appear in first-seen order.
    """
    strokes = list(strokes)
    pages: list[PageRef] = []
    for stroke in strokes:
        if stroke.page not in pages:
            pages.append(stroke.page)

    changes = []
    for page in pages:
        change = compute_change_set(strokes, page, persisted_by_page.get(page))
        if change.has_changes:
            changes.append(change)
    return changes


def summarize_changes(changes: Iterable[ChangeSet]) -> ChangeSummary:
    """Total additions and deletions across pages."""
    summary = ChangeSummary()
    for change in changes:
        if not change.has_changes:
            continue
        summary.pages_with_changes += 1
        summary.total_additions += len(change.additions)
        summary.total_deletions += len(change.deletions)
        summary.changes.append(change)
    return summary
