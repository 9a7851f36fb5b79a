"""Reconciliation pass - estimate, match and execute for one page.

A pass reads the page's blocks from the store, estimates stroke membership
for each recognized line, computes the action list and applies it. All
inputs arrive through an explicit :class:`ReconcileContext`; nothing is
read from module state.

Passes for the same page must be serialized by the caller. Passes for
different pages touch disjoint blocks and may run concurrently.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from penbridge.config import Settings
from penbridge.models import (
    PageRef,
    ReconciliationAction,
    RecognizedLine,
    Stroke,
    active_page_strokes,
)
from penbridge.pipeline.editor import EditorLine, build_commit_actions
from penbridge.pipeline.estimate import estimate_lines
from penbridge.pipeline.execute import ActionExecutor, ExecutionReport
from penbridge.pipeline.geometry import DEFAULT_TOLERANCE
from penbridge.pipeline.match import DEFAULT_OVERLAP_THRESHOLD, BlockMatcher, MatchResult
from penbridge.pipeline.recognize import Recognizer, recognize_page
from penbridge.storage.base import DocumentStore

logger = logging.getLogger(__name__)


@dataclass
class ReconcileContext:
    """Everything a pass needs besides the strokes themselves."""

    page: PageRef
    store: DocumentStore
    tolerance: float = DEFAULT_TOLERANCE
    overlap_threshold: float = DEFAULT_OVERLAP_THRESHOLD

    @classmethod
    def from_settings(
        cls, page: PageRef, store: DocumentStore, settings: Settings
    ) -> "ReconcileContext":
        return cls(
            page=page,
            store=store,
            tolerance=settings.match_tolerance,
            overlap_threshold=settings.stroke_overlap_threshold,
        )


@dataclass
class PassResult:
    """Outcome of one reconciliation pass."""

    page: PageRef
    actions: list[ReconciliationAction] = field(default_factory=list)
    report: ExecutionReport = field(default_factory=ExecutionReport)
    match: Optional[MatchResult] = None
    recognition_failed: bool = False


async def reconcile_lines(
    context: ReconcileContext,
    strokes: Sequence[Stroke],
    lines: Sequence[RecognizedLine],
) -> PassResult:
    """Run matcher and executor for already-recognized lines.

    Args:
        context: Page, store and matching parameters.
        strokes: In-memory stroke collection; block links are updated in place.
        lines: Recognizer lines for the page's live strokes.

    Returns:
        PassResult; ``report.orphans`` lists blocks awaiting confirmation.
    """
    active = active_page_strokes(strokes, context.page)
    page_strokes = [s for s in strokes if s.page == context.page]

    blocks = await context.store.list_blocks(context.page)
    estimated = estimate_lines(lines, active, context.tolerance)

    matcher = BlockMatcher(
        tolerance=context.tolerance,
        overlap_threshold=context.overlap_threshold,
    )
    match = matcher.match(blocks, estimated, page_strokes)

    report = await ActionExecutor(context.store).apply(context.page, match.actions, page_strokes)
    return PassResult(page=context.page, actions=match.actions, report=report, match=match)


async def transcribe_and_reconcile(
    context: ReconcileContext,
    strokes: Sequence[Stroke],
    recognizer: Recognizer,
) -> PassResult:
    """Recognize the page's live strokes, then reconcile.

    A recognizer failure, or an empty answer for a page that has strokes,
    yields a result with ``recognition_failed`` set and no store writes.
    """
    active = active_page_strokes(strokes, context.page)
    result = await recognize_page(recognizer, active)

    if result is None or (active and result.is_empty):
        logger.warning("No lines to reconcile for %s; leaving blocks untouched", context.page)
        return PassResult(page=context.page, recognition_failed=True)

    return await reconcile_lines(context, strokes, result.lines)


async def commit_editor(
    context: ReconcileContext,
    lines: Sequence[EditorLine],
    strokes: Sequence[Stroke],
) -> PassResult:
    """Apply edited lines (merges, splits, text and indent edits)."""
    page_strokes = [s for s in strokes if s.page == context.page]
    blocks = await context.store.list_blocks(context.page)
    actions = build_commit_actions(lines, blocks, page_strokes, context.tolerance)
    report = await ActionExecutor(context.store).apply(context.page, actions, page_strokes)
    return PassResult(page=context.page, actions=actions, report=report)
