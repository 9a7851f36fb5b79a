"""Action Executor - apply reconciliation actions to the document store.

Execution is a two-phase commit:

1. Block writes: CREATE / UPDATE (and merge retirements) against the store,
   linking each line's strokes to the resulting block.
2. Stroke snapshot: the page's live strokes, with their new block links,
   are written back so the links survive a restart.

A failed block write is logged and counted; the batch continues and phase
2 still runs. If phase 2 fails after phase 1 succeeded, running the pass
again is safe: already-written blocks now match by interval or stroke
identity and classify as SKIP.

Stroke links are only ever set on strokes that are unlinked or already
linked to the target. Moving a stroke between blocks happens only when an
action names the source block explicitly (a merge or split commit), and
every such move is recorded in the report.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence, Union

from penbridge.errors import StoreWriteError
from penbridge.models import (
    CreateAction,
    OrphanAction,
    PageRef,
    ReconciliationAction,
    SkipAction,
    Stroke,
    UpdateAction,
    active_page_strokes,
)
from penbridge.storage.base import DocumentStore

logger = logging.getLogger(__name__)


@dataclass
class Reassignment:
    """Provenance of one stroke moved from one block to another."""

    stroke_id: str
    from_block: Optional[str]
    to_block: Optional[str]
    reason: str  # "merge", "split", "retire"


@dataclass
class ExecutionReport:
    """Outcome of applying an action list."""

    created: int = 0
    updated: int = 0
    skipped: int = 0
    retired: int = 0
    failed: int = 0
    orphans: list[OrphanAction] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    # line index -> block uuid
    line_blocks: dict[int, str] = field(default_factory=dict)
    reassignments: list[Reassignment] = field(default_factory=list)
    linked: int = 0
    strokes_saved: bool = False
    strokes_save_failed: bool = False

    @property
    def orphaned(self) -> int:
        return len(self.orphans)

    @property
    def block_writes(self) -> int:
        """Successful block mutations (create, update, delete)."""
        return self.created + self.updated + self.retired

    @property
    def success(self) -> bool:
        return self.failed == 0 and not self.strokes_save_failed

    def summary(self) -> dict[str, int]:
        return {
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "orphaned": self.orphaned,
            "retired": self.retired,
            "failed": self.failed,
        }


class ActionExecutor:
    """Applies reconciliation actions against a document store."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def apply(
        self,
        page: PageRef,
        actions: Sequence[ReconciliationAction],
        strokes: Sequence[Stroke],
    ) -> ExecutionReport:
        """Execute ``actions`` for ``page`` and persist updated stroke links.

        Args:
            page: Page being reconciled.
            actions: Output of the matcher or of an editor commit.
            strokes: In-memory stroke collection; block links are updated
                in place.

        Returns:
            ExecutionReport with counts, orphans awaiting confirmation and
            any per-block errors.
        """
        report = ExecutionReport()
        by_id = {s.id: s for s in strokes}
        dirty = False

        for action in actions:
            if isinstance(action, SkipAction):
                report.skipped += 1
                self._record_lines(report, action, action.block.uuid)
                dirty |= self._link(action.line.stroke_ids, action.block.uuid, by_id, report)
            elif isinstance(action, UpdateAction):
                dirty |= await self._apply_update(action, strokes, by_id, report)
            elif isinstance(action, CreateAction):
                dirty |= await self._apply_create(page, action, by_id, report)
            elif isinstance(action, OrphanAction):
                report.orphans.append(action)

        await self._persist_strokes(page, strokes, dirty, report)

        logger.info("Reconciled %s: %s", page, report.summary())
        return report

    async def retire(
        self,
        page: PageRef,
        orphans: Iterable[OrphanAction],
        strokes: Sequence[Stroke],
    ) -> ExecutionReport:
        """Delete orphan blocks the caller has confirmed.

        Live strokes still linked to a retired block are unlinked so a later
        pass can attach them elsewhere.
        """
        report = ExecutionReport()
        dirty = False

        for orphan in orphans:
            block_uuid = orphan.block.uuid
            try:
                await self.store.delete_block(block_uuid)
            except StoreWriteError as e:
                self._record_failure(report, "delete", block_uuid, e)
                continue
            report.retired += 1
            for stroke in strokes:
                if stroke.block_uuid == block_uuid:
                    stroke.block_uuid = None
                    report.reassignments.append(
                        Reassignment(stroke.id, block_uuid, None, "retire")
                    )
                    dirty = True

        await self._persist_strokes(page, strokes, dirty, report)
        logger.info("Retired %d orphan blocks on %s", report.retired, page)
        return report

    async def _apply_update(
        self,
        action: UpdateAction,
        strokes: Sequence[Stroke],
        by_id: dict[str, Stroke],
        report: ExecutionReport,
    ) -> bool:
        target = action.block.uuid
        try:
            await self.store.update_block(
                target,
                action.line.text,
                action.line.canonical,
                indent_level=action.indent_level,
            )
        except StoreWriteError as e:
            self._record_failure(report, "update", target, e)
            return False

        report.updated += 1
        self._record_lines(report, action, target)
        dirty = self._link(
            action.line.stroke_ids,
            target,
            by_id,
            report,
            allowed_from=action.retire_block_uuids,
            reason="merge",
        )

        for retired in action.retire_block_uuids:
            if retired == target:
                continue
            for stroke in strokes:
                if stroke.block_uuid == retired:
                    stroke.block_uuid = target
                    report.reassignments.append(
                        Reassignment(stroke.id, retired, target, "merge")
                    )
                    dirty = True
            try:
                await self.store.delete_block(retired)
            except StoreWriteError as e:
                self._record_failure(report, "delete", retired, e)
                continue
            report.retired += 1
            logger.info("Merged block %s into %s", retired, target)

        return dirty

    async def _apply_create(
        self,
        page: PageRef,
        action: CreateAction,
        by_id: dict[str, Stroke],
        report: ExecutionReport,
    ) -> bool:
        line = action.line
        parent_uuid = None
        if line.parent is not None:
            parent_uuid = report.line_blocks.get(line.parent)

        try:
            block_uuid = await self.store.create_block(
                page,
                line.text,
                line.canonical,
                line.interval,
                indent_level=line.indent_level,
                parent_uuid=parent_uuid,
            )
        except StoreWriteError as e:
            self._record_failure(report, "create", None, e)
            return False

        report.created += 1
        report.line_blocks[line.index] = block_uuid
        return self._link(
            line.stroke_ids,
            block_uuid,
            by_id,
            report,
            allowed_from=action.reassign_from,
            reason="split",
        )

    @staticmethod
    def _record_lines(
        report: ExecutionReport, action: Union[SkipAction, UpdateAction], block_uuid: str
    ) -> None:
        """Every recognized line behind ``action`` now resolves to ``block_uuid``."""
        for index in action.merged_lines or [action.line.index]:
            report.line_blocks[index] = block_uuid

    def _link(
        self,
        stroke_ids: Iterable[str],
        target: str,
        by_id: dict[str, Stroke],
        report: ExecutionReport,
        allowed_from: Sequence[str] = (),
        reason: str = "",
    ) -> bool:
        """Link strokes to ``target`` without stealing them from other blocks."""
        changed = False
        for stroke_id in stroke_ids:
            stroke = by_id.get(stroke_id)
            if stroke is None or stroke.deleted:
                continue
            current = stroke.block_uuid
            if current == target:
                continue
            if current is None:
                stroke.block_uuid = target
                report.linked += 1
                changed = True
            elif current in allowed_from:
                stroke.block_uuid = target
                report.reassignments.append(
                    Reassignment(stroke_id, current, target, reason)
                )
                changed = True
            else:
                logger.debug(
                    "Stroke %s stays on block %s (not reassigned to %s)",
                    stroke_id,
                    current,
                    target,
                )
        return changed

    async def _persist_strokes(
        self,
        page: PageRef,
        strokes: Sequence[Stroke],
        dirty: bool,
        report: ExecutionReport,
    ) -> None:
        """Phase 2: write the live stroke snapshot when it differs from the store."""
        active = active_page_strokes(strokes, page)
        if not dirty:
            persisted = await self.store.load_strokes(page)
            if {(s.id, s.block_uuid) for s in persisted} == {
                (s.id, s.block_uuid) for s in active
            }:
                return

        try:
            await self.store.save_strokes(page, active)
        except StoreWriteError as e:
            report.strokes_save_failed = True
            report.errors.append(f"save strokes for {page}: {e}")
            logger.error("Failed to persist stroke links for %s: %s", page, e)
            return
        report.strokes_saved = True

    def _record_failure(
        self,
        report: ExecutionReport,
        operation: str,
        block_uuid: Optional[str],
        error: StoreWriteError,
    ) -> None:
        report.failed += 1
        target = block_uuid or "new block"
        report.errors.append(f"{operation} {target}: {error}")
        logger.warning("Store %s failed for %s: %s", operation, target, error)
