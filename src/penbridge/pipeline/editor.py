"""Merge/Split Editor - user-driven restructuring of recognized lines.

The editor works on an in-memory list of lines, each optionally tied to a
persisted block. Nothing reaches the store until the edited lines are
turned into actions with :func:`build_commit_actions` and handed to the
executor.

Provenance rules:
- Merge keeps the first selected block as the survivor and lists every
  other selected block in ``blocks_to_delete``. On commit their strokes
  move to the survivor and the blocks are retired.
- Split keeps the block on the upper half (UPDATE) and gives the lower
  half no block (CREATE). The lower half remembers ``split_from`` so its
  strokes may be moved off the original block on commit.
"""

import copy
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional, Sequence

from penbridge.models import (
    CreateAction,
    EstimatedLine,
    OrphanAction,
    PersistedBlock,
    ReconciliationAction,
    SkipAction,
    Stroke,
    UpdateAction,
    YInterval,
)
from penbridge.pipeline.canonical import canonicalize
from penbridge.pipeline.estimate import resolve_shared_strokes
from penbridge.pipeline.geometry import DEFAULT_TOLERANCE, strokes_overlapping
from penbridge.pipeline.match import block_stroke_index, stored_key

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_DEPTH = 50


@dataclass
class EditorLine:
    """One editable line."""

    text: str
    interval: YInterval
    indent_level: int = 0
    block_uuid: Optional[str] = None
    blocks_to_delete: list[str] = field(default_factory=list)
    split_from: Optional[str] = None
    # None means "re-estimate from geometry at commit"
    stroke_ids: Optional[frozenset[str]] = None
    dirty: bool = False


def _unique(values: Iterable[Optional[str]]) -> list[str]:
    seen: list[str] = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


class LineEditor:
    """Editable line list with bounded undo/redo history."""

    def __init__(
        self,
        lines: Sequence[EditorLine],
        history_depth: int = DEFAULT_HISTORY_DEPTH,
    ):
        """Initialize editor.

        Args:
            lines: Initial lines, in reading order.
            history_depth: Maximum number of undo snapshots kept.
        """
        self._lines = list(lines)
        self.history_depth = history_depth
        self._undo: deque[list[EditorLine]] = deque(maxlen=history_depth)
        self._redo: deque[list[EditorLine]] = deque(maxlen=history_depth)

    @classmethod
    def from_actions(
        cls,
        actions: Iterable[ReconciliationAction],
        line_blocks: Optional[Mapping[int, str]] = None,
        history_depth: int = DEFAULT_HISTORY_DEPTH,
    ) -> "LineEditor":
        """Seed the editor from a matcher result. Orphans are left out.

        Args:
            actions: Actions of a reconciliation pass.
            line_blocks: Blocks the executor wrote for those actions (line
                index -> uuid). CREATE lines take their new block from here;
                without it they stay unsaved.
            history_depth: Maximum number of undo snapshots kept.
        """
        line_blocks = line_blocks or {}
        seeded = []
        for action in actions:
            if isinstance(action, (SkipAction, UpdateAction)):
                block_uuid = action.block.uuid
            elif isinstance(action, CreateAction):
                block_uuid = line_blocks.get(action.line.index)
            else:
                continue
            seeded.append(
                (
                    action.line.index,
                    EditorLine(
                        text=action.line.text,
                        interval=action.line.interval,
                        indent_level=action.line.indent_level,
                        block_uuid=block_uuid,
                        stroke_ids=action.line.stroke_ids,
                    ),
                )
            )
        seeded.sort(key=lambda pair: pair[0])
        return cls([line for _, line in seeded], history_depth=history_depth)

    @classmethod
    def from_pass(cls, result, history_depth: int = DEFAULT_HISTORY_DEPTH) -> "LineEditor":
        """Seed the editor from a completed reconciliation pass."""
        return cls.from_actions(
            result.actions, result.report.line_blocks, history_depth=history_depth
        )

    @property
    def lines(self) -> list[EditorLine]:
        return list(self._lines)

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def merge(self, indices: Iterable[int]) -> EditorLine:
        """Combine the selected lines into one, placed at the first index.

        Text is space-joined in reading order and the interval spans all
        parts. The first selected line with a block keeps it; all other
        selected blocks are queued for retirement.

        Raises:
            ValueError: Fewer than two distinct lines, or an index out of range.
        """
        selected_idx = sorted(set(indices))
        if len(selected_idx) < 2:
            raise ValueError("Merge needs at least two lines")
        self._check_indices(selected_idx)

        selected = [self._lines[i] for i in selected_idx]
        blocks = _unique(l.block_uuid for l in selected)
        primary = blocks[0] if blocks else None
        to_delete = _unique(
            blocks[1:] + [b for l in selected for b in l.blocks_to_delete]
        )
        to_delete = [b for b in to_delete if b != primary]

        interval = selected[0].interval
        for line in selected[1:]:
            interval = interval.union(line.interval)

        stroke_ids = None
        if all(l.stroke_ids is not None for l in selected):
            stroke_ids = frozenset().union(*(l.stroke_ids for l in selected))

        # A merge of unsaved split halves still comes from the split source
        split_from = None
        if primary is None:
            split_from = next((l.split_from for l in selected if l.split_from), None)

        merged = EditorLine(
            text=" ".join(l.text for l in selected),
            interval=interval,
            indent_level=selected[0].indent_level,
            block_uuid=primary,
            blocks_to_delete=to_delete,
            split_from=split_from,
            stroke_ids=stroke_ids,
            dirty=True,
        )

        self._snapshot()
        first = selected_idx[0]
        keep = [l for i, l in enumerate(self._lines) if i not in set(selected_idx)]
        keep.insert(first, merged)
        self._lines = keep
        logger.debug("Merged lines %s into block %s (retiring %s)", selected_idx, primary, to_delete)
        return merged

    def split(self, index: int, text_a: str, text_b: str) -> tuple[EditorLine, EditorLine]:
        """Divide one line into two at its vertical midpoint.

        Raises:
            ValueError: Index out of range.
        """
        self._check_indices([index])
        line = self._lines[index]
        upper, lower = line.interval.split()

        first = EditorLine(
            text=text_a,
            interval=upper,
            indent_level=line.indent_level,
            block_uuid=line.block_uuid,
            blocks_to_delete=list(line.blocks_to_delete),
            split_from=line.split_from,
            dirty=True,
        )
        second = EditorLine(
            text=text_b,
            interval=lower,
            indent_level=line.indent_level,
            split_from=line.block_uuid or line.split_from,
            dirty=True,
        )

        self._snapshot()
        self._lines[index:index + 1] = [first, second]
        return first, second

    def set_text(self, index: int, text: str) -> None:
        """Replace a line's text."""
        self._check_indices([index])
        self._snapshot()
        self._lines[index].text = text
        self._lines[index].dirty = True

    def set_indent(self, index: int, level: int) -> None:
        """Change indentation. Metadata only; strokes are unaffected."""
        self._check_indices([index])
        if level < 0:
            raise ValueError(f"Indent level must be >= 0, got {level}")
        self._snapshot()
        self._lines[index].indent_level = level
        self._lines[index].dirty = True

    def undo(self) -> bool:
        """Restore the previous snapshot. Returns False when there is none."""
        if not self._undo:
            return False
        self._redo.append(copy.deepcopy(self._lines))
        self._lines = self._undo.pop()
        return True

    def redo(self) -> bool:
        """Re-apply the last undone change. Returns False when there is none."""
        if not self._redo:
            return False
        self._undo.append(copy.deepcopy(self._lines))
        self._lines = self._redo.pop()
        return True

    def _snapshot(self) -> None:
        self._undo.append(copy.deepcopy(self._lines))
        self._redo.clear()

    def _check_indices(self, indices: Iterable[int]) -> None:
        for i in indices:
            if not 0 <= i < len(self._lines):
                raise ValueError(f"Line index {i} out of range (0-{len(self._lines) - 1})")


def build_commit_actions(
    lines: Sequence[EditorLine],
    blocks: Sequence[PersistedBlock],
    strokes: Sequence[Stroke],
    tolerance: float = DEFAULT_TOLERANCE,
) -> list[ReconciliationAction]:
    """Turn edited lines into an action list for the executor.

    Args:
        lines: Editor lines in reading order.
        blocks: Blocks currently in the store for the page.
        strokes: The page's in-memory strokes.
        tolerance: Geometry tolerance for re-estimating split lines.

    Returns:
        One action per line, then ORPHAN for every block no line refers to.
    """
    by_uuid = {b.uuid: b for b in blocks}

    id_sets = []
    for line in lines:
        if line.stroke_ids is not None:
            id_sets.append(set(line.stroke_ids))
        else:
            id_sets.append({s.id for s in strokes_overlapping(strokes, line.interval, tolerance)})
    id_sets = resolve_shared_strokes([l.interval for l in lines], id_sets, strokes)

    actions: list[ReconciliationAction] = []
    referenced: set[str] = set()
    for index, (line, ids) in enumerate(zip(lines, id_sets)):
        estimated = EstimatedLine(
            index=index,
            text=line.text,
            canonical=canonicalize(line.text),
            interval=line.interval,
            indent_level=line.indent_level,
            stroke_ids=frozenset(ids),
        )
        block = by_uuid.get(line.block_uuid) if line.block_uuid else None

        if block is None:
            if line.block_uuid:
                logger.warning(
                    "Block %s no longer exists; line %d will be created", line.block_uuid, index
                )
            reassign = _unique([line.split_from])
            actions.append(CreateAction(line=estimated, reassign_from=reassign))
            continue

        referenced.add(block.uuid)
        retire = [b for b in line.blocks_to_delete if b in by_uuid and b != block.uuid]
        referenced.update(retire)

        if retire or line.dirty:
            actions.append(
                UpdateAction(
                    line=estimated,
                    block=block,
                    indent_level=line.indent_level,
                    retire_block_uuids=retire,
                )
            )
        elif estimated.canonical == stored_key(block):
            actions.append(SkipAction(line=estimated, block=block))
        else:
            actions.append(UpdateAction(line=estimated, block=block))

    block_strokes = block_stroke_index(strokes)
    for block in sorted(blocks, key=lambda b: b.seq):
        if block.uuid not in referenced:
            live = frozenset(block_strokes.get(block.uuid, ()))
            actions.append(OrphanAction(block=block, live_stroke_ids=live))

    return actions
