"""Reconciliation actions produced by the block matcher.

Actions are transient: built by the matcher (or the line editor's commit),
consumed immediately by the executor, and never persisted.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from .base import ActionType
from .block import PersistedBlock
from .line import EstimatedLine


class SkipAction(BaseModel):
    """Line matches a block whose canonical text is unchanged."""

    kind: Literal[ActionType.SKIP] = ActionType.SKIP
    line: EstimatedLine
    block: PersistedBlock
    tier: int = Field(default=1, description="1 = stroke identity, 2 = interval")
    merged_lines: list[int] = Field(
        default_factory=list,
        description="Indices of all recognized lines folded into a merged block",
    )


class UpdateAction(BaseModel):
    """Line matches a block whose canonical text changed.

    Only text and canonical key are rewritten. ``retire_block_uuids`` lists
    blocks folded into this one by an explicit merge; their strokes move
    here and the blocks are retired. ``merged_lines`` is set when several
    recognized lines map onto one previously merged block.
    """

    kind: Literal[ActionType.UPDATE] = ActionType.UPDATE
    line: EstimatedLine
    block: PersistedBlock
    tier: int = 1
    indent_level: Optional[int] = Field(
        None, description="New indentation, set only by explicit editor changes"
    )
    retire_block_uuids: list[str] = Field(default_factory=list)
    merged_lines: list[int] = Field(default_factory=list)


class CreateAction(BaseModel):
    """Line has no matching block.

    ``reassign_from`` names blocks whose strokes may be moved to the new
    block; only an explicit split fills it.
    """

    kind: Literal[ActionType.CREATE] = ActionType.CREATE
    line: EstimatedLine
    reassign_from: list[str] = Field(default_factory=list)


class OrphanAction(BaseModel):
    """Existing block matched no line. Never executed without confirmation."""

    kind: Literal[ActionType.ORPHAN] = ActionType.ORPHAN
    block: PersistedBlock
    live_stroke_ids: frozenset[str] = Field(
        default_factory=frozenset,
        description="Non-deleted strokes still linked to the block",
    )


ReconciliationAction = Annotated[
    Union[SkipAction, UpdateAction, CreateAction, OrphanAction],
    Field(discriminator="kind"),
]


def count_actions(actions: list[ReconciliationAction]) -> dict[str, int]:
    """Count actions by kind, e.g. ``{"skip": 3, "create": 1, ...}``."""
    counts = {t.value: 0 for t in ActionType}
    for action in actions:
        counts[action.kind.value] += 1
    return counts
