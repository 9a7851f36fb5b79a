"""Block Matcher - pair existing blocks with newly recognized lines.

Matching runs in two tiers:

1. Stroke identity. A block's stroke set is read from the live strokes
   whose ``block_uuid`` points at it. A (block, line) pair is a candidate
   when ``|line ∩ block| / |line|`` exceeds the overlap threshold. Each
   line takes its best block. When several lines land on the same block
   (the block was merged from them) they are folded into one unit whose
   joined canonical key is compared against the block's.
2. Interval overlap. Lines left over are matched against blocks left over
   by the block's creation-time interval. This is the bootstrap path for
   blocks that have not yet been through a save/load cycle and is treated
   as lower confidence.

Both tiers rank candidates by score, breaking ties on the lowest block
creation order and then the lowest line index, so repeated runs over the
same inputs always produce the same pairs. Tier 2 assigns one-to-one.

Matched pairs become SKIP when the line's canonical key equals the one
stored on the block and UPDATE otherwise. Unmatched lines become CREATE;
unmatched blocks become ORPHAN and are only reported, never deleted here.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from penbridge.models import (
    CreateAction,
    EstimatedLine,
    OrphanAction,
    PersistedBlock,
    ReconciliationAction,
    SkipAction,
    Stroke,
    UpdateAction,
    count_actions,
)
from penbridge.pipeline.canonical import canonicalize
from penbridge.pipeline.geometry import DEFAULT_TOLERANCE

logger = logging.getLogger(__name__)

DEFAULT_OVERLAP_THRESHOLD = 0.5


def block_stroke_index(strokes: Iterable[Stroke]) -> dict[str, set[str]]:
    """Map block uuid -> ids of the live strokes linked to it."""
    index: dict[str, set[str]] = {}
    for stroke in strokes:
        if stroke.deleted or not stroke.block_uuid:
            continue
        index.setdefault(stroke.block_uuid, set()).add(stroke.id)
    return index


def stored_key(block: PersistedBlock) -> str:
    """Canonical key to compare against for ``block``.

    Blocks written before canonical keys were stored fall back to their
    current content.
    """
    if block.canonical is not None:
        return block.canonical
    return canonicalize(block.content)


def combine_lines(lines: Sequence[EstimatedLine]) -> EstimatedLine:
    """Fold lines into one, the same way a merge commit joins them."""
    first = lines[0]
    interval = first.interval
    for line in lines[1:]:
        interval = interval.union(line.interval)
    text = " ".join(l.text for l in lines)
    return EstimatedLine(
        index=first.index,
        text=text,
        canonical=canonicalize(text),
        interval=interval,
        indent_level=first.indent_level,
        parent=first.parent,
        stroke_ids=frozenset().union(*(l.stroke_ids for l in lines)),
    )


@dataclass
class MatchResult:
    """Output of one matching run."""

    actions: list[ReconciliationAction] = field(default_factory=list)
    # line index -> block uuid
    line_matches: dict[int, str] = field(default_factory=dict)
    tier1_matches: int = 0
    tier2_matches: int = 0

    @property
    def orphans(self) -> list[OrphanAction]:
        return [a for a in self.actions if isinstance(a, OrphanAction)]

    @property
    def counts(self) -> dict[str, int]:
        return count_actions(self.actions)


class BlockMatcher:
    """Computes the action list for one page's reconciliation pass."""

    def __init__(
        self,
        tolerance: float = DEFAULT_TOLERANCE,
        overlap_threshold: float = DEFAULT_OVERLAP_THRESHOLD,
    ):
        """Initialize matcher.

        Args:
            tolerance: Geometry tolerance for interval fallback matching.
            overlap_threshold: Minimum stroke-overlap ratio (exclusive)
                for a tier 1 candidate.
        """
        self.tolerance = tolerance
        self.overlap_threshold = overlap_threshold

    def match(
        self,
        blocks: Sequence[PersistedBlock],
        lines: Sequence[EstimatedLine],
        strokes: Iterable[Stroke],
    ) -> MatchResult:
        """Match existing blocks to estimated lines and classify each.

        Args:
            blocks: Blocks currently in the store for the page.
            lines: Estimated lines from this recognition batch.
            strokes: The page's in-memory strokes (soft-deleted included;
                they are ignored when building block stroke sets).

        Returns:
            MatchResult with one action per line plus one ORPHAN per
            unmatched block.
        """
        ordered_blocks = sorted(blocks, key=lambda b: b.seq)
        block_strokes = block_stroke_index(strokes)
        result = MatchResult()

        tier1 = self._match_by_strokes(ordered_blocks, lines, block_strokes)
        result.tier1_matches = len(tier1)
        matched_blocks = set(tier1.values())

        remaining_lines = [l for l in lines if l.index not in tier1]
        remaining_blocks = [b for b in ordered_blocks if b.uuid not in matched_blocks]
        tier2 = self._match_by_interval(remaining_blocks, remaining_lines, block_strokes)
        result.tier2_matches = len(tier2)

        by_uuid = {b.uuid: b for b in ordered_blocks}
        by_index = {l.index: l for l in lines}
        units: dict[str, list[int]] = {}
        for line_index, block_uuid in sorted(tier1.items()):
            units.setdefault(block_uuid, []).append(line_index)

        for line in lines:
            if line.index in tier1:
                block = by_uuid[tier1[line.index]]
                members = units[block.uuid]
                if line.index != members[0]:
                    continue
                if len(members) > 1:
                    logger.info("Lines %s map to merged block %s", members, block.uuid)
                    unit = combine_lines([by_index[i] for i in members])
                    result.actions.append(
                        self._classify(unit, block, tier=1, merged_lines=members)
                    )
                else:
                    result.actions.append(self._classify(line, block, tier=1))
                for i in members:
                    result.line_matches[i] = block.uuid
            elif line.index in tier2:
                block = by_uuid[tier2[line.index]]
                result.actions.append(self._classify(line, block, tier=2))
                result.line_matches[line.index] = block.uuid
            else:
                result.actions.append(CreateAction(line=line))

        used = set(result.line_matches.values())
        for block in ordered_blocks:
            if block.uuid in used:
                continue
            live = frozenset(block_strokes.get(block.uuid, ()))
            result.actions.append(OrphanAction(block=block, live_stroke_ids=live))
            logger.info(
                "Block %s matched no line (%d live strokes); reporting as orphan",
                block.uuid,
                len(live),
            )

        logger.debug(
            "Matched %d lines against %d blocks: tier1=%d tier2=%d %s",
            len(lines),
            len(ordered_blocks),
            result.tier1_matches,
            result.tier2_matches,
            result.counts,
        )
        return result

    def overlap_ratio(self, line: EstimatedLine, block_ids: set[str]) -> float:
        """Share of the line's strokes that are linked to the block."""
        if not line.stroke_ids:
            return 0.0
        return len(line.stroke_ids & block_ids) / len(line.stroke_ids)

    def _match_by_strokes(
        self,
        blocks: Sequence[PersistedBlock],
        lines: Sequence[EstimatedLine],
        block_strokes: dict[str, set[str]],
    ) -> dict[int, str]:
        """Tier 1: each line takes its best block by stroke-identity overlap ratio.

        Several lines may take the same block; the caller folds them into
        one unit.
        """
        candidates = []
        for line in lines:
            if not line.stroke_ids:
                continue
            for block in blocks:
                ids = block_strokes.get(block.uuid)
                if not ids:
                    continue
                ratio = self.overlap_ratio(line, ids)
                if ratio > self.overlap_threshold:
                    candidates.append((-ratio, block.seq, line.index, block.uuid))

        best: dict[int, str] = {}
        for _, _, line_index, block_uuid in sorted(candidates):
            best.setdefault(line_index, block_uuid)
        return best

    def _match_by_interval(
        self,
        blocks: Sequence[PersistedBlock],
        lines: Sequence[EstimatedLine],
        block_strokes: dict[str, set[str]],
    ) -> dict[int, str]:
        """Tier 2: one-to-one assignment by creation-time interval overlap."""
        candidates = []
        for line in lines:
            query = line.interval.expand(self.tolerance)
            for block in blocks:
                if not query.overlaps(block.interval):
                    continue
                if self._provably_distinct(line, block_strokes.get(block.uuid)):
                    continue
                amount = query.overlap_amount(block.interval)
                candidates.append((-amount, block.seq, line.index, block.uuid))

        return self._assign(sorted(candidates))

    def _provably_distinct(
        self, line: EstimatedLine, block_ids: Optional[set[str]]
    ) -> bool:
        """Both sides have live strokes and share none of them."""
        return bool(line.stroke_ids) and bool(block_ids) and not (line.stroke_ids & block_ids)

    def _assign(self, ranked: list[tuple]) -> dict[int, str]:
        """Greedy one-to-one assignment over pre-sorted candidate tuples."""
        assigned: dict[int, str] = {}
        taken: set[str] = set()
        for _, _, line_index, block_uuid in ranked:
            if line_index in assigned or block_uuid in taken:
                continue
            assigned[line_index] = block_uuid
            taken.add(block_uuid)
        return assigned

    def _classify(
        self,
        line: EstimatedLine,
        block: PersistedBlock,
        tier: int,
        merged_lines: Sequence[int] = (),
    ) -> ReconciliationAction:
        """SKIP when canonical keys match, UPDATE otherwise."""
        if line.canonical == stored_key(block):
            return SkipAction(line=line, block=block, tier=tier, merged_lines=list(merged_lines))
        logger.debug(
            "Block %s text changed: %r -> %r", block.uuid, stored_key(block), line.canonical
        )
        return UpdateAction(line=line, block=block, tier=tier, merged_lines=list(merged_lines))
