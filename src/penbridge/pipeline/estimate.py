"""Line-to-Stroke Estimator - which strokes produced each recognized line.

The recognizer reports text and geometry but not which strokes it used,
so stroke membership is estimated from vertical overlap. With tolerance,
a tall stroke (a descender, an underline) can overlap two adjacent lines;
such strokes are resolved to the single line they overlap most so that
each stroke ends up linked to at most one block.
"""

import logging
from typing import Iterable, Sequence

from penbridge.models import EstimatedLine, RecognizedLine, Stroke, YInterval
from penbridge.pipeline.canonical import canonicalize
from penbridge.pipeline.geometry import DEFAULT_TOLERANCE, strokes_overlapping

logger = logging.getLogger(__name__)


def estimate_stroke_ids(
    line: RecognizedLine,
    strokes: Iterable[Stroke],
    tolerance: float = DEFAULT_TOLERANCE,
) -> set[str]:
    """Estimate the ids of the strokes that produced ``line``.

    An empty set is valid (e.g. a line typed in the editor with no
    handwriting behind it) and is not an error.
    """
    return {s.id for s in strokes_overlapping(strokes, line.interval, tolerance)}


def resolve_shared_strokes(
    intervals: Sequence[YInterval],
    id_sets: Sequence[set[str]],
    strokes: Iterable[Stroke],
) -> list[set[str]]:
    """Give every stroke claimed by several lines to exactly one of them.

    Winner is the line with the largest raw overlap between its interval
    and the stroke's extent, then the closest center, then the lowest index.

    Args:
        intervals: Line intervals, parallel to ``id_sets``.
        id_sets: Estimated stroke ids per line.
        strokes: Strokes referenced by the id sets.

    Returns:
        New id sets with shared strokes assigned to a single line.
    """
    claims: dict[str, list[int]] = {}
    for idx, ids in enumerate(id_sets):
        for stroke_id in ids:
            claims.setdefault(stroke_id, []).append(idx)

    shared = {sid: owners for sid, owners in claims.items() if len(owners) > 1}
    resolved = [set(ids) for ids in id_sets]
    if not shared:
        return resolved

    extents = {s.id: s.y_extent for s in strokes if s.id in shared}
    for stroke_id, owners in shared.items():
        extent = extents.get(stroke_id)
        if extent is None:
            winner = owners[0]
        else:
            winner = min(
                owners,
                key=lambda i: (
                    -intervals[i].overlap_amount(extent),
                    abs(intervals[i].center - extent.center),
                    i,
                ),
            )
        for idx in owners:
            if idx != winner:
                resolved[idx].discard(stroke_id)
        logger.debug("Stroke %s shared by lines %s, kept on %d", stroke_id, owners, winner)

    return resolved


def estimate_lines(
    lines: Sequence[RecognizedLine],
    strokes: Sequence[Stroke],
    tolerance: float = DEFAULT_TOLERANCE,
    exclusive: bool = True,
) -> list[EstimatedLine]:
    """Augment recognized lines with stroke ids and canonical keys.

    Args:
        lines: Recognizer output for one page, in reading order.
        strokes: Live strokes for that page.
        tolerance: Geometry tolerance for the overlap query.
        exclusive: Resolve strokes shared by adjacent lines.

    Returns:
        One EstimatedLine per input line, same order.
    """
    id_sets = [estimate_stroke_ids(line, strokes, tolerance) for line in lines]
    if exclusive:
        id_sets = resolve_shared_strokes([l.interval for l in lines], id_sets, strokes)

    estimated = [
        EstimatedLine(
            index=idx,
            text=line.text,
            canonical=canonicalize(line.text),
            interval=line.interval,
            indent_level=line.indent_level,
            parent=line.parent,
            stroke_ids=frozenset(ids),
        )
        for idx, (line, ids) in enumerate(zip(lines, id_sets))
    ]

    empty = sum(1 for e in estimated if not e.stroke_ids)
    if empty:
        logger.debug("%d of %d lines have no overlapping strokes", empty, len(estimated))
    return estimated
