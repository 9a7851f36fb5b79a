"""Stroke Geometry Index - vertical overlap queries over a stroke set."""

from typing import Iterable

from penbridge.models import Stroke, YInterval

# Absorbs baseline jitter between recognizer runs on unchanged handwriting.
DEFAULT_TOLERANCE = 5.0


def strokes_overlapping(
    strokes: Iterable[Stroke],
    interval: YInterval,
    tolerance: float = DEFAULT_TOLERANCE,
    include_deleted: bool = False,
) -> list[Stroke]:
    """Return the strokes whose vertical extent meets ``interval``.

    The query interval is expanded by ``tolerance`` on both sides before
    testing. Strokes without points never match. Soft-deleted strokes are
    ignored unless ``include_deleted`` is set.

    Args:
        strokes: Candidate strokes.
        interval: Query interval.
        tolerance: Expansion applied to the query.
        include_deleted: Also consider soft-deleted strokes.

    Returns:
        Overlapping strokes in input order.
    """
    query = interval.expand(tolerance)
    result = []
    for stroke in strokes:
        if stroke.deleted and not include_deleted:
            continue
        extent = stroke.y_extent
        if extent is None:
            continue
        if query.overlaps(extent):
            result.append(stroke)
    return result
