"""Stroke models: captured pen strokes and their persisted projection."""

from typing import Any, Iterable, Optional

from pydantic import BaseModel, Field

from .base import PageRef, YInterval

# (x, y, timestamp)
Point = tuple[float, float, float]


def make_stroke_id(start_time: int) -> str:
    """Generate the stable stroke identifier from its start timestamp."""
    return f"s{start_time}"


class Stroke(BaseModel):
    """A captured pen stroke.

    Geometry and page ownership are fixed at capture time. Only the block
    association and the soft-delete flag change afterwards.
    """

    id: str = Field(..., description="Stable identifier, e.g. 's1765313505107'")
    start_time: int = Field(..., description="Pen-down timestamp (ms)")
    end_time: Optional[int] = Field(None, description="Pen-up timestamp (ms)")
    points: list[Point] = Field(default_factory=list, frozen=True)
    page: PageRef = Field(..., frozen=True)

    block_uuid: Optional[str] = Field(
        None, description="Persisted block this stroke is linked to, None if unlinked"
    )
    deleted: bool = Field(default=False, description="Soft-delete flag")

    @classmethod
    def from_pen(
        cls,
        dots: Iterable[Point],
        page: PageRef,
        start_time: int,
        end_time: Optional[int] = None,
    ) -> "Stroke":
        """Build a stroke from raw pen dots."""
        points = [(float(x), float(y), float(t)) for x, y, t in dots]
        return cls(
            id=make_stroke_id(start_time),
            start_time=start_time,
            end_time=end_time,
            points=points,
            page=page,
        )

    @property
    def is_active(self) -> bool:
        """True unless soft-deleted."""
        return not self.deleted

    @property
    def y_extent(self) -> Optional[YInterval]:
        """Vertical extent across all points, None for an empty stroke."""
        if not self.points:
            return None
        ys = [p[1] for p in self.points]
        return YInterval(min_y=min(ys), max_y=max(ys))

    def to_storage(self) -> dict[str, Any]:
        """Simplified projection persisted alongside the page.

        Drops pressure/tilt/colour style fields the pen reports and keeps
        only what is needed to redraw and re-match the stroke.
        """
        return {
            "id": self.id,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "points": [[x, y, t] for x, y, t in self.points],
            "blockUuid": self.block_uuid,
        }

    @classmethod
    def from_storage(cls, record: dict[str, Any], page: PageRef) -> "Stroke":
        """Rebuild a stroke from its persisted projection."""
        return cls(
            id=record["id"],
            start_time=record["startTime"],
            end_time=record.get("endTime"),
            points=[tuple(p) for p in record.get("points", [])],
            page=page,
            block_uuid=record.get("blockUuid"),
        )


class StrokeBounds(BaseModel):
    """2D bounding box of a stroke collection."""

    min_x: float = 0.0
    max_x: float = 0.0
    min_y: float = 0.0
    max_y: float = 0.0


def calculate_bounds(strokes: Iterable[Stroke]) -> StrokeBounds:
    """Calculate the bounding box of all points across ``strokes``.

    Returns an all-zero box when there are no points.
    """
    xs: list[float] = []
    ys: list[float] = []
    for stroke in strokes:
        for x, y, _ in stroke.points:
            xs.append(x)
            ys.append(y)
    if not xs:
        return StrokeBounds()
    return StrokeBounds(min_x=min(xs), max_x=max(xs), min_y=min(ys), max_y=max(ys))


def deduplicate_strokes(
    existing_ids: Iterable[str],
    new_strokes: Iterable[Stroke],
) -> list[Stroke]:
    """Return only the strokes whose id is not already persisted.

    Offline (batch-imported) strokes may overlap with ones captured live.
    """
    seen = set(existing_ids)
    return [s for s in new_strokes if s.id not in seen]


def active_page_strokes(strokes: Iterable[Stroke], page: PageRef) -> list[Stroke]:
    """Strokes on ``page`` that are not soft-deleted, in capture order."""
    return [s for s in strokes if s.page == page and not s.deleted]
