"""Base models and common types for the smartpen bridge."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, model_validator


class ActionType(str, Enum):
    """Outcome of reconciling one line or block."""

    SKIP = "skip"
    UPDATE = "update"
    CREATE = "create"
    ORPHAN = "orphan"


class PageRef(BaseModel):
    """Identifies one physical notebook page (book id + page number)."""

    book: int = Field(..., ge=0, description="Notebook (book) identifier")
    page: int = Field(..., ge=0, description="Page number within the book")

    @property
    def key(self) -> str:
        """Short page key, e.g. ``B3017/P42``."""
        return f"B{self.book}/P{self.page}"

    @property
    def page_name(self) -> str:
        """Knowledge-base page name for this notebook page."""
        return f"Smartpen Data/B{self.book}/P{self.page}"

    def __str__(self) -> str:
        return self.key

    class Config:
        frozen = True


class YInterval(BaseModel):
    """Vertical extent (min/max Y) of a stroke, line or block."""

    min_y: float = Field(..., description="Top edge Y coordinate")
    max_y: float = Field(..., description="Bottom edge Y coordinate")

    @model_validator(mode="after")
    def _check_order(self) -> "YInterval":
        if self.max_y < self.min_y:
            raise ValueError(f"max_y ({self.max_y}) is above min_y ({self.min_y})")
        return self

    @property
    def height(self) -> float:
        """Interval height."""
        return self.max_y - self.min_y

    @property
    def center(self) -> float:
        """Vertical midpoint."""
        return (self.min_y + self.max_y) / 2

    def expand(self, tolerance: float) -> "YInterval":
        """Return the interval grown by ``tolerance`` on both sides."""
        return YInterval(min_y=self.min_y - tolerance, max_y=self.max_y + tolerance)

    def overlaps(self, other: "YInterval", tolerance: float = 0.0) -> bool:
        """Check whether two intervals intersect (edges inclusive)."""
        query = self.expand(tolerance) if tolerance else self
        return not (query.max_y < other.min_y or other.max_y < query.min_y)

    def overlap_amount(self, other: "YInterval") -> float:
        """Length of the intersection, 0 when disjoint."""
        return max(0.0, min(self.max_y, other.max_y) - max(self.min_y, other.min_y))

    def union(self, other: "YInterval") -> "YInterval":
        """Smallest interval covering both."""
        return YInterval(
            min_y=min(self.min_y, other.min_y),
            max_y=max(self.max_y, other.max_y),
        )

    def split(self) -> tuple["YInterval", "YInterval"]:
        """Divide at the midpoint into upper and lower halves."""
        mid = self.center
        return (
            YInterval(min_y=self.min_y, max_y=mid),
            YInterval(min_y=mid, max_y=self.max_y),
        )

    class Config:
        frozen = True


class TimestampedModel(BaseModel):
    """Base class for persisted records with bookkeeping timestamps."""

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        from_attributes = True  # For SQLAlchemy compatibility
