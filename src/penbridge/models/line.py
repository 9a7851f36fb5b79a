"""Line-level models produced by handwriting recognition."""

from typing import Optional

from pydantic import BaseModel, Field

from .base import YInterval


class RecognizedLine(BaseModel):
    """One line of text returned by the recognizer for a page's stroke batch.

    Ephemeral: recreated on every recognition call and never persisted.
    """

    text: str
    interval: YInterval
    indent_level: int = Field(default=0, ge=0)
    x: float = Field(default=0.0, description="Left edge of the leftmost word")
    parent: Optional[int] = Field(None, description="Index of the parent line")
    children: list[int] = Field(default_factory=list)


class RecognitionCommand(BaseModel):
    """Inline ``[command: value]`` marker found in recognized text."""

    command: str
    value: Optional[str] = None
    line_index: int
    affected_lines: list[int] = Field(
        default_factory=list, description="The marked line and all its descendants"
    )


class RecognitionResult(BaseModel):
    """Parsed recognizer output for one page."""

    text: str = ""
    lines: list[RecognizedLine] = Field(default_factory=list)
    commands: list[RecognitionCommand] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.lines


class EstimatedLine(BaseModel):
    """A recognized line plus the strokes estimated to have produced it."""

    index: int = Field(..., ge=0, description="Position within the recognition batch")
    text: str
    canonical: str
    interval: YInterval
    indent_level: int = 0
    parent: Optional[int] = None
    stroke_ids: frozenset[str] = Field(default_factory=frozenset)

    @property
    def has_strokes(self) -> bool:
        return bool(self.stroke_ids)
