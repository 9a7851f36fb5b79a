"""Data models for the smartpen bridge.

This module defines the Pydantic models that flow through a reconciliation
pass. All models support JSON serialization; persisted ones support
SQLAlchemy loading via `from_attributes = True`.

Key Design Principles:
1. Strokes own geometry; only block association and soft-delete change
2. Block intervals are written once, at creation
3. Canonical keys come from bridge-written text, never from user edits
4. Actions are tagged variants, not ad hoc property checks

Model Hierarchy:
- Page → Strokes → (block association) → PersistedBlock
- RecognitionResult → RecognizedLines → EstimatedLines → Actions
"""

from .action import (
    CreateAction,
    OrphanAction,
    ReconciliationAction,
    SkipAction,
    UpdateAction,
    count_actions,
)
from .base import (
    ActionType,
    PageRef,
    TimestampedModel,
    YInterval,
)
from .block import (
    PersistedBlock,
    generate_block_uuid,
    is_bridge_uuid,
)
from .changes import (
    ChangeSet,
    ChangeSummary,
)
from .line import (
    EstimatedLine,
    RecognitionCommand,
    RecognitionResult,
    RecognizedLine,
)
from .stroke import (
    Point,
    Stroke,
    StrokeBounds,
    active_page_strokes,
    calculate_bounds,
    deduplicate_strokes,
    make_stroke_id,
)

__all__ = [
    # Base types
    "ActionType",
    "PageRef",
    "TimestampedModel",
    "YInterval",
    # Stroke
    "Point",
    "Stroke",
    "StrokeBounds",
    "active_page_strokes",
    "calculate_bounds",
    "deduplicate_strokes",
    "make_stroke_id",
    # Line
    "EstimatedLine",
    "RecognitionCommand",
    "RecognitionResult",
    "RecognizedLine",
    # Block
    "PersistedBlock",
    "generate_block_uuid",
    "is_bridge_uuid",
    # Actions
    "CreateAction",
    "OrphanAction",
    "ReconciliationAction",
    "SkipAction",
    "UpdateAction",
    "count_actions",
    # Changes
    "ChangeSet",
    "ChangeSummary",
]
