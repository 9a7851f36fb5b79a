"""Persisted block models for the external document store."""

import uuid
from typing import Optional

from pydantic import Field

from .base import PageRef, TimestampedModel, YInterval

BRIDGE_UUID_MARKER = "b12d"


def generate_block_uuid() -> str:
    """Generate a block UUID tagged as bridge-created.

    The first four characters of the last segment are replaced with
    ``b12d`` so blocks written by the bridge can be told apart from
    blocks the user created by hand.
    """
    parts = str(uuid.uuid4()).split("-")
    parts[4] = BRIDGE_UUID_MARKER + parts[4][4:]
    return "-".join(parts)


def is_bridge_uuid(value: Optional[str]) -> bool:
    """Check whether ``value`` was produced by :func:`generate_block_uuid`."""
    if not value or not isinstance(value, str):
        return False
    parts = value.split("-")
    return len(parts) == 5 and parts[4].startswith(BRIDGE_UUID_MARKER)


class PersistedBlock(TimestampedModel):
    """A text block in the document store.

    ``interval`` is written once at creation and is the anchor used to
    re-match the block in later sessions. ``canonical`` is always derived
    from recognizer (or bridge editor) text, never from the user's edits
    made directly in the store, so those edits survive re-saves.
    """

    uuid: str
    page: PageRef
    content: str = Field(..., description="Current text, possibly user-edited")
    canonical: Optional[str] = Field(
        None, description="Canonical key of the last bridge-written text"
    )
    interval: YInterval = Field(..., frozen=True)
    indent_level: int = Field(default=0, ge=0)
    parent_uuid: Optional[str] = None
    seq: int = Field(
        ..., ge=0, description="Creation order; lower wins tie-breaks"
    )
