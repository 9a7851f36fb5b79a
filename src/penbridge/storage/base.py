"""Document store interface consumed by the reconciliation engine."""

from typing import Optional, Protocol, Sequence

from penbridge.models import PageRef, PersistedBlock, Stroke, YInterval


class DocumentStore(Protocol):
    """External store holding text blocks and the per-page stroke snapshot.

    Each call stands alone; no atomicity across calls is assumed. Write
    methods raise :class:`penbridge.errors.StoreWriteError` on failure.
    """

    async def list_blocks(self, page: PageRef) -> list[PersistedBlock]:
        """Blocks on ``page`` in creation order."""
        ...

    async def create_block(
        self,
        page: PageRef,
        text: str,
        canonical: str,
        interval: YInterval,
        indent_level: int = 0,
        parent_uuid: Optional[str] = None,
    ) -> str:
        """Create a block and return its uuid. The only write of ``interval``."""
        ...

    async def update_block(
        self,
        block_uuid: str,
        text: str,
        canonical: str,
        indent_level: Optional[int] = None,
    ) -> None:
        """Rewrite text and canonical key (and indentation when given)."""
        ...

    async def delete_block(self, block_uuid: str) -> None:
        """Remove a block."""
        ...

    async def list_stroke_ids(self, page: PageRef) -> set[str]:
        """Ids in the persisted stroke snapshot for ``page``."""
        ...

    async def load_strokes(self, page: PageRef) -> list[Stroke]:
        """Rebuild strokes from the persisted snapshot for ``page``."""
        ...

    async def save_strokes(self, page: PageRef, strokes: Sequence[Stroke]) -> None:
        """Replace the persisted snapshot for ``page`` with ``strokes``."""
        ...
