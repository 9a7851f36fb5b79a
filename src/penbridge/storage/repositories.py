"""Repository layer for database CRUD operations."""

from typing import Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from penbridge.models import PageRef, PersistedBlock, Stroke, YInterval

from .orm_models import BlockORM, StrokeORM


def block_from_orm(orm_block: BlockORM) -> PersistedBlock:
    """Convert a block row to the domain model."""
    return PersistedBlock(
        uuid=orm_block.uuid,
        page=PageRef(book=orm_block.book, page=orm_block.page),
        content=orm_block.content,
        canonical=orm_block.canonical,
        interval=YInterval(min_y=orm_block.min_y, max_y=orm_block.max_y),
        indent_level=orm_block.indent_level or 0,
        parent_uuid=orm_block.parent_uuid,
        seq=orm_block.seq,
        created_at=orm_block.created_at,
        updated_at=orm_block.updated_at,
    )


class BlockRepository:
    """Repository for Block operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        block_uuid: str,
        page: PageRef,
        content: str,
        canonical: str,
        interval: YInterval,
        indent_level: int = 0,
        parent_uuid: Optional[str] = None,
    ) -> BlockORM:
        """Create a new block record."""
        orm_block = BlockORM(
            uuid=block_uuid,
            book=page.book,
            page=page.page,
            content=content,
            canonical=canonical,
            min_y=interval.min_y,
            max_y=interval.max_y,
            indent_level=indent_level,
            parent_uuid=parent_uuid,
        )
        self.session.add(orm_block)
        await self.session.flush()
        return orm_block

    async def get_by_uuid(self, block_uuid: str) -> Optional[BlockORM]:
        """Get block by UUID."""
        result = await self.session.execute(
            select(BlockORM).where(BlockORM.uuid == block_uuid)
        )
        return result.scalar_one_or_none()

    async def get_page_blocks(self, page: PageRef) -> Sequence[BlockORM]:
        """Get all blocks for a page in creation order."""
        result = await self.session.execute(
            select(BlockORM)
            .where(BlockORM.book == page.book)
            .where(BlockORM.page == page.page)
            .order_by(BlockORM.seq)
        )
        return result.scalars().all()

    async def update_text(
        self,
        block_uuid: str,
        content: str,
        canonical: str,
        indent_level: Optional[int] = None,
    ) -> bool:
        """Update text and canonical key. Returns False if the block is gone."""
        block = await self.get_by_uuid(block_uuid)
        if block is None:
            return False
        block.content = content
        block.canonical = canonical
        if indent_level is not None:
            block.indent_level = indent_level
        await self.session.flush()
        return True

    async def delete(self, block_uuid: str) -> bool:
        """Delete a block. Returns False if it did not exist."""
        result = await self.session.execute(
            delete(BlockORM).where(BlockORM.uuid == block_uuid)
        )
        return result.rowcount > 0


class StrokeRepository:
    """Repository for the per-page stroke snapshot."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_page_strokes(self, page: PageRef) -> Sequence[StrokeORM]:
        """Get the persisted strokes of a page in capture order."""
        result = await self.session.execute(
            select(StrokeORM)
            .where(StrokeORM.book == page.book)
            .where(StrokeORM.page == page.page)
            .order_by(StrokeORM.start_time)
        )
        return result.scalars().all()

    async def get_page_stroke_ids(self, page: PageRef) -> set[str]:
        """Get the ids in a page's snapshot."""
        result = await self.session.execute(
            select(StrokeORM.id)
            .where(StrokeORM.book == page.book)
            .where(StrokeORM.page == page.page)
        )
        return set(result.scalars().all())

    async def replace_page(self, page: PageRef, strokes: Sequence[Stroke]) -> int:
        """Replace a page's snapshot with ``strokes``. Returns rows written."""
        await self.session.execute(
            delete(StrokeORM)
            .where(StrokeORM.book == page.book)
            .where(StrokeORM.page == page.page)
        )
        rows = []
        for stroke in strokes:
            record = stroke.to_storage()
            rows.append(
                StrokeORM(
                    book=page.book,
                    page=page.page,
                    id=record["id"],
                    start_time=record["startTime"],
                    end_time=record["endTime"],
                    points=record["points"],
                    block_uuid=record["blockUuid"],
                )
            )
        self.session.add_all(rows)
        await self.session.flush()
        return len(rows)

    def to_strokes(self, page: PageRef, rows: Sequence[StrokeORM]) -> list[Stroke]:
        """Rebuild domain strokes from snapshot rows."""
        return [
            Stroke.from_storage(
                {
                    "id": row.id,
                    "startTime": row.start_time,
                    "endTime": row.end_time,
                    "points": row.points,
                    "blockUuid": row.block_uuid,
                },
                page,
            )
            for row in rows
        ]
