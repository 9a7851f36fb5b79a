"""SQL-backed document store.

Every call runs in its own session and transaction so that one failed
write never poisons the rest of a reconciliation batch.
"""

import logging
from typing import Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from penbridge.errors import StoreWriteError
from penbridge.models import (
    PageRef,
    PersistedBlock,
    Stroke,
    YInterval,
    generate_block_uuid,
)

from .database import get_session
from .repositories import BlockRepository, StrokeRepository, block_from_orm

logger = logging.getLogger(__name__)


class SqlDocumentStore:
    """:class:`DocumentStore` implementation on SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def list_blocks(self, page: PageRef) -> list[PersistedBlock]:
        async with get_session(self.session_factory) as session:
            rows = await BlockRepository(session).get_page_blocks(page)
            return [block_from_orm(row) for row in rows]

    async def create_block(
        self,
        page: PageRef,
        text: str,
        canonical: str,
        interval: YInterval,
        indent_level: int = 0,
        parent_uuid: Optional[str] = None,
    ) -> str:
        block_uuid = generate_block_uuid()
        try:
            async with get_session(self.session_factory) as session:
                await BlockRepository(session).create(
                    block_uuid,
                    page,
                    text,
                    canonical,
                    interval,
                    indent_level=indent_level,
                    parent_uuid=parent_uuid,
                )
        except SQLAlchemyError as e:
            raise StoreWriteError(f"create block on {page} failed: {e}") from e
        logger.debug("Created block %s on %s", block_uuid, page)
        return block_uuid

    async def update_block(
        self,
        block_uuid: str,
        text: str,
        canonical: str,
        indent_level: Optional[int] = None,
    ) -> None:
        try:
            async with get_session(self.session_factory) as session:
                found = await BlockRepository(session).update_text(
                    block_uuid, text, canonical, indent_level=indent_level
                )
        except SQLAlchemyError as e:
            raise StoreWriteError(f"update failed: {e}", block_uuid=block_uuid) from e
        if not found:
            raise StoreWriteError("block not found", block_uuid=block_uuid)

    async def delete_block(self, block_uuid: str) -> None:
        try:
            async with get_session(self.session_factory) as session:
                deleted = await BlockRepository(session).delete(block_uuid)
        except SQLAlchemyError as e:
            raise StoreWriteError(f"delete failed: {e}", block_uuid=block_uuid) from e
        if not deleted:
            logger.debug("Block %s already absent", block_uuid)

    async def list_stroke_ids(self, page: PageRef) -> set[str]:
        async with get_session(self.session_factory) as session:
            return await StrokeRepository(session).get_page_stroke_ids(page)

    async def load_strokes(self, page: PageRef) -> list[Stroke]:
        async with get_session(self.session_factory) as session:
            repo = StrokeRepository(session)
            return repo.to_strokes(page, await repo.get_page_strokes(page))

    async def save_strokes(self, page: PageRef, strokes: Sequence[Stroke]) -> None:
        try:
            async with get_session(self.session_factory) as session:
                written = await StrokeRepository(session).replace_page(page, strokes)
        except SQLAlchemyError as e:
            raise StoreWriteError(f"save strokes for {page} failed: {e}") from e
        logger.debug("Saved %d strokes for %s", written, page)
