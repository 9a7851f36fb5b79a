"""Tests for the SQL document store (SQLite via aiosqlite)."""

import asyncio

import pytest

from penbridge.errors import InvariantViolation, StoreWriteError
from penbridge.models import PageRef, YInterval, is_bridge_uuid
from penbridge.pipeline import ReconcileContext, reconcile_lines
from penbridge.storage import (
    BlockORM,
    SqlDocumentStore,
    close_db,
    create_engine,
    create_session_factory,
    init_db,
)


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'penbridge.db'}"


def with_store(database_url, scenario):
    """Run ``scenario(store)`` against a freshly initialized database."""

    async def runner():
        engine = create_engine(database_url)
        try:
            await init_db(engine)
            return await scenario(SqlDocumentStore(create_session_factory(engine)))
        finally:
            await close_db(engine)

    return asyncio.run(runner())


class TestBlocks:
    """Block CRUD through SqlDocumentStore."""

    def test_create_and_list(self, database_url, page):
        async def scenario(store):
            first = await store.create_block(
                page, "Meeting notes", "meetingnotes", YInterval(min_y=100, max_y=120)
            )
            second = await store.create_block(
                page, "Call Alice", "callalice", YInterval(min_y=150, max_y=170),
                indent_level=1, parent_uuid=first,
            )
            await store.create_block(
                PageRef(book=1, page=1), "Elsewhere", "elsewhere", YInterval(min_y=0, max_y=10)
            )
            return first, second, await store.list_blocks(page)

        first, second, blocks = with_store(database_url, scenario)

        assert [b.uuid for b in blocks] == [first, second]
        assert blocks[0].seq < blocks[1].seq
        assert all(is_bridge_uuid(b.uuid) for b in blocks)
        assert blocks[0].interval == YInterval(min_y=100, max_y=120)
        assert blocks[1].parent_uuid == first
        assert blocks[1].indent_level == 1

    def test_update_keeps_interval(self, database_url, page):
        async def scenario(store):
            uuid = await store.create_block(
                page, "Old", "old", YInterval(min_y=100, max_y=120)
            )
            await store.update_block(uuid, "New text", "newtext", indent_level=2)
            return await store.list_blocks(page)

        [block] = with_store(database_url, scenario)

        assert block.content == "New text"
        assert block.canonical == "newtext"
        assert block.indent_level == 2
        assert block.interval == YInterval(min_y=100, max_y=120)

    def test_update_missing_block(self, database_url):
        async def scenario(store):
            await store.update_block("missing", "x", "x")

        with pytest.raises(StoreWriteError) as excinfo:
            with_store(database_url, scenario)
        assert excinfo.value.block_uuid == "missing"

    def test_delete(self, database_url, page):
        async def scenario(store):
            uuid = await store.create_block(page, "Bye", "bye", YInterval(min_y=0, max_y=10))
            await store.delete_block(uuid)
            await store.delete_block(uuid)
            return await store.list_blocks(page)

        assert with_store(database_url, scenario) == []


class TestStrokeSnapshot:
    """Per-page stroke snapshot."""

    def test_save_and_load(self, database_url, page, three_line_strokes):
        three_line_strokes[0].block_uuid = "blk-1"

        async def scenario(store):
            await store.save_strokes(page, three_line_strokes)
            return await store.list_stroke_ids(page), await store.load_strokes(page)

        ids, loaded = with_store(database_url, scenario)

        assert ids == {s.id for s in three_line_strokes}
        assert loaded[0].id == "s1000"
        assert loaded[0].block_uuid == "blk-1"
        assert loaded[0].points == three_line_strokes[0].points

    def test_save_replaces_snapshot(self, database_url, page, three_line_strokes):
        async def scenario(store):
            await store.save_strokes(page, three_line_strokes)
            await store.save_strokes(page, three_line_strokes[:2])
            return await store.list_stroke_ids(page)

        assert with_store(database_url, scenario) == {"s1000", "s1001"}


class TestReconcileOnSql:
    """Reconciliation passes against the SQL store."""

    def test_save_then_resave(self, database_url, page, three_line_strokes, three_lines):
        async def scenario(store):
            context = ReconcileContext(page=page, store=store)
            first = await reconcile_lines(context, three_line_strokes, three_lines)
            second = await reconcile_lines(context, three_line_strokes, three_lines)
            return first, second, await store.load_strokes(page)

        first, second, persisted = with_store(database_url, scenario)

        assert first.report.created == 3
        assert second.report.skipped == 3
        assert second.report.block_writes == 0
        assert not second.report.strokes_saved
        assert {(s.id, s.block_uuid) for s in persisted} == {
            (s.id, s.block_uuid) for s in three_line_strokes
        }


class TestBlockORM:
    """Write-once interval on the ORM model."""

    def test_interval_cannot_change(self):
        block = BlockORM(uuid="u", book=1, page=1, content="x", min_y=1.0, max_y=2.0)

        with pytest.raises(InvariantViolation):
            block.min_y = 5.0

    def test_same_value_allowed(self):
        block = BlockORM(uuid="u", book=1, page=1, content="x", min_y=1.0, max_y=2.0)

        block.max_y = 2.0

        assert block.max_y == 2.0
