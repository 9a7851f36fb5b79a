"""Pytest configuration and fixtures."""

from collections import Counter
from typing import Optional, Sequence

import pytest

from penbridge.errors import StoreWriteError
from penbridge.models import (
    PageRef,
    PersistedBlock,
    RecognizedLine,
    Stroke,
    YInterval,
    generate_block_uuid,
)
from penbridge.pipeline import ReconcileContext, canonicalize

# Three lines, 30 units apart vertically
LINE_LAYOUT = [
    ("Meeting notes", 100.0, 120.0),
    ("Call Alice", 150.0, 170.0),
    ("Buy milk", 200.0, 220.0),
]


class FakeDocumentStore:
    """In-memory document store that counts writes and fails on demand."""

    def __init__(self):
        self.blocks: dict[str, PersistedBlock] = {}
        self.snapshots: dict[PageRef, list[dict]] = {}
        self.writes: Counter = Counter()
        self.fail_create_texts: set[str] = set()
        self.fail_update_uuids: set[str] = set()
        self.fail_save = False
        self._seq = 0

    @property
    def block_writes(self) -> int:
        return self.writes["create"] + self.writes["update"] + self.writes["delete"]

    def user_edit(self, block_uuid: str, content: str) -> None:
        """Simulate the user editing a block directly in the knowledge base."""
        self.blocks[block_uuid] = self.blocks[block_uuid].model_copy(update={"content": content})

    async def list_blocks(self, page: PageRef) -> list[PersistedBlock]:
        return sorted(
            (b for b in self.blocks.values() if b.page == page), key=lambda b: b.seq
        )

    async def create_block(
        self,
        page: PageRef,
        text: str,
        canonical: str,
        interval: YInterval,
        indent_level: int = 0,
        parent_uuid: Optional[str] = None,
    ) -> str:
        if text in self.fail_create_texts:
            raise StoreWriteError(f"refused to create {text!r}")
        self._seq += 1
        block = PersistedBlock(
            uuid=generate_block_uuid(),
            page=page,
            content=text,
            canonical=canonical,
            interval=interval,
            indent_level=indent_level,
            parent_uuid=parent_uuid,
            seq=self._seq,
        )
        self.blocks[block.uuid] = block
        self.writes["create"] += 1
        return block.uuid

    async def update_block(
        self,
        block_uuid: str,
        text: str,
        canonical: str,
        indent_level: Optional[int] = None,
    ) -> None:
        if block_uuid in self.fail_update_uuids or block_uuid not in self.blocks:
            raise StoreWriteError("update refused", block_uuid=block_uuid)
        update = {"content": text, "canonical": canonical}
        if indent_level is not None:
            update["indent_level"] = indent_level
        self.blocks[block_uuid] = self.blocks[block_uuid].model_copy(update=update)
        self.writes["update"] += 1

    async def delete_block(self, block_uuid: str) -> None:
        self.blocks.pop(block_uuid, None)
        self.writes["delete"] += 1

    async def list_stroke_ids(self, page: PageRef) -> set[str]:
        return {r["id"] for r in self.snapshots.get(page, [])}

    async def load_strokes(self, page: PageRef) -> list[Stroke]:
        return [Stroke.from_storage(r, page) for r in self.snapshots.get(page, [])]

    async def save_strokes(self, page: PageRef, strokes: Sequence[Stroke]) -> None:
        if self.fail_save:
            raise StoreWriteError("snapshot write refused")
        self.snapshots[page] = [s.to_storage() for s in strokes]
        self.writes["save_strokes"] += 1


def build_stroke(
    page: PageRef, start_time: int, min_y: float, max_y: float, x: float = 10.0
) -> Stroke:
    """A three-point stroke spanning ``min_y``..``max_y``."""
    mid = (min_y + max_y) / 2
    return Stroke.from_pen(
        [(x, min_y, 0.0), (x + 4, mid, 1.0), (x + 8, max_y, 2.0)],
        page=page,
        start_time=start_time,
        end_time=start_time + 2,
    )


def build_line(text: str, min_y: float, max_y: float, indent_level: int = 0) -> RecognizedLine:
    return RecognizedLine(
        text=text,
        interval=YInterval(min_y=min_y, max_y=max_y),
        indent_level=indent_level,
    )


def strokes_for_line(page: PageRef, line_no: int, min_y: float, max_y: float) -> list[Stroke]:
    """Three strokes drawn inside a line's band."""
    base = 1000 + line_no * 10
    return [
        build_stroke(page, base + j, min_y + 2, max_y - 2, x=10.0 + j * 20)
        for j in range(3)
    ]


@pytest.fixture
def page():
    """The notebook page most tests work on."""
    return PageRef(book=3017, page=42)


@pytest.fixture
def store():
    """Fresh in-memory document store."""
    return FakeDocumentStore()


@pytest.fixture
def context(page, store):
    """Reconcile context over the fake store."""
    return ReconcileContext(page=page, store=store)


@pytest.fixture
def make_stroke():
    """Factory for single strokes."""
    return build_stroke


@pytest.fixture
def make_line():
    """Factory for recognized lines."""
    return build_line


@pytest.fixture
def make_block(page):
    """Factory for persisted blocks on the default page."""

    def _make(
        uuid: str,
        text: str,
        min_y: float,
        max_y: float,
        seq: int,
        canonical: Optional[str] = "",
    ) -> PersistedBlock:
        return PersistedBlock(
            uuid=uuid,
            page=page,
            content=text,
            canonical=canonicalize(text) if canonical == "" else canonical,
            interval=YInterval(min_y=min_y, max_y=max_y),
            seq=seq,
        )

    return _make


@pytest.fixture
def three_line_strokes(page):
    """Nine strokes, three per line of LINE_LAYOUT."""
    strokes = []
    for line_no, (_, min_y, max_y) in enumerate(LINE_LAYOUT):
        strokes.extend(strokes_for_line(page, line_no, min_y, max_y))
    return strokes


@pytest.fixture
def three_lines():
    """Recognizer lines for the strokes in ``three_line_strokes``."""
    return [build_line(text, min_y, max_y) for text, min_y, max_y in LINE_LAYOUT]


@pytest.fixture
def recognition_response():
    """Raw recognizer response for the three test lines."""
    words = []
    for index, (text, min_y, max_y) in enumerate(LINE_LAYOUT):
        if index:
            words.append({"label": "\n"})
        x = 10.0
        for w, word in enumerate(text.split()):
            if w:
                words.append({"label": " "})
            words.append(
                {
                    "label": word,
                    "bounding-box": {
                        "x": x,
                        "y": min_y,
                        "width": 40.0,
                        "height": max_y - min_y,
                    },
                }
            )
            x += 50.0
    return {"label": "\n".join(entry[0] for entry in LINE_LAYOUT), "words": words}
