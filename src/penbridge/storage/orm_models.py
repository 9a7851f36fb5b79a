"""SQLAlchemy ORM models for the smartpen bridge.

These models define the database schema for persisted blocks and the
per-page stroke snapshot. Column types are portable so the same schema
runs on PostgreSQL and SQLite.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, validates

from penbridge.errors import InvariantViolation

from .database import Base


class BlockORM(Base):
    """Block table - text blocks written by the bridge."""

    __tablename__ = "blocks"

    # Creation order; tie-breaker for matching
    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uuid: Mapped[str] = mapped_column(String(36), nullable=False, unique=True)

    # Page
    book: Mapped[int] = mapped_column(Integer, nullable=False)
    page: Mapped[int] = mapped_column(Integer, nullable=False)

    # Content
    content: Mapped[str] = mapped_column(Text, nullable=False)
    canonical: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    indent_level: Mapped[int] = mapped_column(Integer, default=0)
    parent_uuid: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    # Creation-time interval (write once)
    min_y: Mapped[float] = mapped_column(Float, nullable=False)
    max_y: Mapped[float] = mapped_column(Float, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_blocks_book_page", "book", "page"),
        {"sqlite_autoincrement": True},
    )

    @validates("min_y", "max_y")
    def _interval_write_once(self, key: str, value: float) -> float:
        current = getattr(self, key, None)
        if current is not None and current != value:
            raise InvariantViolation(
                f"Block {self.uuid} {key} is fixed at creation ({current}), got {value}"
            )
        return value


class StrokeORM(Base):
    """Stroke table - simplified projection of each page's live strokes."""

    __tablename__ = "strokes"

    book: Mapped[int] = mapped_column(Integer, primary_key=True)
    page: Mapped[int] = mapped_column(Integer, primary_key=True)
    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    start_time: Mapped[int] = mapped_column(BigInteger, nullable=False)
    end_time: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    # [[x, y, t], ...]
    points: Mapped[list] = mapped_column(JSON, nullable=False)
    block_uuid: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_strokes_block_uuid", "block_uuid"),
    )
