"""Storage layer for the smartpen bridge.

Provides the document store interface and a SQLAlchemy implementation
(PostgreSQL via asyncpg, or SQLite via aiosqlite).
"""

from .base import DocumentStore
from .database import (
    Base,
    close_db,
    create_engine,
    create_session_factory,
    engine_from_settings,
    get_session,
    init_db,
)
from .orm_models import (
    BlockORM,
    StrokeORM,
)
from .repositories import (
    BlockRepository,
    StrokeRepository,
    block_from_orm,
)
from .sql_store import SqlDocumentStore

__all__ = [
    # Interface
    "DocumentStore",
    # Database
    "Base",
    "create_engine",
    "create_session_factory",
    "engine_from_settings",
    "get_session",
    "init_db",
    "close_db",
    # ORM Models
    "BlockORM",
    "StrokeORM",
    # Repositories
    "BlockRepository",
    "StrokeRepository",
    "block_from_orm",
    # Stores
    "SqlDocumentStore",
]
