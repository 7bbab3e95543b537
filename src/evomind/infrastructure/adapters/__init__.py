# Infrastructure Store Adapters Package
from .memory_store import (
    InMemoryCardStore,
    InMemoryDatabase,
    InMemorySessionStore,
    InMemoryUnitOfWork,
)
from .sqlite_store import SqliteCardStore, SqliteDatabase, SqliteSessionStore, SqliteUnitOfWork

__all__ = [
    "InMemoryDatabase",
    "InMemoryCardStore",
    "InMemorySessionStore",
    "InMemoryUnitOfWork",
    "SqliteDatabase",
    "SqliteCardStore",
    "SqliteSessionStore",
    "SqliteUnitOfWork",
]
