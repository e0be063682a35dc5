"""Database layer for axiom-log."""

from .engine import get_db_path, init_db
from .repositories import CollectionRepository, MetaRepository
from .store import EntryLogStore

__all__ = [
    "CollectionRepository",
    "EntryLogStore",
    "get_db_path",
    "init_db",
    "MetaRepository",
]
