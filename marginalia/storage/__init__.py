"""Persistence: key/value backends and the note lifecycle store."""

from __future__ import annotations

from marginalia.core.settings import Settings, get_settings

from .kv_store import FileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from .note_store import NoteStore
from .sql_store import SqlKeyValueStore


def build_kv_store(settings: Settings | None = None) -> KeyValueStore:
    """Return the key/value backend selected by ``storage_backend``."""
    settings = settings or get_settings()
    if settings.storage_backend == "sql":
        return SqlKeyValueStore(settings.database_url)
    if settings.storage_backend == "memory":
        return MemoryKeyValueStore()
    return FileKeyValueStore(settings.storage_dir)


__all__ = [
    "KeyValueStore",
    "MemoryKeyValueStore",
    "FileKeyValueStore",
    "SqlKeyValueStore",
    "NoteStore",
    "build_kv_store",
]
