"""Persistent key/value storage."""

from arbseeker.storage.kv import KeyValueStore, MemoryStore, SqliteStore

__all__ = [
    "KeyValueStore",
    "MemoryStore",
    "SqliteStore",
]
