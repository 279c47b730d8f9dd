"""Key-value persistence."""

from pagerbridge.storage.kv import KVStore, SQLiteKVStore

__all__ = ["KVStore", "SQLiteKVStore"]
