"""Storage backends for Memo Keeper."""

from memoapp.storage.base import MEMOS, VERSIONS, KeyValueStore
from memoapp.storage.sql import SQLStore

__all__ = ["MEMOS", "VERSIONS", "KeyValueStore", "SQLStore"]
