"""
iQ-auth Storage - Key/value store contract and backends.
"""

from .core import StorageAdapter, StorageEntry
from .locks import KeyedLock
from .memory import MemoryStorage

__all__ = [
    "StorageAdapter",
    "StorageEntry",
    "MemoryStorage",
    "KeyedLock",
]
