"""
Key-value persistence substrates.

- base: KeyValueStore interface and change notifications
- memory_store: in-process dictionary store
- file_store: JSON file store under the data directory
"""

from tabkeeper.storage.base import KeyValueStore, StorageChange
from tabkeeper.storage.file_store import JsonFileStore
from tabkeeper.storage.memory_store import MemoryKeyValueStore

__all__ = ["KeyValueStore", "StorageChange", "JsonFileStore", "MemoryKeyValueStore"]
