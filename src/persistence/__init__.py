"""
Persistence package - key/value backends and the flow snapshot store.
"""
from .key_value import KeyValueStore, InMemoryKeyValueStore, SqlKeyValueStore
from .progress_store import PersistenceStore

__all__ = [
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "SqlKeyValueStore",
    "PersistenceStore",
]
