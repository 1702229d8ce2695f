"""Core storage - key-value persistence collaborator."""

from core.storage.kv_store import (
    KeyValueStore,
    InMemoryKeyValueStore,
    FileKeyValueStore,
    namespaced_key,
)

__all__ = [
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "FileKeyValueStore",
    "namespaced_key",
]
