"""Persistent key/value stores for pipeline state."""
from .base import KeyValueStore, NamespacedStore
from .memory import InMemoryKeyValueStore
from .sql import SqlKeyValueStore

__all__ = ["InMemoryKeyValueStore", "KeyValueStore", "NamespacedStore", "SqlKeyValueStore"]
