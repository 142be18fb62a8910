"""Key/value store protocol used for pipeline state persistence."""

from __future__ import annotations

import json
from typing import Any, Protocol, runtime_checkable

from ..exceptions import StateStoreError


@runtime_checkable
class KeyValueStore(Protocol):
    """String-keyed, string-valued store. ``get`` returns None for missing keys."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class NamespacedStore:
    """
    Prefix every key with a fixed namespace and (de)serialize values as JSON.

    Example:
        store = NamespacedStore(InMemoryKeyValueStore(), "station_monitoring_")
        store.write("station_status", {"S1": {...}})
    """

    def __init__(self, backend: KeyValueStore, namespace: str = "station_monitoring_") -> None:
        self.backend = backend
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}{key}"

    def read(self, key: str, default: Any = None) -> Any:
        raw = self.backend.get(self._key(key))
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StateStoreError(f"Stored value for '{key}' is not valid JSON: {exc}") from exc

    def write(self, key: str, value: Any) -> int:
        """Serialize and store ``value``. Returns the stored size in characters."""

        try:
            encoded = json.dumps(value, default=str)
        except (TypeError, ValueError) as exc:
            raise StateStoreError(f"Cannot serialize value for '{key}': {exc}") from exc
        self.backend.set(self._key(key), encoded)
        return len(encoded)

    def delete(self, key: str) -> None:
        self.backend.delete(self._key(key))

    def size_of(self, key: str) -> int:
        raw = self.backend.get(self._key(key))
        return len(raw) if raw is not None else 0
