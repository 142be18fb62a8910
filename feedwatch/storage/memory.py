"""Dictionary-backed key/value store."""

from __future__ import annotations


class InMemoryKeyValueStore:
    """Process-local store used by tests and single-shot CLI runs."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)
