"""SQLAlchemy-backed key/value store over the ``pipeline_state`` table."""

from __future__ import annotations

from collections.abc import Callable
from contextlib import AbstractContextManager

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import StateStoreError
from ..models.base import session_scope
from ..models.state_entry import PipelineStateEntry


class SqlKeyValueStore:
    """Persist namespaced state rows through a managed SQLAlchemy session."""

    def __init__(
        self,
        session_factory: Callable[[], AbstractContextManager[Session]] = session_scope,
    ) -> None:
        self._session_scope = session_factory

    def get(self, key: str) -> str | None:
        try:
            with self._session_scope() as session:
                entry = session.get(PipelineStateEntry, key)
                return entry.value if entry is not None else None
        except SQLAlchemyError as exc:
            raise StateStoreError(f"Failed to read state key '{key}': {exc}") from exc

    def set(self, key: str, value: str) -> None:
        try:
            with self._session_scope() as session:
                entry = session.get(PipelineStateEntry, key)
                if entry is None:
                    session.add(PipelineStateEntry(key=key, value=value))
                else:
                    entry.value = value
        except SQLAlchemyError as exc:
            raise StateStoreError(f"Failed to write state key '{key}': {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            with self._session_scope() as session:
                session.execute(delete(PipelineStateEntry).where(PipelineStateEntry.key == key))
        except SQLAlchemyError as exc:
            raise StateStoreError(f"Failed to delete state key '{key}': {exc}") from exc
