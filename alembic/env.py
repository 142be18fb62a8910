"""Alembic migrations for the FeedWatch pipeline state table."""

from __future__ import annotations

from logging.config import fileConfig
from typing import Any

from sqlalchemy import create_engine, pool

from alembic import context  # type: ignore[import-untyped]
from feedwatch.models.base import DEFAULT_DATABASE_URL, Base
from feedwatch.models.state_entry import PipelineStateEntry  # noqa: F401
from feedwatch.utils.config import get_settings

if context.config.config_file_name is not None:
    fileConfig(context.config.config_file_name)

# FEEDWATCH_DATABASE_URL wins over sqlalchemy.url in alembic.ini
DATABASE_URL = (
    get_settings().database_url
    or context.config.get_main_option("sqlalchemy.url")
    or DEFAULT_DATABASE_URL
)


def _migrate(**options: Any) -> None:
    context.configure(
        target_metadata=Base.metadata,
        compare_type=True,
        render_as_batch=DATABASE_URL.startswith("sqlite"),
        **options,
    )
    with context.begin_transaction():
        context.run_migrations()


if context.is_offline_mode():
    _migrate(url=DATABASE_URL, literal_binds=True)
else:
    engine = create_engine(DATABASE_URL, poolclass=pool.NullPool)
    with engine.connect() as connection:
        _migrate(connection=connection)
