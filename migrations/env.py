"""Alembic environment for the Webchat Guard ledger, organization and audit tables."""
from __future__ import annotations

import os
import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import engine_from_config, pool

# src/ must be importable when alembic is run from the project root.
SRC_ROOT = Path(__file__).resolve().parents[1] / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from webchat_guard.core.settings import settings  # noqa: E402
from webchat_guard.db.session import Base  # noqa: E402

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata
MANAGED_TABLES = frozenset(target_metadata.tables)


def _database_url() -> str:
    """Resolve the migration URL: ALEMBIC_URL, then alembic.ini, then settings."""
    return (
        os.getenv("ALEMBIC_URL")
        or config.get_main_option("sqlalchemy.url")
        or settings.database_url_sync
    )


def include_object(obj, name, type_, reflected, compare_to):
    """Limit autogenerate to tables owned by this service."""
    if type_ == "table":
        return name in MANAGED_TABLES
    return True


def _configure(**kwargs) -> None:
    url = kwargs.pop("url", None) or _database_url()
    context.configure(
        target_metadata=target_metadata,
        include_object=include_object,
        compare_type=True,
        # SQLite cannot ALTER most columns in place.
        render_as_batch=url.startswith("sqlite"),
        url=None if "connection" in kwargs else url,
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit SQL for the ledger schema without a live connection."""
    _configure(literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply migrations against the configured database."""
    section = config.get_section(config.config_ini_section, {})
    section["sqlalchemy.url"] = _database_url()
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        _configure(connection=connection, url=section["sqlalchemy.url"])
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
