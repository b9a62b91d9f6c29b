# ruff: noqa: I001
"""
Alembic environment for the ledger tables owned by the `db` library.

Run from ``libs/db`` (``alembic upgrade head``). The target database is
``DATABASE_URL`` from the environment or a workspace ``.env``; when neither is
set, ``sqlalchemy.url`` from ``alembic.ini`` is used. SQLite targets get batch
mode so constraint changes can be migrated by table copy.
"""

from __future__ import annotations

import os
from logging.config import fileConfig
from typing import Any

from alembic import context
from dotenv import find_dotenv, load_dotenv
from sqlalchemy import engine_from_config, pool

from db import metadata as target_metadata

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def _database_url() -> str:
    # ``usecwd`` lets a repo-level .env apply when running from libs/db.
    env_file = find_dotenv(usecwd=True)
    if env_file:
        load_dotenv(dotenv_path=env_file, override=False)
    url = os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url")
    if not url:
        raise RuntimeError(
            "No database configured: set DATABASE_URL or sqlalchemy.url in alembic.ini"
        )
    return url


def _configure(url: str, **kwargs: Any) -> None:
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=url.startswith("sqlite"),
        **kwargs,
    )


def migrate_offline(url: str) -> None:
    """Emit SQL for the pending revisions instead of executing it."""

    _configure(url, url=url, literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def migrate_online(url: str) -> None:
    engine_config = dict(config.get_section(config.config_ini_section) or {})
    engine_config["sqlalchemy.url"] = url
    engine = engine_from_config(engine_config, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with engine.connect() as connection:
        _configure(url, connection=connection)
        with context.begin_transaction():
            context.run_migrations()


_url = _database_url()
if context.is_offline_mode():
    migrate_offline(_url)
else:
    migrate_online(_url)
