"""
Alembic environment configuration for the ledger database.
"""

import asyncio
import os
from logging.config import fileConfig
from pathlib import Path

import toml
from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine
from sqlmodel import SQLModel

# Import the ledger models to ensure they're registered with SQLModel
from core.db import models  # noqa: F401

project_root = Path(__file__).parent.parent.parent.parent

# this is the Alembic Config object
config = context.config

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = SQLModel.metadata


def get_database_url():
    """Get database URL from configuration or environment."""
    db_url = os.getenv("DATABASE_URL")
    if db_url:
        return db_url

    # Try to read from processor config file directly
    for config_path in (project_root / "processor.toml", project_root / "config" / "processor.toml"):
        if config_path.exists():
            try:
                config_data = toml.load(config_path)
            except (OSError, toml.TomlDecodeError):
                continue
            if config_data.get("database_url"):
                return config_data["database_url"]

    # Fallback to alembic config
    return config.get_main_option("sqlalchemy.url")


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    url = get_database_url()
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    """Run migrations with database connection."""
    context.configure(connection=connection, target_metadata=target_metadata)

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """Run migrations asynchronously."""
    url = get_database_url()

    # Convert to async URL if needed
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    elif url.startswith("sqlite://"):
        url = url.replace("sqlite://", "sqlite+aiosqlite://", 1)

    connectable = create_async_engine(
        url,
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
