import os
import sys
from logging.config import fileConfig

# Project root (parent of the 'coursepath' package) must be importable
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..'))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from sqlalchemy import engine_from_config
from sqlalchemy import pool

from alembic import context

config = context.config

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Importing the models package registers every table on Base.metadata
from coursepath.core.database import Base, ensure_vector_extension
import coursepath.models  # noqa: F401
target_metadata = Base.metadata

from coursepath.core.config import settings


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode.

    Configures the context with just the URL from settings, so no DBAPI
    is needed; context.execute() emits SQL to the script output.
    """
    url = settings.DATABASE_URL
    if not url:
        raise ValueError("DATABASE_URL is not set in the environment or config.")

    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode against settings.DATABASE_URL."""
    db_url = settings.DATABASE_URL
    if not db_url:
        raise ValueError("DATABASE_URL is not set in the environment or config for online migrations.")

    configuration = config.get_section(config.config_ini_section, {})
    configuration['sqlalchemy.url'] = db_url

    connectable = engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection, target_metadata=target_metadata, compare_type=True
        )

        with context.begin_transaction():
            ensure_vector_extension(connection)
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
