"""Alembic environment configuration"""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool
from sqlmodel import SQLModel

from retail_api.core.config import get_settings
import retail_api.models  # noqa: F401  registers every table on SQLModel.metadata

# this is the Alembic Config object
config = context.config

# Interpret the config file for Python logging
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = SQLModel.metadata

# Materialized views and their source table are managed by hand-written migrations
HAND_MANAGED_TABLES = {
    "store_profiles",
    "directory_listings_list",
    "directory_category_listings",
    "directory_featured_products",
}


def include_object(obj, name, type_, reflected, compare_to):
    return not (type_ == "table" and name in HAND_MANAGED_TABLES)


def get_url():
    """Get database URL from config, falling back to settings"""
    return config.get_main_option("sqlalchemy.url") or get_settings().DATABASE_URL


def run_migrations_offline():
    """Run migrations in 'offline' mode"""
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        include_object=include_object,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    """Run migrations in 'online' mode"""
    connectable = create_engine(get_url(), poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            include_object=include_object,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
