"""
Migration environment for the SensorNet database.

The URL is resolved in this order: ``-x db_url=...`` on the command line,
``sqlalchemy.url`` in alembic.ini (or set programmatically), then
``get_settings().DATABASE_URL`` for the current SENSORNET_ENV.
SQLite runs in batch mode so ALTERs are emulated with table copies.
"""

from logging.config import fileConfig

from sqlalchemy import create_engine, pool

from alembic import context
from sensornet_core.config.environments import get_settings
from sensornet_server.adapters.db.sqlalchemy_models import Base

config = context.config
if config.config_file_name is not None and config.attributes.get("configure_logger", True):
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata


def get_url() -> str:
    return (
        context.get_x_argument(as_dictionary=True).get("db_url")
        or config.get_main_option("sqlalchemy.url")
        or get_settings().DATABASE_URL
    )


def _configure_options(url: str) -> dict:
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": url.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    """Emit the migration as SQL without connecting."""
    url = get_url()
    context.configure(url=url, literal_binds=True, dialect_opts={"paramstyle": "named"}, **_configure_options(url))
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = get_url()
    engine = create_engine(url, poolclass=pool.NullPool, future=True)
    with engine.connect() as connection:
        context.configure(connection=connection, **_configure_options(url))
        with context.begin_transaction():
            context.run_migrations()
    engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
