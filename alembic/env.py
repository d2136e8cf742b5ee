import sys
import warnings
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import engine_from_config, pool
from sqlalchemy.exc import SAWarning

sys.path.append(str(Path(__file__).resolve().parents[1]))

from daycare.db import Base, BuildAdminConnectionUrl  # noqa: E402
from daycare.modules.attendance import models as attendance_models  # noqa: E402,F401
from daycare.modules.auth import models as auth_models  # noqa: E402,F401
from daycare.modules.children import models as children_models  # noqa: E402,F401

# alembic_version lives beside the read-only reference tables.
VERSION_TABLE_SCHEMA = "ref"

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

# Newer SQL Server builds report versions SQLAlchemy does not recognise yet.
warnings.filterwarnings("ignore", message="Unrecognized server version info", category=SAWarning)


def _database_url() -> str:
    return config.get_main_option("sqlalchemy.url") or BuildAdminConnectionUrl()


def _context_options() -> dict:
    return {
        "target_metadata": Base.metadata,
        "include_schemas": True,
        "version_table_schema": VERSION_TABLE_SCHEMA,
    }


def run_migrations_offline() -> None:
    context.configure(
        url=_database_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_context_options(),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    section = config.get_section(config.config_ini_section) or {}
    section["sqlalchemy.url"] = _database_url()
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(connection=connection, **_context_options())
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
