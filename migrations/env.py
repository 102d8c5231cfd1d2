from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool
from alembic import context

# Alembic Config object — access to alembic.ini values.
config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# ── Metadata ──────────────────────────────────────────────────────────────────
# The documents table is the only schema; autogenerate diffs against it.
from models import db  # noqa: E402
target_metadata = db.metadata

# ── Database URL ──────────────────────────────────────────────────────────────
# Same source and postgres:// fix-up as the running app.
from config import DATABASE_URL  # noqa: E402
from database import _safe_db_url  # noqa: E402

config.set_main_option('sqlalchemy.url', _safe_db_url(DATABASE_URL))


def run_migrations_offline() -> None:
    """Emit SQL for the documents schema without connecting."""
    context.configure(
        url=config.get_main_option('sqlalchemy.url'),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={'paramstyle': 'named'},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix='sqlalchemy.',
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=connection.dialect.name == 'sqlite',
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
