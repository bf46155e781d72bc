from __future__ import annotations
from logging.config import fileConfig
from sqlalchemy import engine_from_config, pool
from alembic import context
import os, sys

# serviceops lives one level up from migrations/
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from serviceops.config.settings import load_settings  # noqa: E402
from serviceops.models.authz import Base  # noqa: E402
import serviceops.models.audit  # noqa: E402,F401
import serviceops.models.targets  # noqa: E402,F401

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# same DATABASE_URL resolution as the app factory
database_url = load_settings()['DATABASE_URL']
config.set_main_option('sqlalchemy.url', database_url)
# SQLite cannot ALTER most constraints in place
render_as_batch = database_url.startswith('sqlite')

target_metadata = Base.metadata


def run_migrations_offline():
    context.configure(
        url=database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        render_as_batch=render_as_batch,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix='sqlalchemy.',
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=render_as_batch,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
