import os
import sys
from logging.config import fileConfig

# -------------------------------------------------
# Ensure project root is on PYTHONPATH
# -------------------------------------------------
sys.path.append(os.getcwd())

from alembic import context
from sqlalchemy import create_engine, pool

# -------------------------------------------------
# Alembic Config
# -------------------------------------------------
config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# -------------------------------------------------
# Load ALL models before metadata
# -------------------------------------------------
from tradejournal.config import get_settings
from tradejournal.db.database import Base
import tradejournal.models  # noqa: F401  forces model registration

target_metadata = Base.metadata


# -------------------------------------------------
# Database URL helper
# -------------------------------------------------
def get_database_url() -> str:
    """
    Same URL the app uses (DATABASE_URL / TRADE_JOURNAL_DATABASE_URL),
    converted to a synchronous driver for Alembic.
    """
    url = get_settings().database_url

    if url.startswith("postgresql+asyncpg://"):
        url = url.replace("postgresql+asyncpg://", "postgresql://", 1)
    elif url.startswith("sqlite+aiosqlite://"):
        url = url.replace("sqlite+aiosqlite://", "sqlite://", 1)

    return url


# -------------------------------------------------
# Offline migrations
# -------------------------------------------------
def run_migrations_offline() -> None:
    context.configure(
        url=get_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


# -------------------------------------------------
# Online migrations
# -------------------------------------------------
def run_migrations_online() -> None:
    engine = create_engine(get_database_url(), poolclass=pool.NullPool)

    with engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
        )

        with context.begin_transaction():
            context.run_migrations()


# -------------------------------------------------
# Entrypoint
# -------------------------------------------------
if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
