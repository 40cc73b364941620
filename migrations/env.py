# migrations/env.py
from alembic import context

from zusplus.core.config import get_settings
from zusplus.core.logging import configure_logging
from zusplus.db.database import Base, make_engine

# Model-Paket registriert alle Tabellen an Base.metadata
import zusplus.models  # noqa: F401

settings = get_settings()
configure_logging(settings.LOG_LEVEL)

target_metadata = Base.metadata

# `alembic -x db_url=sqlite:///./other.db upgrade head` überschreibt DB_URL
DB_URL = context.get_x_argument(as_dictionary=True).get("db_url") or settings.DB_URL


def _configure(**kwargs) -> None:
    # SQLite kann kein ALTER COLUMN, daher Batch-Modus
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=DB_URL.startswith("sqlite"),
        **kwargs,
    )


def run_migrations_offline() -> None:
    """SQL-Skript erzeugen, ohne DB-Verbindung."""
    _configure(url=DB_URL, literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = make_engine(DB_URL)
    try:
        with engine.connect() as connection:
            _configure(connection=connection)
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
