# zusplus/db/database.py
from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool


class Base(DeclarativeBase):
    pass


def make_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        # In-Memory-DB: eine Verbindung für alle Threads teilen
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, future=True, **kwargs)
    return create_engine(url, pool_pre_ping=True, future=True)


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def init_models(engine: Engine) -> None:
    import zusplus.models.user  # noqa: F401
    import zusplus.models.mfa_factor  # noqa: F401
    import zusplus.models.mfa_challenge  # noqa: F401
    import zusplus.models.auth_session  # noqa: F401

    Base.metadata.create_all(bind=engine)

