"""SQLAlchemy engine and session factory."""

from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from crm_ledger.config import get_settings


def build_engine(database_url: str | None = None) -> Engine:
    """Create an engine for the configured (or given) database URL."""

    url = database_url or get_settings().database_url
    connect_args: dict[str, object] = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(url, future=True, pool_pre_ping=True, connect_args=connect_args)


def build_session_factory(engine: Engine) -> sessionmaker:
    """Return a session factory bound to one engine."""

    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True, expire_on_commit=False)


engine = build_engine()
SessionLocal = build_session_factory(engine)


def dispose_engine() -> None:
    """Release pooled connections at process shutdown."""

    engine.dispose()
