"""
extensions.py — SQLAlchemy declarative base, engine and session factory.

Pattern:
    1. Models inherit from `Base` defined here (no engine attached yet).
    2. The caller builds an engine from a config class with create_db_engine().
    3. Sessions come from make_session_factory(engine).

    from evenly.app.extensions import Base, create_db_engine, make_session_factory

Nothing connects to a database at import time — this keeps the unit suite
free of any database and lets the integration suite build a fresh in-memory
engine per test.
"""

from __future__ import annotations

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool


class Base(DeclarativeBase):
    pass


def create_db_engine(config) -> Engine:
    """
    Creates an Engine for config.DATABASE_URL.

    In-memory SQLite needs a single shared connection, otherwise every
    connection checkout would see a brand-new empty database.
    """
    url: str = config.DATABASE_URL
    echo: bool = bool(getattr(config, "SQLALCHEMY_ECHO", False))

    if url.startswith("sqlite") and ":memory:" in url:
        return create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url, echo=echo, pool_pre_ping=True)


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    # expire_on_commit=False: ledger snapshots stay readable after the
    # read transaction ends.
    return sessionmaker(bind=engine, expire_on_commit=False)
