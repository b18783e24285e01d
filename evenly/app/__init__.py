"""
app/__init__.py — Evenly application factory.

Pattern: create_app(config_name) creates and returns a configured EvenlyApp.
         Nothing is initialised at import time — this enables:
           - Multiple isolated test app instances
           - Clean separation between app creation and database access

Responsibilities:
  1. Load configuration from config_by_name[config_name]
  2. Configure the `evenly` logger
  3. Build the SQLAlchemy engine and session factory

Note on model imports:
  All model modules are imported inside create_app() so that the declarative
  metadata is complete before create_all() is called.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from evenly.config import config_by_name, validate_production_config


logger = logging.getLogger(__name__)


@dataclass
class EvenlyApp:
    """Engine and session factory built from one config class."""

    config: type
    engine: Engine
    session_factory: sessionmaker[Session]

    def create_all(self) -> None:
        """Creates every table known to the declarative Base (tests, local dev)."""
        from evenly.app.extensions import Base
        Base.metadata.create_all(self.engine)

    def session(self) -> Session:
        return self.session_factory()


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str = "development") -> EvenlyApp:
    """
    Creates and returns a configured EvenlyApp instance.

    Args:
        config_name: One of "development", "testing", "production".
                     Resolved via config_by_name in config.py.
                     Defaults to "development".
    """
    config_class = config_by_name.get(config_name, config_by_name["development"])

    if config_name == "production":
        validate_production_config(config_class)  # raises ValueError if misconfigured

    from evenly.app.logging_setup import configure_logging
    configure_logging(config_class)

    # Import here (not at module top) to avoid circular imports.
    from evenly.app.extensions import create_db_engine, make_session_factory

    # Model registration: the import side-effect populates Base.metadata.
    from evenly.app.models import (  # noqa: F401
        expense,
        group,
        membership,
        participant,
        settlement,
    )

    engine = create_db_engine(config_class)
    logger.info("Evenly app created (config=%s)", config_name)

    return EvenlyApp(
        config=config_class,
        engine=engine,
        session_factory=make_session_factory(engine),
    )
