"""
Unit tests for configuration selection, the production guard, logging setup
and the application factory.
"""

from __future__ import annotations

import logging

import pytest
from sqlalchemy import inspect

from evenly.app import create_app
from evenly.app.logging_setup import configure_logging
from evenly.config import (
    BaseConfig,
    DevelopmentConfig,
    ProductionConfig,
    TestingConfig,
    _normalise_database_url,
    config_by_name,
    validate_production_config,
)


def test_config_selector():
    assert config_by_name["development"] is DevelopmentConfig
    assert config_by_name["testing"] is TestingConfig
    assert config_by_name["production"] is ProductionConfig


def test_testing_config_flags():
    assert TestingConfig.TESTING is True
    assert TestingConfig.DISPLAY_DECIMAL_PLACES == 2


def test_postgres_scheme_is_normalised():
    assert _normalise_database_url("postgres://u:p@h/db") == "postgresql://u:p@h/db"
    assert _normalise_database_url("sqlite:///x.db") == "sqlite:///x.db"


def test_production_guard_requires_database_url():
    class Missing(BaseConfig):
        DATABASE_URL = ""

    with pytest.raises(ValueError, match="DATABASE_URL"):
        validate_production_config(Missing)


def test_production_guard_accepts_complete_config():
    class Complete(BaseConfig):
        DATABASE_URL = "postgresql://u:p@h/db"

    validate_production_config(Complete)


def test_configure_logging_is_idempotent():
    class Verbose(BaseConfig):
        LOG_LEVEL = "debug"

    logger = configure_logging(Verbose)
    configure_logging(Verbose)

    assert logger.level == logging.DEBUG
    assert sum(1 for h in logger.handlers if getattr(h, "_evenly_handler", False)) == 1


def test_configure_logging_falls_back_to_info():
    class Bogus(BaseConfig):
        LOG_LEVEL = "chatty"

    assert configure_logging(Bogus).level == logging.INFO


def test_create_app_testing():
    app = create_app("testing")
    app.create_all()

    assert app.config is TestingConfig
    assert set(inspect(app.engine).get_table_names()) == {
        "groups",
        "memberships",
        "expenses",
        "expense_participants",
        "settlements",
    }
    with app.session() as session:
        assert session.bind is app.engine
    app.engine.dispose()
