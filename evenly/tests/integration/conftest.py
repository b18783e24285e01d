"""
tests/integration/conftest.py — Fixtures for the ledger snapshot integration tests.

Design:
  - Every test gets its own app built with create_app("testing"), which points
    at an in-memory SQLite database. A fresh engine means a fresh database, so
    tests are isolated without any cleanup step.
  - Rows are inserted directly through the ORM: creating expenses and
    settlements is the job of the CRUD layer, not of this package.

Factory fixtures (make_group, make_expense, make_settlement) return plain
functions so tests can call them with arbitrary arguments.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import pytest

from evenly.app import create_app
from evenly.app.models.expense import Expense
from evenly.app.models.group import Group
from evenly.app.models.membership import Membership
from evenly.app.models.participant import ExpenseParticipant
from evenly.app.models.settlement import Settlement


@pytest.fixture
def app():
    evenly_app = create_app("testing")
    evenly_app.create_all()
    yield evenly_app
    evenly_app.engine.dispose()


@pytest.fixture
def session(app):
    with app.session() as db_session:
        yield db_session
        db_session.rollback()


@pytest.fixture
def make_group(session):
    def _make_group(name: str, members: list[str], currency: str = "EUR") -> Group:
        group = Group(name=name, currency=currency)
        group.memberships = [
            Membership(member=member, position=position)
            for position, member in enumerate(members)
        ]
        session.add(group)
        session.flush()
        return group

    return _make_group


@pytest.fixture
def make_expense(session):
    def _make_expense(
            group: Group,
            paid_by: str,
            amount: str,
            split: list[str],
            when: datetime = datetime(2024, 3, 1, 12, 0),
            description: str = "Shared cost",
            invoice: str | None = None,
    ) -> Expense:
        expense = Expense(
            group_id=group.id,
            amount=Decimal(amount),
            description=description,
            date=when,
            paid_by=paid_by,
            invoice=invoice,
        )
        expense.participants = [
            ExpenseParticipant(member=member, position=position)
            for position, member in enumerate(split)
        ]
        session.add(expense)
        session.flush()
        return expense

    return _make_expense


@pytest.fixture
def make_settlement(session):
    def _make_settlement(
            group: Group,
            paid_by: str,
            paid_to: str,
            amount: str,
            when: datetime = datetime(2024, 3, 2, 12, 0),
    ) -> Settlement:
        settlement = Settlement(
            group_id=group.id,
            paid_by=paid_by,
            paid_to=paid_to,
            amount=Decimal(amount),
            date=when,
        )
        session.add(settlement)
        session.flush()
        return settlement

    return _make_settlement
