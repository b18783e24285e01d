"""
tests/unit/test_input_contract.py — fail-fast behaviour of the balance engine.

Malformed *collections* (None, a bare string, a dict where a list belongs)
and structurally broken records raise InputContractViolation with no partial
result. Malformed *values* inside an otherwise valid record (empty split,
non-positive amount) are skipped instead; those are covered by the view tests.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from evenly.app.errors import ErrorCode, InputContractViolation
from evenly.app.services import balance_service
from evenly.app.services.ledger import ExpenseRecord, SettlementRecord


A, B = "a@x.io", "b@x.io"
GOOD_EXPENSE = ExpenseRecord(1, Decimal("10"), "x", date(2024, 1, 1), A, (A, B))


@pytest.mark.parametrize("members", [None, "a@x.io", {"a@x.io": 1}, 42])
def test_members_must_be_a_list(members):
    with pytest.raises(InputContractViolation) as exc_info:
        balance_service.compute_group_balances(members, [], [])

    assert exc_info.value.code == ErrorCode.INPUT_CONTRACT_VIOLATION
    assert exc_info.value.field == "members"


@pytest.mark.parametrize(
    "call",
    [
        lambda: balance_service.compute_group_balances([A, B], None, []),
        lambda: balance_service.compute_group_balances([A, B], [], None),
        lambda: balance_service.compute_user_balances(A, [A, B], None, []),
        lambda: balance_service.compute_cross_group_owed(A, None, [], []),
        lambda: balance_service.compute_cross_group_owed(A, [], [], None),
        lambda: balance_service.compute_expense_summary([A, B], None),
        lambda: balance_service.compute_net_balances([A, B], [], "settlements"),
    ],
)
def test_none_collections_fail_fast(call):
    with pytest.raises(InputContractViolation):
        call()


def test_member_identifiers_must_be_strings():
    with pytest.raises(InputContractViolation):
        balance_service.compute_group_balances([A, None], [], [])


def test_current_user_must_be_given():
    with pytest.raises(InputContractViolation) as exc_info:
        balance_service.compute_user_balances("", [A, B], [], [])
    assert exc_info.value.field == "current_user"


def test_record_without_date_fails_the_whole_call():
    broken = SimpleNamespace(group_id=1, amount=Decimal("10"), paid_by=A, split_among=[A, B])

    with pytest.raises(InputContractViolation) as exc_info:
        balance_service.compute_group_balances([A, B], [GOOD_EXPENSE, broken], [])
    assert exc_info.value.field == "date"


def test_record_with_string_date_fails():
    broken = SimpleNamespace(
        group_id=1, amount=Decimal("10"), date="2024-01-01", paid_by=A, split_among=[A, B]
    )
    with pytest.raises(InputContractViolation):
        balance_service.compute_group_balances([A, B], [broken], [])


@pytest.mark.parametrize("amount", ["ten", True, object(), float("nan")])
def test_non_numeric_amount_fails(amount):
    broken = ExpenseRecord(1, amount, "x", date(2024, 1, 1), A, (A, B))

    with pytest.raises(InputContractViolation) as exc_info:
        balance_service.compute_group_balances([A, B], [broken], [])
    assert exc_info.value.field == "amount"


def test_float_and_int_amounts_are_coerced_exactly():
    expenses = [
        ExpenseRecord(1, 0.1, "x", date(2024, 1, 1), A, (A, B)),
        ExpenseRecord(1, 3, "y", date(2024, 1, 2), A, (A, B)),
    ]
    net = balance_service.compute_net_balances([A, B], expenses, [])
    assert net[A] == Decimal("1.55")


def test_split_must_be_a_list_of_identifiers():
    broken = ExpenseRecord(1, Decimal("10"), "x", date(2024, 1, 1), A, "a@x.io")
    with pytest.raises(InputContractViolation):
        balance_service.compute_group_balances([A, B], [broken], [])


def test_missing_split_attribute_is_treated_as_empty():
    expense = SimpleNamespace(
        group_id=1, amount=Decimal("10"), date=date(2024, 1, 1), paid_by=A, split_among=None
    )
    result = balance_service.compute_group_balances([A, B], [expense], [])
    assert all(b.owed_amount == 0 for b in result)


def test_settlement_without_payee_fails():
    broken = SimpleNamespace(group_id=1, paid_by=A, amount=Decimal("5"), date=date(2024, 1, 1))
    with pytest.raises(InputContractViolation) as exc_info:
        balance_service.compute_group_balances([A, B], [], [broken])
    assert exc_info.value.field == "paid_to"


def test_self_settlement_is_skipped_not_fatal():
    settlement = SettlementRecord(1, A, A, Decimal("5"), date(2024, 1, 1))
    result = balance_service.compute_group_balances([A, B], [GOOD_EXPENSE], [settlement])
    assert result[0].owed_amount == Decimal("5")


def test_violation_envelope():
    err = InputContractViolation("members must be a list, got NoneType.", field="members")

    assert err.http_status == 500
    assert err.to_dict() == {
        "error": {
            "code": "INPUT_CONTRACT_VIOLATION",
            "message": "members must be a list, got NoneType.",
            "field": "members",
        }
    }


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-4"), None])
def test_skippable_expense_is_not_validated_further(amount):
    """A record skipped for its amount is skipped by every view, payer or not."""
    skippable = SimpleNamespace(
        group_id=1, amount=amount, date=date(2024, 1, 2), paid_by=None, split_among=(A, B)
    )
    group = SimpleNamespace(id=1)

    balances = balance_service.compute_group_balances([A, B], [GOOD_EXPENSE, skippable], [])
    mine = balance_service.compute_user_balances(B, [A, B], [GOOD_EXPENSE, skippable], [])
    owed = balance_service.compute_cross_group_owed(B, [GOOD_EXPENSE, skippable], [], [group])
    summary = balance_service.compute_expense_summary([A, B], [GOOD_EXPENSE, skippable])

    assert balances[0].owed_amount == Decimal("5")
    assert mine.total_balance == Decimal("-5")
    assert owed.total_amount == Decimal("5")
    assert summary.total_expenses == Decimal("10")


def test_skippable_settlement_is_not_validated_further():
    skippable = SimpleNamespace(
        group_id=1, paid_by=B, paid_to=None, amount=Decimal("0"), date=date(2024, 1, 3)
    )
    result = balance_service.compute_group_balances([A, B], [GOOD_EXPENSE], [skippable])
    assert result[1].owes_amount == Decimal("5")
