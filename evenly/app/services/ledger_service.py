"""
services/ledger_service.py — ledger snapshots and balance payloads.

Reads one consistent snapshot of a group's ledger from the database, hands
it to the balance engine and renders the result as a payload dict.

Layer rules:
  - Receives a SQLAlchemy Session; never commits, never writes.
  - Converts ORM rows to frozen ledger records before calling the engine,
    so nothing downstream can lazy-load or mutate rows.
  - Amounts are rendered as strings with DISPLAY_DECIMAL_PLACES places.
    This is the only place rounding happens.

Access rule: the caller must be a member of the group they ask about
(FORBIDDEN, 403). Non-existent groups and expenses are GROUP_NOT_FOUND /
EXPENSE_NOT_FOUND (404).
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from evenly.app.errors import AppError, ErrorCode
from evenly.app.models.expense import Expense
from evenly.app.models.group import Group
from evenly.app.models.membership import Membership
from evenly.app.models.settlement import Settlement
from evenly.app.services import balance_service
from evenly.app.services.ledger import ExpenseRecord, GroupRecord, SettlementRecord
from evenly.config import ActiveConfig


logger = logging.getLogger(__name__)

DEFAULT_PLACES = ActiveConfig.DISPLAY_DECIMAL_PLACES


def render_amount(value: Decimal, places: int = DEFAULT_PLACES) -> str:
    """Decimal("33.3333…") → "33.33". Negative zero renders as "0.00"."""
    quantum = Decimal(1).scaleb(-places)
    rendered = value.quantize(quantum, rounding=ROUND_HALF_UP)
    if rendered.is_zero():
        rendered = abs(rendered)
    return str(rendered)


def _money(places: int):
    return lambda value: render_amount(value, places)


# ── Data access helpers ────────────────────────────────────────────────────
# Ordered by (date, id) so the engine sees the same ledger order every time.

def get_group_or_404(group_id: int, session: Session) -> Group:
    group = session.get(Group, group_id)
    if group is None:
        raise AppError(
            ErrorCode.GROUP_NOT_FOUND,
            f"Group {group_id} does not exist.",
            404,
        )
    return group


def _require_member(group: Group, caller: str) -> None:
    if caller not in group.members:
        raise AppError(
            ErrorCode.FORBIDDEN,
            f"You are not a member of group {group.id}.",
            403,
        )


def get_expenses(group_ids: list[int], session: Session) -> list[ExpenseRecord]:
    if not group_ids:
        return []
    stmt = (
        select(Expense)
        .options(selectinload(Expense.participants))
        .where(Expense.group_id.in_(group_ids))
        .order_by(Expense.date, Expense.id)
    )
    rows = session.execute(stmt).scalars().all()
    return [ExpenseRecord.from_model(row) for row in rows]


def get_settlements(group_ids: list[int], session: Session) -> list[SettlementRecord]:
    if not group_ids:
        return []
    stmt = (
        select(Settlement)
        .where(Settlement.group_id.in_(group_ids))
        .order_by(Settlement.date, Settlement.id)
    )
    rows = session.execute(stmt).scalars().all()
    return [SettlementRecord.from_model(row) for row in rows]


def get_groups_for_member(member: str, session: Session) -> list[GroupRecord]:
    stmt = (
        select(Group)
        .join(Membership, Membership.group_id == Group.id)
        .options(selectinload(Group.memberships))
        .where(Membership.member == member)
        .order_by(Group.id)
    )
    rows = session.execute(stmt).scalars().unique().all()
    return [GroupRecord.from_model(row) for row in rows]


def _group_snapshot(
        group_id: int,
        caller: str,
        session: Session,
) -> tuple[GroupRecord, list[ExpenseRecord], list[SettlementRecord]]:
    group = get_group_or_404(group_id, session)
    _require_member(group, caller)
    record = GroupRecord.from_model(group)
    return (
        record,
        get_expenses([group_id], session),
        get_settlements([group_id], session),
    )


# ── Payload builders ───────────────────────────────────────────────────────

def get_group_balance_response(
        group_id: int,
        caller: str,
        session: Session,
        places: int = DEFAULT_PLACES,
) -> dict:
    """
    Per-member owed/owes view with the balance-sum integrity check.

    Raises:
        AppError(GROUP_NOT_FOUND, 404)
        AppError(FORBIDDEN, 403)       -- caller not a member.
        AppError(INTERNAL_ERROR, 500)  -- net balances do not sum to zero.
    """
    group, expenses, settlements = _group_snapshot(group_id, caller, session)
    money = _money(places)

    balances = balance_service.compute_group_balances(group.members, expenses, settlements)
    net = balance_service.compute_net_balances(group.members, expenses, settlements)

    balance_sum = sum(net.values(), Decimal("0"))
    if render_amount(balance_sum, places) != render_amount(Decimal("0"), places):
        logger.error(
            "Balance integrity check failed for group %s: sum was %s",
            group_id,
            balance_sum,
        )
        raise AppError(
            ErrorCode.INTERNAL_ERROR,
            f"Balance integrity check failed: sum was {balance_sum} (expected 0). "
            f"Group {group_id} has inconsistent financial data.",
            500,
        )

    return {
        "groupId": group.id,
        "currency": group.currency,
        "balances": [b.to_dict(money) for b in balances],
        "balanceSum": money(balance_sum),
    }


def get_user_balance_response(
        group_id: int,
        caller: str,
        session: Session,
        places: int = DEFAULT_PLACES,
) -> dict:
    group, expenses, settlements = _group_snapshot(group_id, caller, session)
    view = balance_service.compute_user_balances(caller, group.members, expenses, settlements)
    payload = view.to_dict(_money(places))
    payload["groupId"] = group.id
    payload["currency"] = group.currency
    return payload


def get_cross_group_owed_response(
        caller: str,
        session: Session,
        places: int = DEFAULT_PLACES,
) -> dict:
    """What the caller owes across every group they belong to."""
    groups = get_groups_for_member(caller, session)
    group_ids = [g.id for g in groups]
    by_id = {g.id: g for g in groups}

    view = balance_service.compute_cross_group_owed(
        caller,
        get_expenses(group_ids, session),
        get_settlements(group_ids, session),
        groups,
    )
    money = _money(places)

    details = []
    for detail in view.owe_details:
        entry = detail.to_dict(money)
        group = by_id[detail.group_id]
        entry["groupName"] = group.name
        entry["currency"] = group.currency
        details.append(entry)

    return {"totalAmount": money(view.total_amount), "oweDetails": details}


def get_expense_summary_response(
        group_id: int,
        caller: str,
        session: Session,
        places: int = DEFAULT_PLACES,
) -> dict:
    group = get_group_or_404(group_id, session)
    _require_member(group, caller)
    record = GroupRecord.from_model(group)

    summary = balance_service.compute_expense_summary(
        record.members,
        get_expenses([group_id], session),
    )
    payload = summary.to_dict(_money(places))
    payload["groupId"] = record.id
    payload["currency"] = record.currency
    return payload


def get_expense_shares_response(
        expense_id: int,
        caller: str,
        session: Session,
        places: int = DEFAULT_PLACES,
) -> dict:
    """
    Detail view of one expense with each participant's share.

    Raises:
        AppError(EXPENSE_NOT_FOUND, 404)
        AppError(FORBIDDEN, 403)
        AppError(INVALID_EXPENSE, 422)  -- empty split / non-positive amount.
    """
    expense = session.get(Expense, expense_id)
    if expense is None:
        raise AppError(
            ErrorCode.EXPENSE_NOT_FOUND,
            f"Expense {expense_id} does not exist.",
            404,
        )
    group = get_group_or_404(expense.group_id, session)
    _require_member(group, caller)

    record = ExpenseRecord.from_model(expense)
    money = _money(places)
    shares = balance_service.compute_expense_shares(record)

    return {
        "id": expense.id,
        "groupId": group.id,
        "groupName": group.name,
        "currency": group.currency,
        "description": record.description,
        "amount": money(record.amount),
        "date": record.date.isoformat(),
        "paidBy": record.paid_by,
        "invoice": record.invoice,
        "shares": [s.to_dict(money) for s in shares],
    }
