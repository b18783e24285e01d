"""
services/balance_service.py — the balance engine.

This file is the SINGLE SOURCE OF TRUTH for how balances are computed.
Every view (group balances, current-user balances, cross-group totals,
expense summary) is derived here; nothing else in the codebase repeats the
share arithmetic.

Layer rules:
  - No database, no Session, no HTTP knowledge.
  - Receives plain collections of ledger records, returns frozen values
    from services/ledger.py.
  - All accumulation happens in dicts local to one call.

Payer credit policy (self-exclusive):
  An expense of A split among S (n = |S|) is the set of obligations
  "m owes payer A / n" for every m in S other than the payer. The payer is
  never charged their own share. An obligation is only booked when both
  sides are members of the group, so per expense the signed deltas across
  members always sum to zero.

Settlements are the mirror image: a payment paid_by → paid_to books
"paid_to owes paid_by amount", which cancels a matching expense obligation
exactly.

Ledger order:
  Records are processed ascending by date, then by input position. Dates
  without a timezone are taken as UTC.

Skipped records:
  An expense with an empty split, or an expense/settlement with a missing or
  non-positive amount, is dropped (logged at DEBUG). The rest of the ledger
  is still computed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import date, datetime, time, timezone
from decimal import Decimal, InvalidOperation
from types import MappingProxyType

from evenly.app.errors import AppError, ErrorCode, InputContractViolation
from evenly.app.services.ledger import (
    CrossGroupOwed,
    ExpenseShare,
    ExpenseSummary,
    MemberBalance,
    MemberExpenseStats,
    OweDetail,
    UserBalance,
    UserBalances,
)


logger = logging.getLogger(__name__)

ZERO = Decimal("0")


# ── Input contract helpers ─────────────────────────────────────────────────

def _violation(message: str, field: str | None = None) -> InputContractViolation:
    logger.warning("Input contract violation: %s", message)
    return InputContractViolation(message, field=field)


def _require_collection(value, name: str) -> list:
    """Materialises `value` as a list, or raises if it is not a collection."""
    if (
        value is None
        or isinstance(value, (str, bytes, Mapping))
        or not isinstance(value, Iterable)
    ):
        raise _violation(
            f"{name} must be a list, got {type(value).__name__}.",
            field=name,
        )
    return list(value)


def _require_identifier(value, name: str) -> str:
    if not isinstance(value, str) or not value:
        raise _violation(f"{name} must be a non-empty string.", field=name)
    return value


def _require_members(members) -> list[str]:
    """Member identifiers in group order; duplicates keep their first position."""
    items = _require_collection(members, "members")
    for item in items:
        _require_identifier(item, "members")
    return list(dict.fromkeys(items))


def _attr(record, name: str, kind: str):
    try:
        return getattr(record, name)
    except AttributeError:
        raise _violation(
            f"{kind} record {record!r} has no attribute {name!r}.",
            field=name,
        ) from None


def _as_money(value, kind: str) -> Decimal | None:
    """
    Coerces an amount to Decimal. None stays None (a skippable record).

    Floats go through str() so 0.1 becomes Decimal("0.1"), not its binary
    expansion.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise _violation(f"{kind} amount must be numeric, got bool.", field="amount")
    try:
        if isinstance(value, Decimal):
            amount = value
        elif isinstance(value, int):
            amount = Decimal(value)
        elif isinstance(value, (float, str)):
            amount = Decimal(str(value))
        else:
            raise TypeError(type(value).__name__)
    except (InvalidOperation, TypeError, ValueError):
        raise _violation(
            f"{kind} amount {value!r} is not a number.",
            field="amount",
        ) from None

    if not amount.is_finite():
        raise _violation(f"{kind} amount {value!r} is not finite.", field="amount")
    return amount


def _ledger_instant(value, kind: str) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    raise _violation(
        f"{kind} date must be a date or datetime, got {type(value).__name__}.",
        field="date",
    )


def _in_ledger_order(records: list, kind: str) -> list:
    """Stable sort: ascending date, then input position."""
    keyed = [
        (_ledger_instant(_attr(record, "date", kind), kind), position, record)
        for position, record in enumerate(records)
    ]
    keyed.sort(key=lambda item: (item[0], item[1]))
    return [record for _, _, record in keyed]


# ── Share arithmetic ───────────────────────────────────────────────────────

def _split_participants(expense) -> list[str]:
    split = _attr(expense, "split_among", "Expense")
    if split is None:
        return []
    participants = _require_collection(split, "split_among")
    for member in participants:
        _require_identifier(member, "split_among")
    return list(dict.fromkeys(participants))


def _expense_shares(expense) -> tuple[str, list[str], Decimal] | None:
    """
    Returns (payer, participants, per_person_amount), or None when the
    expense must be skipped.
    """
    # Skippable records are dropped before the payer is validated, the same
    # way compute_expense_summary drops them.
    amount = _as_money(_attr(expense, "amount", "Expense"), "Expense")
    if amount is None or amount <= ZERO:
        logger.debug("Skipping expense %r: amount %r is not positive.", expense, amount)
        return None

    participants = _split_participants(expense)
    if not participants:
        logger.debug("Skipping expense %r: empty split.", expense)
        return None

    payer = _require_identifier(_attr(expense, "paid_by", "Expense"), "paid_by")
    return payer, participants, amount / Decimal(len(participants))


def _settlement_terms(settlement) -> tuple[str, str, Decimal] | None:
    amount = _as_money(_attr(settlement, "amount", "Settlement"), "Settlement")
    if amount is None or amount <= ZERO:
        logger.debug("Skipping settlement %r: amount %r is not positive.", settlement, amount)
        return None

    paid_by = _require_identifier(_attr(settlement, "paid_by", "Settlement"), "paid_by")
    paid_to = _require_identifier(_attr(settlement, "paid_to", "Settlement"), "paid_to")
    if paid_by == paid_to:
        logger.debug("Skipping settlement %r: payer and recipient are the same.", settlement)
        return None

    return paid_by, paid_to, amount


# ── Pairwise ledger ────────────────────────────────────────────────────────

def _book(
        ledger: dict[str, dict[str, Decimal]],
        debtor: str,
        creditor: str,
        amount: Decimal,
) -> None:
    """Books "debtor owes creditor amount" on both sides of the pair."""
    ledger[creditor][debtor] = ledger[creditor].get(debtor, ZERO) + amount
    ledger[debtor][creditor] = ledger[debtor].get(creditor, ZERO) - amount


def _pairwise_ledger(
        members: list[str],
        expenses,
        settlements,
) -> dict[str, dict[str, Decimal]]:
    """
    ledger[a][b] > 0 means b owes a; ledger[a][b] == -ledger[b][a] always.

    Obligations involving a non-member are ignored.
    """
    expenses = _require_collection(expenses, "expenses")
    settlements = _require_collection(settlements, "settlements")

    ledger: dict[str, dict[str, Decimal]] = {member: {} for member in members}

    for expense in _in_ledger_order(expenses, "Expense"):
        terms = _expense_shares(expense)
        if terms is None:
            continue
        payer, participants, share = terms
        if payer not in ledger:
            continue
        for participant in participants:
            if participant != payer and participant in ledger:
                _book(ledger, participant, payer, share)

    for settlement in _in_ledger_order(settlements, "Settlement"):
        terms = _settlement_terms(settlement)
        if terms is None:
            continue
        paid_by, paid_to, amount = terms
        if paid_by in ledger and paid_to in ledger:
            _book(ledger, paid_to, paid_by, amount)

    return ledger


# ── Public engine ──────────────────────────────────────────────────────────

def compute_net_balances(members, expenses, settlements) -> dict[str, Decimal]:
    """
    Returns {member: signed net balance} for every member, in member order.
    Positive = the member is owed money, negative = the member owes.

    sum(result.values()) == 0 for any input: every booking is a pair.
    """
    member_list = _require_members(members)
    ledger = _pairwise_ledger(member_list, expenses, settlements)
    return {
        member: sum(ledger[member].values(), ZERO)
        for member in member_list
    }


def compute_group_balances(members, expenses, settlements) -> list[MemberBalance]:
    """
    Gross per-member view: owed_amount is what counterparties owe the member,
    owes_amount is what the member owes counterparties. Both are
    non-negative; each pair of members is netted before being split into the
    two columns, so a settlement and its inverse cancel exactly.
    """
    member_list = _require_members(members)
    ledger = _pairwise_ledger(member_list, expenses, settlements)

    balances: list[MemberBalance] = []
    for member in member_list:
        owed = ZERO
        owes = ZERO
        for amount in ledger[member].values():
            if amount > ZERO:
                owed += amount
            elif amount < ZERO:
                owes -= amount
        balances.append(MemberBalance(member=member, owed_amount=owed, owes_amount=owes))
    return balances


def compute_user_balances(current_user, members, expenses, settlements) -> UserBalances:
    """
    Current-user view of a group.

    For every other member the pairwise balance with the current user is
    positive when the member owes the user and negative when the user owes
    the member. Non-zero entries are split into you_owe / you_are_owed,
    both as positive amounts sorted largest first (ties keep member order).
    total_balance is the user's own signed net.
    """
    current_user = _require_identifier(current_user, "current_user")
    member_list = _require_members(members)
    ledger = _pairwise_ledger(member_list, expenses, settlements)

    counterparties = ledger.get(current_user, {})
    total = ZERO
    you_owe: list[UserBalance] = []
    you_are_owed: list[UserBalance] = []

    for member in member_list:
        if member == current_user:
            continue
        amount = counterparties.get(member, ZERO)
        total += amount
        if amount < ZERO:
            you_owe.append(UserBalance(user=member, amount=-amount))
        elif amount > ZERO:
            you_are_owed.append(UserBalance(user=member, amount=amount))

    you_owe.sort(key=lambda b: b.amount, reverse=True)
    you_are_owed.sort(key=lambda b: b.amount, reverse=True)

    return UserBalances(
        total_balance=total,
        you_owe=tuple(you_owe),
        you_are_owed=tuple(you_are_owed),
    )


def compute_cross_group_owed(current_user, expenses, settlements, groups) -> CrossGroupOwed:
    """
    What the current user owes, per (group, payer), across all their groups.

    Only the user's own debts are counted: shares of expenses the user took
    part in but did not pay, minus settlements the user paid to that payer in
    the same group. Pairs that end at zero or below are dropped rather than
    shown as credits.

    Output order: group order as given, then payer in first-seen ledger order.
    """
    current_user = _require_identifier(current_user, "current_user")
    group_list = _require_collection(groups, "groups")
    expenses = _require_collection(expenses, "expenses")
    settlements = _require_collection(settlements, "settlements")

    # Group ids are compared as strings so int and str ids interoperate.
    group_ids = {str(_attr(g, "id", "Group")): _attr(g, "id", "Group") for g in group_list}
    owed: dict[str, dict[str, Decimal]] = {key: {} for key in group_ids}

    for expense in _in_ledger_order(expenses, "Expense"):
        key = str(_attr(expense, "group_id", "Expense"))
        if key not in owed:
            continue
        terms = _expense_shares(expense)
        if terms is None:
            continue
        payer, participants, share = terms
        if payer == current_user or current_user not in participants:
            continue
        owed[key][payer] = owed[key].get(payer, ZERO) + share

    for settlement in _in_ledger_order(settlements, "Settlement"):
        key = str(_attr(settlement, "group_id", "Settlement"))
        terms = _settlement_terms(settlement)
        if terms is None:
            continue
        paid_by, paid_to, amount = terms
        if paid_by == current_user and paid_to in owed.get(key, {}):
            owed[key][paid_to] -= amount

    details: list[OweDetail] = []
    total = ZERO
    for key, by_payer in owed.items():
        for payer, amount in by_payer.items():
            if amount > ZERO:
                details.append(OweDetail(group_id=group_ids[key], owed_to=payer, amount=amount))
                total += amount

    return CrossGroupOwed(total_amount=total, owe_details=tuple(details))


def _month_key(expense) -> str:
    instant = _ledger_instant(_attr(expense, "date", "Expense"), "Expense")
    return instant.astimezone(timezone.utc).strftime("%Y-%m")


def compute_expense_summary(members, expenses) -> ExpenseSummary:
    """
    Totals, a YYYY-MM time series and per-member paid/share stats.

    An expense with a positive amount but an empty split still counts towards
    the totals and the payer's total_paid; it just has no shares.
    """
    member_list = _require_members(members)
    expenses = _require_collection(expenses, "expenses")

    total = ZERO
    monthly: dict[str, Decimal] = {}
    paid = {member: ZERO for member in member_list}
    shares = {member: ZERO for member in member_list}

    for expense in _in_ledger_order(expenses, "Expense"):
        amount = _as_money(_attr(expense, "amount", "Expense"), "Expense")
        if amount is None or amount <= ZERO:
            logger.debug("Skipping expense %r in summary: amount %r is not positive.", expense, amount)
            continue

        total += amount
        month = _month_key(expense)
        monthly[month] = monthly.get(month, ZERO) + amount

        payer = _require_identifier(_attr(expense, "paid_by", "Expense"), "paid_by")
        if payer in paid:
            paid[payer] += amount

        participants = _split_participants(expense)
        if participants:
            share = amount / Decimal(len(participants))
            for participant in participants:
                if participant in shares:
                    shares[participant] += share

    return ExpenseSummary(
        total_expenses=total,
        monthly_expenses=MappingProxyType(monthly),
        expenses_by_member=tuple(
            MemberExpenseStats(member=m, total_paid=paid[m], total_share=shares[m])
            for m in member_list
        ),
    )


def compute_expense_shares(expense) -> list[ExpenseShare]:
    """
    Per-participant shares of a single expense, in split order.

    Unlike the aggregate views this does not skip a bad record: the caller
    asked about this expense specifically.

    Raises:
        AppError(INVALID_EXPENSE, 422) -- empty split or non-positive amount.
    """
    terms = _expense_shares(expense)
    if terms is None:
        raise AppError(
            ErrorCode.INVALID_EXPENSE,
            "Expense has an empty split or a non-positive amount.",
            422,
        )
    _, participants, share = terms
    return [ExpenseShare(member=member, amount=share) for member in participants]
