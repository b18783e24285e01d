"""
services/ledger.py — immutable ledger records and balance view values.

Inputs (ExpenseRecord, SettlementRecord, GroupRecord) are detached snapshots
of stored facts. Outputs are the read-only views the balance engine returns.

The engine only reads attributes, so ORM rows with the same attribute names
(group_id, amount, date, paid_by, split_among, paid_to) are accepted as well.

to_dict() emits the camelCase payload keys used by API consumers. Amounts are
passed through `money`, which defaults to returning the Decimal unchanged;
the snapshot reader passes a two-decimal string renderer instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Callable, Mapping


def _identity(value: Decimal) -> Any:
    return value


# ── Input records ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ExpenseRecord:
    group_id: Any
    amount: Decimal | None
    description: str
    date: date | datetime
    paid_by: str
    split_among: tuple[str, ...] = ()
    invoice: str | None = None

    @classmethod
    def from_model(cls, expense) -> "ExpenseRecord":
        return cls(
            group_id=expense.group_id,
            amount=expense.amount,
            description=expense.description,
            date=expense.date,
            paid_by=expense.paid_by,
            split_among=tuple(expense.split_among),
            invoice=expense.invoice,
        )


@dataclass(frozen=True)
class SettlementRecord:
    group_id: Any
    paid_by: str
    paid_to: str
    amount: Decimal | None
    date: date | datetime

    @classmethod
    def from_model(cls, settlement) -> "SettlementRecord":
        return cls(
            group_id=settlement.group_id,
            paid_by=settlement.paid_by,
            paid_to=settlement.paid_to,
            amount=settlement.amount,
            date=settlement.date,
        )


@dataclass(frozen=True)
class GroupRecord:
    id: Any
    name: str
    currency: str
    members: tuple[str, ...] = ()

    @classmethod
    def from_model(cls, group) -> "GroupRecord":
        return cls(
            id=group.id,
            name=group.name,
            currency=group.currency,
            members=tuple(group.members),
        )


# ── Output views ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class MemberBalance:
    """Gross view of one member: what others owe them and what they owe."""
    member: str
    owed_amount: Decimal
    owes_amount: Decimal

    @property
    def net(self) -> Decimal:
        return self.owed_amount - self.owes_amount

    def to_dict(self, money: Callable[[Decimal], Any] = _identity) -> dict:
        return {
            "member": self.member,
            "owedAmount": money(self.owed_amount),
            "owesAmount": money(self.owes_amount),
        }


@dataclass(frozen=True)
class UserBalance:
    user: str
    amount: Decimal

    def to_dict(self, money: Callable[[Decimal], Any] = _identity) -> dict:
        return {"user": self.user, "amount": money(self.amount)}


@dataclass(frozen=True)
class UserBalances:
    total_balance: Decimal
    you_owe: tuple[UserBalance, ...] = ()
    you_are_owed: tuple[UserBalance, ...] = ()

    def to_dict(self, money: Callable[[Decimal], Any] = _identity) -> dict:
        return {
            "totalBalance": money(self.total_balance),
            "youOwe": [b.to_dict(money) for b in self.you_owe],
            "youAreOwed": [b.to_dict(money) for b in self.you_are_owed],
        }


@dataclass(frozen=True)
class OweDetail:
    group_id: Any
    owed_to: str
    amount: Decimal

    def to_dict(self, money: Callable[[Decimal], Any] = _identity) -> dict:
        return {
            "groupId": self.group_id,
            "owedTo": self.owed_to,
            "amount": money(self.amount),
        }


@dataclass(frozen=True)
class CrossGroupOwed:
    total_amount: Decimal
    owe_details: tuple[OweDetail, ...] = ()

    def to_dict(self, money: Callable[[Decimal], Any] = _identity) -> dict:
        return {
            "totalAmount": money(self.total_amount),
            "oweDetails": [d.to_dict(money) for d in self.owe_details],
        }


@dataclass(frozen=True)
class MemberExpenseStats:
    member: str
    total_paid: Decimal
    total_share: Decimal

    def to_dict(self, money: Callable[[Decimal], Any] = _identity) -> dict:
        return {
            "member": self.member,
            "totalPaid": money(self.total_paid),
            "totalShare": money(self.total_share),
        }


@dataclass(frozen=True)
class ExpenseSummary:
    total_expenses: Decimal
    monthly_expenses: Mapping[str, Decimal] = field(
        default_factory=lambda: MappingProxyType({})
    )
    expenses_by_member: tuple[MemberExpenseStats, ...] = ()

    def to_dict(self, money: Callable[[Decimal], Any] = _identity) -> dict:
        return {
            "totalExpenses": money(self.total_expenses),
            "monthlyExpenses": {
                month: money(amount) for month, amount in self.monthly_expenses.items()
            },
            "expensesByMember": [s.to_dict(money) for s in self.expenses_by_member],
        }


@dataclass(frozen=True)
class ExpenseShare:
    member: str
    amount: Decimal

    def to_dict(self, money: Callable[[Decimal], Any] = _identity) -> dict:
        return {"member": self.member, "amount": money(self.amount)}
