"""
models/expense.py — Expense table definition.

No business logic. No imports from services.

Key design points:
  - Expenses are immutable facts: there is no updated_at, rows are only
    ever inserted or deleted.
  - `amount` uses Numeric(12, 2) — never Float.
  - The split set lives in expense_participants, ordered by position.
    `split_among` exposes it as a plain list of member identifiers, which is
    the shape the balance engine reads.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from evenly.app.extensions import Base


class Expense(Base):
    __tablename__ = "expenses"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_expenses_amount_positive"),
        CheckConstraint(
            "LENGTH(TRIM(description)) > 0",
            name="ck_expenses_description_nonempty",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    # ON DELETE RESTRICT: cannot delete a group that has expenses.
    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )

    description: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # The day the money was spent; drives ledger order and month buckets.
    date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    paid_by: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # Opaque reference to an uploaded bill; storage is handled elsewhere.
    invoice: Mapped[str | None] = mapped_column(
        String(512),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    group: Mapped["Group"] = relationship(  # noqa: F821
        "Group",
        back_populates="expenses",
    )

    # ON DELETE CASCADE: participants are owned by their expense.
    participants: Mapped[list["ExpenseParticipant"]] = relationship(  # noqa: F821
        "ExpenseParticipant",
        back_populates="expense",
        order_by="ExpenseParticipant.position",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def split_among(self) -> list[str]:
        return [p.member for p in self.participants]

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Expense id={self.id} "
            f"group_id={self.group_id} "
            f"amount={self.amount} "
            f"paid_by={self.paid_by!r}>"
        )
