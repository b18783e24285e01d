"""
models/participant.py — one member of an expense's split set.

UNIQUE(expense_id, member) keeps the split a set; `position` keeps the order
the participants were entered in.
"""

from __future__ import annotations

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from evenly.app.extensions import Base


class ExpenseParticipant(Base):
    __tablename__ = "expense_participants"

    __table_args__ = (
        UniqueConstraint("expense_id", "member", name="uq_participants_expense_member"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    expense_id: Mapped[int] = mapped_column(
        ForeignKey("expenses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    member: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    expense: Mapped["Expense"] = relationship(  # noqa: F821
        "Expense",
        back_populates="participants",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<ExpenseParticipant expense_id={self.expense_id} member={self.member!r}>"
