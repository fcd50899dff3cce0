"""
Module: ledger_kernel.models.budget
Responsibility: ORM persistence for spending budgets.
Architecture position: Kernel > Models.  May import from db/ only.

Budgets are soft-deleted (is_active) and optionally scoped to one category.
An unscoped budget tracks every EXPENSE of its owner in the date range.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TimestampedBase, UUIDString
from ledger_kernel.db.types import Money
from ledger_kernel.models.category import Category
from ledger_kernel.models.identity import User


class Budget(TimestampedBase):
    __tablename__ = "budgets"

    __table_args__ = (
        Index("idx_budget_user", "user_id"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[Money] = mapped_column(nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Percentage of amount at which the budget counts as near its limit
    alert_threshold: Mapped[int] = mapped_column(Integer, default=80, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=False,
    )

    category_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("categories.id"),
        nullable=True,
    )

    user: Mapped[User] = relationship()
    category: Mapped[Category | None] = relationship()

    def __repr__(self) -> str:
        return f"<Budget {self.name}: {self.amount}>"

    @property
    def is_unscoped(self) -> bool:
        return self.category_id is None

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def threshold_amount(self) -> Decimal:
        return self.amount * Decimal(self.alert_threshold) / Decimal(100)
