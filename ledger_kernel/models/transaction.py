"""
Module: ledger_kernel.models.transaction
Responsibility: ORM persistence for ledger transactions.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - amount is positive with exactly two fractional digits; the sign comes
      from transaction_type (INCOME adds, EXPENSE subtracts).
    - A persisted transaction is "posted": its signed delta is included in
      its account's balance.  Deleting it reverts the delta first.
    - user_id is nullable only so that deleting a User preserves its
      historical transactions.
"""

from datetime import date
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, String
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TimestampedBase, UUIDString
from ledger_kernel.db.types import Money
from ledger_kernel.models.account import Account
from ledger_kernel.models.category import Category
from ledger_kernel.models.identity import Admin, User

if TYPE_CHECKING:
    from ledger_kernel.models.recurring import RecurringTransaction


class TransactionType(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"

    def opposite(self) -> "TransactionType":
        if self is TransactionType.INCOME:
            return TransactionType.EXPENSE
        return TransactionType.INCOME


class Transaction(TimestampedBase):
    __tablename__ = "transactions"

    __table_args__ = (
        Index("idx_transaction_user_date", "user_id", "transaction_date"),
        Index("idx_transaction_account", "account_id"),
        Index("idx_transaction_admin", "admin_id"),
    )

    amount: Mapped[Money] = mapped_column(nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    transaction_type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType, native_enum=False, length=10),
        nullable=False,
    )

    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)

    is_approved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    user_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=True,
    )

    category_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("categories.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    recurring_transaction_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("recurring_transactions.id"),
        nullable=True,
    )

    # Inherited from the owner at creation for admin-level approval
    admin_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("admins.id"),
        nullable=True,
    )

    user: Mapped[User | None] = relationship()
    category: Mapped[Category] = relationship()
    account: Mapped[Account] = relationship()
    admin: Mapped[Admin | None] = relationship()
    recurring_transaction: Mapped["RecurringTransaction | None"] = relationship(
        back_populates="transactions",
    )

    def __repr__(self) -> str:
        return (
            f"<Transaction {self.transaction_type.value} {self.amount} "
            f"on {self.transaction_date}>"
        )
