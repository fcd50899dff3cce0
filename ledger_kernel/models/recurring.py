"""
Module: ledger_kernel.models.recurring
Responsibility: ORM persistence for recurring schedules.
Architecture position: Kernel > Models.  May import from db/ only.

State machine (status):
    ACTIVE   -- eligible for execution and for the due sweep.
    INACTIVE -- paused or soft-deleted; may be toggled back to ACTIVE.
    ENDED    -- terminal; next_due_date would pass end_date.

Invariants enforced:
    - next_due_date starts at start_date and only moves forward.
    - An ENDED schedule never produces another transaction.
"""

from datetime import date
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TimestampedBase, UUIDString
from ledger_kernel.db.types import Money
from ledger_kernel.models.account import Account
from ledger_kernel.models.category import Category
from ledger_kernel.models.identity import User
from ledger_kernel.models.transaction import Transaction, TransactionType


class RecurrenceType(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class ScheduleStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    ENDED = "ENDED"


class RecurringTransaction(TimestampedBase):
    __tablename__ = "recurring_transactions"

    __table_args__ = (
        Index("idx_recurring_due", "status", "next_due_date"),
        Index("idx_recurring_user", "user_id"),
    )

    description: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Money] = mapped_column(nullable=False)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    transaction_type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType, native_enum=False, length=10),
        nullable=False,
    )

    recurrence_type: Mapped[RecurrenceType] = mapped_column(
        SAEnum(RecurrenceType, native_enum=False, length=10),
        nullable=False,
    )

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    next_due_date: Mapped[date] = mapped_column(Date, nullable=False)

    status: Mapped[ScheduleStatus] = mapped_column(
        SAEnum(ScheduleStatus, native_enum=False, length=10),
        default=ScheduleStatus.ACTIVE,
        nullable=False,
    )

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=False,
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

    user: Mapped[User] = relationship()
    category: Mapped[Category] = relationship()
    account: Mapped[Account] = relationship()
    transactions: Mapped[list[Transaction]] = relationship(
        back_populates="recurring_transaction",
    )

    def __repr__(self) -> str:
        return (
            f"<RecurringTransaction {self.description} "
            f"{self.recurrence_type.value} next={self.next_due_date}>"
        )

    @property
    def is_active(self) -> bool:
        return self.status == ScheduleStatus.ACTIVE

    @property
    def is_ended(self) -> bool:
        return self.status == ScheduleStatus.ENDED
