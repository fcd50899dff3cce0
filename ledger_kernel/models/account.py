"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for user accounts and their running balance.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - balance equals the initial balance plus the signed deltas of every
      transaction currently posted against the account.  Only LedgerService
      writes balance after creation.
    - is_active is the soft-delete flag.  Inactive accounts reject postings.

Failure modes:
    - AccountInactiveError when a posting targets an inactive account.
"""

from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TimestampedBase, UUIDString
from ledger_kernel.db.types import Money
from ledger_kernel.models.identity import User


class AccountType(str, Enum):
    CHECKING = "CHECKING"
    SAVINGS = "SAVINGS"
    CREDIT_CARD = "CREDIT_CARD"
    CASH = "CASH"
    INVESTMENT = "INVESTMENT"
    OTHER = "OTHER"


class Account(TimestampedBase):
    """
    Money account owned by one User.

    user_id becomes NULL only when the owner is deleted while transactions
    still reference the account (the account is then orphaned and inactive).
    """

    __tablename__ = "accounts"

    __table_args__ = (
        Index("idx_account_user", "user_id"),
        Index("idx_account_active", "is_active"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    account_type: Mapped[AccountType] = mapped_column(
        SAEnum(AccountType, native_enum=False, length=20),
        default=AccountType.CHECKING,
        nullable=False,
    )

    balance: Mapped[Money] = mapped_column(default=Decimal("0.00"), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    user_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=True,
    )

    user: Mapped[User | None] = relationship()

    def __repr__(self) -> str:
        return f"<Account {self.name}: {self.balance}>"
