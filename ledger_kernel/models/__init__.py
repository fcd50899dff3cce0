"""ORM models for the ledger kernel."""

from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.models.budget import Budget
from ledger_kernel.models.category import Category
from ledger_kernel.models.identity import Admin, User, UserGroup, UserRole
from ledger_kernel.models.password_reset import PasswordResetToken
from ledger_kernel.models.recurring import (
    RecurrenceType,
    RecurringTransaction,
    ScheduleStatus,
)
from ledger_kernel.models.transaction import Transaction, TransactionType

__all__ = [
    "Account",
    "AccountType",
    "Admin",
    "Budget",
    "Category",
    "PasswordResetToken",
    "RecurrenceType",
    "RecurringTransaction",
    "ScheduleStatus",
    "Transaction",
    "TransactionType",
    "User",
    "UserGroup",
    "UserRole",
]
