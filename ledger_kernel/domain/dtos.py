"""
DTOs -- immutable data structures exchanged with the service and selector
layers.

Responsibility:
    Query filters, pagination pages, permission verdicts, transaction change
    sets, analytics summaries and the recurring sweep result.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Pages may carry ORM rows produced by
    selectors, but nothing here loads or writes them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Generic, TypeVar
from uuid import UUID

T = TypeVar("T")


@dataclass(frozen=True)
class TransactionFilter:
    """Optional criteria for transaction lists; None means "no constraint"."""

    start_date: date | None = None
    end_date: date | None = None
    category_id: UUID | None = None
    account_id: UUID | None = None
    transaction_type: str | None = None
    limit: int | None = None
    offset: int = 0

    def __post_init__(self) -> None:
        if self.limit is not None and self.limit < 0:
            raise ValueError(f"limit must be non-negative, got {self.limit}")
        if self.offset < 0:
            raise ValueError(f"offset must be non-negative, got {self.offset}")


@dataclass(frozen=True)
class Page(Generic[T]):
    items: tuple[T, ...]
    total: int
    limit: int | None
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total


@dataclass(frozen=True)
class MutationVerdict:
    """Outcome of a mutate check.  ``reason`` is set only when denied."""

    allowed: bool
    reason: str | None = None

    @classmethod
    def allow(cls) -> MutationVerdict:
        return cls(True)

    @classmethod
    def deny(cls, reason: str) -> MutationVerdict:
        return cls(False, reason)

    def __bool__(self) -> bool:
        return self.allowed


@dataclass(frozen=True)
class TransactionChanges:
    """
    Requested edits to a posted transaction.

    Fields left at None keep their current value.
    """

    amount: Decimal | None = None
    transaction_type: str | None = None
    account_id: UUID | None = None
    category_id: UUID | None = None
    description: str | None = None
    notes: str | None = None
    transaction_date: date | None = None

    def touches_balance(self) -> bool:
        return any(
            v is not None
            for v in (self.amount, self.transaction_type, self.account_id)
        )


@dataclass(frozen=True)
class CategorySpending:
    category_id: UUID
    category_name: str
    color: str | None
    total: Decimal


@dataclass(frozen=True)
class MonthlyTotal:
    month: str  # YYYY-MM
    total: Decimal


@dataclass(frozen=True)
class DashboardSummary:
    start_date: date
    end_date: date
    total_income: Decimal
    total_expenses: Decimal
    category_spending: tuple[CategorySpending, ...]
    monthly_trend: tuple[MonthlyTotal, ...]

    @property
    def net_amount(self) -> Decimal:
        return self.total_income - self.total_expenses


@dataclass(frozen=True)
class BudgetStatus:
    budget_id: UUID
    name: str
    amount: Decimal
    spent: Decimal
    alert_threshold: int

    @property
    def remaining(self) -> Decimal:
        return self.amount - self.spent

    @property
    def percentage(self) -> Decimal:
        if self.amount == 0:
            return Decimal("0.00")
        return (self.spent * 100 / self.amount).quantize(Decimal("0.01"))

    @property
    def is_over_budget(self) -> bool:
        return self.spent > self.amount

    @property
    def is_near_limit(self) -> bool:
        return self.percentage >= self.alert_threshold


@dataclass(frozen=True)
class AdminOverview:
    managed_user_count: int
    transaction_count: int
    pending_approvals: int
    total_income: Decimal
    total_expenses: Decimal
    category_count: int


@dataclass(frozen=True)
class SweepFailure:
    schedule_id: UUID
    error_code: str
    message: str


@dataclass(frozen=True)
class SweepResult:
    """Outcome of one pass over due recurring schedules."""

    run_date: date
    executed: tuple[UUID, ...] = ()
    failed: tuple[SweepFailure, ...] = ()
    ended: tuple[UUID, ...] = ()

    @property
    def executed_count(self) -> int:
        return len(self.executed)

    @property
    def failed_count(self) -> int:
        return len(self.failed)
