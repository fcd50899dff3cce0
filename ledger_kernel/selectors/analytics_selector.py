"""
AnalyticsSelector -- dashboard aggregates over the actor's scope.

Responsibility:
    Income/expense totals, per-category expense spending, monthly expense
    trend, budget status and the admin portal overview.

Architecture position:
    Kernel > Selectors.  Read-only.  Every user-facing aggregate is computed
    over ScopeSelector.aggregate_user_ids(), so for non-owner actors the
    dashboards add up exactly the transactions their lists show.  The Owner's
    dashboards cover the Owner's own records only.

    admin_overview() is the exception: it summarizes what the admin portal
    lists (managed users and the full visible transaction scope), so for the
    Owner it spans the whole system.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import extract, func, select

from ledger_kernel.db.types import round_money
from ledger_kernel.domain.actor import Actor, AdminActor, AdminFound, OwnerActor
from ledger_kernel.domain.dtos import (
    AdminOverview,
    BudgetStatus,
    CategorySpending,
    DashboardSummary,
    MonthlyTotal,
)
from ledger_kernel.models import (
    Budget,
    Category,
    Transaction,
    TransactionType,
    User,
    UserGroup,
    UserRole,
)
from ledger_kernel.selectors.base import BaseSelector
from ledger_kernel.selectors.scope_selector import ScopeSelector

ZERO = Decimal("0.00")


def _money(value) -> Decimal:
    if value is None:
        return ZERO
    return round_money(Decimal(str(value)))


class AnalyticsSelector(BaseSelector):
    def __init__(self, session, scope: ScopeSelector | None = None):
        super().__init__(session)
        self.scope = scope or ScopeSelector(session)

    def _sum(
        self,
        user_ids: list[UUID],
        transaction_type: TransactionType,
        start: date,
        end: date,
        category_id: UUID | None = None,
    ) -> Decimal:
        if not user_ids:
            return ZERO
        stmt = select(func.sum(Transaction.amount)).where(
            Transaction.user_id.in_(user_ids),
            Transaction.transaction_type == transaction_type,
            Transaction.transaction_date >= start,
            Transaction.transaction_date <= end,
        )
        if category_id is not None:
            stmt = stmt.where(Transaction.category_id == category_id)
        return _money(self.session.scalar(stmt))

    def total_income(self, actor: Actor, start: date, end: date) -> Decimal:
        return self._sum(self.scope.aggregate_user_ids(actor), TransactionType.INCOME, start, end)

    def total_expenses(self, actor: Actor, start: date, end: date) -> Decimal:
        return self._sum(self.scope.aggregate_user_ids(actor), TransactionType.EXPENSE, start, end)

    def category_spending(
        self, actor: Actor, start: date, end: date
    ) -> tuple[CategorySpending, ...]:
        """Expense totals per category, largest first."""
        user_ids = self.scope.aggregate_user_ids(actor)
        if not user_ids:
            return ()
        total = func.sum(Transaction.amount).label("total")
        rows = self.session.execute(
            select(Category.id, Category.name, Category.color, total)
            .join(Category, Transaction.category_id == Category.id)
            .where(
                Transaction.user_id.in_(user_ids),
                Transaction.transaction_type == TransactionType.EXPENSE,
                Transaction.transaction_date >= start,
                Transaction.transaction_date <= end,
            )
            .group_by(Category.id, Category.name, Category.color)
            .order_by(total.desc(), Category.name)
        )
        return tuple(
            CategorySpending(
                category_id=row.id,
                category_name=row.name,
                color=row.color,
                total=_money(row.total),
            )
            for row in rows
        )

    def monthly_trend(self, actor: Actor, start: date, end: date) -> tuple[MonthlyTotal, ...]:
        """Expense totals per calendar month (YYYY-MM), oldest first."""
        user_ids = self.scope.aggregate_user_ids(actor)
        if not user_ids:
            return ()
        year = extract("year", Transaction.transaction_date).label("year")
        month = extract("month", Transaction.transaction_date).label("month")
        rows = self.session.execute(
            select(year, month, func.sum(Transaction.amount).label("total"))
            .where(
                Transaction.user_id.in_(user_ids),
                Transaction.transaction_type == TransactionType.EXPENSE,
                Transaction.transaction_date >= start,
                Transaction.transaction_date <= end,
            )
            .group_by(year, month)
            .order_by(year, month)
        )
        return tuple(
            MonthlyTotal(month=f"{int(row.year):04d}-{int(row.month):02d}", total=_money(row.total))
            for row in rows
        )

    def dashboard(self, actor: Actor, start: date, end: date) -> DashboardSummary:
        return DashboardSummary(
            start_date=start,
            end_date=end,
            total_income=self.total_income(actor, start, end),
            total_expenses=self.total_expenses(actor, start, end),
            category_spending=self.category_spending(actor, start, end),
            monthly_trend=self.monthly_trend(actor, start, end),
        )

    def budget_status(self, actor: Actor, today: date) -> list[BudgetStatus]:
        """
        Status of the actor's own active budgets covering ``today``.

        Spending is summed over the actor's aggregate scope within each
        budget's date range, restricted to its category when it has one.
        """
        budgets = self.session.scalars(
            select(Budget)
            .where(
                Budget.user_id == actor.user_id,
                Budget.is_active.is_(True),
                Budget.start_date <= today,
                Budget.end_date >= today,
            )
            .order_by(Budget.start_date, Budget.name)
        )
        user_ids = self.scope.aggregate_user_ids(actor)
        return [
            BudgetStatus(
                budget_id=budget.id,
                name=budget.name,
                amount=budget.amount,
                spent=self._sum(
                    user_ids,
                    TransactionType.EXPENSE,
                    budget.start_date,
                    budget.end_date,
                    category_id=budget.category_id,
                ),
                alert_threshold=budget.alert_threshold,
            )
            for budget in budgets
        ]

    def managed_users(self, actor: Actor) -> list[User]:
        """Users an Owner or Admin administers (role USER only)."""
        match actor:
            case OwnerActor():
                stmt = select(User).where(User.role == UserRole.USER)
            case AdminActor(admin=AdminFound(admin_id=admin_id)):
                group_ids = select(UserGroup.id).where(UserGroup.admin_id == admin_id)
                stmt = select(User).where(
                    User.role == UserRole.USER,
                    (User.admin_id == admin_id) | User.user_group_id.in_(group_ids),
                )
            case _:
                return []
        return list(self.session.scalars(stmt.order_by(User.created_at, User.username)))

    def admin_overview(self, actor: Actor) -> AdminOverview:
        clause = self.scope.transaction_scope_clause(actor)
        base = select(Transaction)
        if clause is not None:
            base = base.where(clause)
        scoped = base.subquery()

        transaction_count = self.session.scalar(select(func.count()).select_from(scoped)) or 0
        pending = self.session.scalar(
            select(func.count()).select_from(scoped).where(scoped.c.is_approved.is_(False))
        ) or 0
        income = self.session.scalar(
            select(func.sum(scoped.c.amount)).where(
                scoped.c.transaction_type == TransactionType.INCOME
            )
        )
        expenses = self.session.scalar(
            select(func.sum(scoped.c.amount)).where(
                scoped.c.transaction_type == TransactionType.EXPENSE
            )
        )

        return AdminOverview(
            managed_user_count=len(self.managed_users(actor)),
            transaction_count=transaction_count,
            pending_approvals=pending,
            total_income=_money(income),
            total_expenses=_money(expenses),
            category_count=len(self.scope.visible_categories(actor)),
        )
