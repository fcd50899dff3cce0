"""
BudgetService -- spending limits over a date range.

A budget without a category caps all expenses in its range; with one, only
that category's.  Status figures (spent, remaining, near-limit) come from
AnalyticsSelector.budget_status.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.domain.actor import Actor
from ledger_kernel.domain.clock import Clock
from ledger_kernel.exceptions import InvalidBudgetError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models import Budget, Category, User
from ledger_kernel.selectors.scope_selector import ScopeSelector
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.ledger_service import normalize_amount
from ledger_kernel.services.permission_service import PermissionService

logger = get_logger("services.budget")

DEFAULT_ALERT_THRESHOLD = 80


def _check_range(start_date: date, end_date: date) -> None:
    if end_date < start_date:
        raise InvalidBudgetError("end_date", "must not be before start_date")


def _check_threshold(alert_threshold: int) -> None:
    if not 0 <= alert_threshold <= 100:
        raise InvalidBudgetError("alert_threshold", "must be between 0 and 100")


class BudgetService(BaseService):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        scope: ScopeSelector | None = None,
    ):
        super().__init__(session, clock)
        self.scope = scope or ScopeSelector(session)
        self.permissions = PermissionService(session, self.scope)

    def list(self, actor: Actor) -> list[Budget]:
        return self.scope.visible_budgets(actor)

    def get(self, actor: Actor, budget_id: UUID) -> Budget:
        return self.permissions.load_visible(actor, Budget, budget_id)

    def create(
        self,
        actor: Actor,
        *,
        name: str,
        amount: Decimal | str,
        start_date: date,
        end_date: date,
        category_id: UUID | None = None,
        alert_threshold: int = DEFAULT_ALERT_THRESHOLD,
    ) -> Budget:
        """
        Raises:
            GroupMemberCreationDeniedError: plain group member.
            RecordNotFoundError: category not visible to the user.
            InvalidAmountError, InvalidBudgetError
        """
        user = self._get_by_id(User, actor.user_id)
        self.permissions.check_can_create(user, "Budget")
        amount = normalize_amount(amount)
        _check_range(start_date, end_date)
        _check_threshold(alert_threshold)
        if category_id is not None:
            self.permissions.load_visible(actor, Category, category_id)

        budget = Budget(
            name=name,
            amount=amount,
            start_date=start_date,
            end_date=end_date,
            alert_threshold=alert_threshold,
            category_id=category_id,
            is_active=True,
            user_id=user.id,
        )
        self.session.add(budget)
        self.session.flush()
        logger.info(
            "budget_created",
            extra={"budget_id": str(budget.id), "user_id": str(user.id), "amount": amount},
        )
        return budget

    def update(
        self,
        actor: Actor,
        budget_id: UUID,
        *,
        name: str | None = None,
        amount: Decimal | str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        category_id: UUID | None = None,
        alert_threshold: int | None = None,
    ) -> Budget:
        budget = self.permissions.load_mutable(actor, Budget, budget_id)
        new_start = start_date or budget.start_date
        new_end = end_date or budget.end_date
        _check_range(new_start, new_end)
        if alert_threshold is not None:
            _check_threshold(alert_threshold)
            budget.alert_threshold = alert_threshold
        if category_id is not None and category_id != budget.category_id:
            self.permissions.load_visible(actor, Category, category_id)
            budget.category_id = category_id
        if amount is not None:
            budget.amount = normalize_amount(amount)
        if name is not None:
            budget.name = name
        budget.start_date = new_start
        budget.end_date = new_end
        self.session.flush()
        logger.info("budget_updated", extra={"budget_id": str(budget.id)})
        return budget

    def delete(self, actor: Actor, budget_id: UUID) -> None:
        budget = self.permissions.load_mutable(actor, Budget, budget_id)
        self._retire(budget, "Budget")
        logger.info("budget_deactivated", extra={"budget_id": str(budget_id)})
