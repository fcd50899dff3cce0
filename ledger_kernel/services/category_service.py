"""
CategoryService -- transaction categories.

Default categories (is_default, no owner) are visible to everyone and
mutable by no one.  Owned category names are unique per owner, compared
case-insensitively.
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_kernel.domain.actor import Actor
from ledger_kernel.domain.clock import Clock
from ledger_kernel.exceptions import CategoryInUseError, DuplicateCategoryError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models import (
    Budget,
    Category,
    RecurringTransaction,
    Transaction,
    User,
)
from ledger_kernel.selectors.scope_selector import ScopeSelector
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.permission_service import PermissionService

logger = get_logger("services.category")


class CategoryService(BaseService):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        scope: ScopeSelector | None = None,
    ):
        super().__init__(session, clock)
        self.scope = scope or ScopeSelector(session)
        self.permissions = PermissionService(session, self.scope)

    def list(self, actor: Actor) -> list[Category]:
        return self.scope.visible_categories(actor)

    def get(self, actor: Actor, category_id: UUID) -> Category:
        return self.permissions.load_visible(actor, Category, category_id)

    def _name_taken(self, user_id: UUID, name: str, exclude_id: UUID | None = None) -> bool:
        stmt = select(Category.id).where(
            Category.user_id == user_id,
            func.lower(Category.name) == name.strip().lower(),
        )
        if exclude_id is not None:
            stmt = stmt.where(Category.id != exclude_id)
        return self.session.scalars(stmt).first() is not None

    def create(
        self,
        actor: Actor,
        *,
        name: str,
        description: str | None = None,
        color: str | None = None,
    ) -> Category:
        """
        Raises:
            GroupMemberCreationDeniedError: plain group member.
            DuplicateCategoryError: the user already has a category by that name.
        """
        user = self._get_by_id(User, actor.user_id)
        self.permissions.check_can_create(user, "Category")
        if self._name_taken(user.id, name):
            raise DuplicateCategoryError(name)

        category = Category(
            name=name.strip(),
            description=description,
            color=color,
            is_default=False,
            user_id=user.id,
            admin_id=user.admin_id,
        )
        self.session.add(category)
        self.session.flush()
        logger.info(
            "category_created",
            extra={"category_id": str(category.id), "user_id": str(user.id)},
        )
        return category

    def update(
        self,
        actor: Actor,
        category_id: UUID,
        *,
        name: str | None = None,
        description: str | None = None,
        color: str | None = None,
    ) -> Category:
        category = self.permissions.load_mutable(actor, Category, category_id)
        if name is not None and name.strip().lower() != category.name.lower():
            if self._name_taken(category.user_id, name, exclude_id=category.id):
                raise DuplicateCategoryError(name)
            category.name = name.strip()
        if description is not None:
            category.description = description
        if color is not None:
            category.color = color
        self.session.flush()
        logger.info("category_updated", extra={"category_id": str(category.id)})
        return category

    def _reference_count(self, category_id: UUID) -> int:
        total = 0
        for model in (Transaction, Budget, RecurringTransaction):
            total += self.session.scalar(
                select(func.count()).select_from(model).where(model.category_id == category_id)
            ) or 0
        return total

    def delete(self, actor: Actor, category_id: UUID) -> None:
        """
        Remove a category outright.

        Raises:
            CategoryInUseError: transactions, budgets or schedules still use it.
        """
        category = self.permissions.load_mutable(actor, Category, category_id)
        references = self._reference_count(category.id)
        if references:
            raise CategoryInUseError(category.id, references)
        self._retire(category, "Category")
        logger.info("category_deleted", extra={"category_id": str(category_id)})
