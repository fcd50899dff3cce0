"""
TransactionService -- create, edit and delete ledger transactions.

Every write goes through the PermissionService first and the LedgerService
second, inside the caller's unit of work:

    create  -> account and category must be visible to the creator
            -> LedgerService.post -> INSERT
    update  -> require_mutable -> LedgerService.repost (if amount, type or
               account change) -> UPDATE of descriptive fields
    delete  -> require_mutable -> LedgerService.revert -> DELETE

A transaction's admin_id is inherited from its owner at creation: the
owner's direct Admin, or else the Admin of the owner's group.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.domain.actor import Actor
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import Page, TransactionChanges, TransactionFilter
from ledger_kernel.domain.recurrence import add_months
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models import (
    Account,
    Category,
    Transaction,
    TransactionType,
    User,
    UserGroup,
)
from ledger_kernel.selectors.scope_selector import ScopeSelector
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.ledger_service import LedgerService, normalize_amount
from ledger_kernel.services.permission_service import PermissionService

logger = get_logger("services.transaction")


class TransactionService(BaseService):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        scope: ScopeSelector | None = None,
    ):
        super().__init__(session, clock)
        self.scope = scope or ScopeSelector(session)
        self.permissions = PermissionService(session, self.scope)
        self.ledger = LedgerService(session, self.clock)

    # =========================================================================
    # Reads
    # =========================================================================

    def list(self, actor: Actor, filters: TransactionFilter | None = None) -> Page[Transaction]:
        return self.scope.visible_transactions(actor, filters)

    def search(
        self,
        actor: Actor,
        start_date: date | None = None,
        end_date: date | None = None,
        category_id: UUID | None = None,
        account_id: UUID | None = None,
        transaction_type: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> Page[Transaction]:
        """Filtered list; the date window defaults to the last month."""
        today = self.clock.today()
        filters = TransactionFilter(
            start_date=start_date or add_months(today, -1),
            end_date=end_date or today,
            category_id=category_id,
            account_id=account_id,
            transaction_type=transaction_type,
            limit=limit,
            offset=offset,
        )
        return self.scope.visible_transactions(actor, filters)

    def get(self, actor: Actor, transaction_id: UUID) -> Transaction:
        return self.permissions.load_visible(actor, Transaction, transaction_id)

    # =========================================================================
    # Writes
    # =========================================================================

    def inherited_admin_id(self, owner: User) -> UUID | None:
        if owner.admin_id is not None:
            return owner.admin_id
        if owner.user_group_id is not None:
            group = self.session.get(UserGroup, owner.user_group_id)
            if group is not None:
                return group.admin_id
        return None

    def post_for_owner(
        self,
        owner: User,
        *,
        amount: Decimal,
        transaction_type: TransactionType,
        account_id: UUID,
        category_id: UUID,
        description: str,
        transaction_date: date,
        notes: str | None = None,
        recurring_transaction_id: UUID | None = None,
    ) -> Transaction:
        """
        Build, post and persist a transaction owned by ``owner``.

        No authorization happens here; callers have already decided the
        write is allowed.  The balance is posted before the row is added, so
        a rejected posting leaves nothing behind in the session.
        """
        transaction = Transaction(
            amount=normalize_amount(amount),
            transaction_type=TransactionType(transaction_type),
            account_id=account_id,
            category_id=category_id,
            description=description,
            notes=notes,
            transaction_date=transaction_date,
            user_id=owner.id,
            admin_id=self.inherited_admin_id(owner),
            recurring_transaction_id=recurring_transaction_id,
            is_approved=False,
        )
        self.ledger.post(transaction)
        self.session.add(transaction)
        self.session.flush()
        logger.info(
            "transaction_created",
            extra={
                "transaction_id": str(transaction.id),
                "user_id": str(owner.id),
                "account_id": str(account_id),
                "transaction_type": transaction.transaction_type,
                "amount": transaction.amount,
                "recurring_transaction_id": (
                    str(recurring_transaction_id) if recurring_transaction_id else None
                ),
            },
        )
        return transaction

    def create(
        self,
        actor: Actor,
        *,
        amount: Decimal,
        transaction_type: TransactionType | str,
        account_id: UUID,
        category_id: UUID,
        description: str,
        transaction_date: date | None = None,
        notes: str | None = None,
    ) -> Transaction:
        """
        Record a transaction owned by the acting user.

        Raises:
            RecordNotFoundError: account or category not visible.
            InvalidAmountError, AccountInactiveError, InsufficientFundsError
        """
        owner = self._get_by_id(User, actor.user_id)
        amount = normalize_amount(amount)
        self.permissions.load_visible(actor, Account, account_id)
        self.permissions.load_visible(actor, Category, category_id)
        return self.post_for_owner(
            owner,
            amount=amount,
            transaction_type=TransactionType(transaction_type),
            account_id=account_id,
            category_id=category_id,
            description=description,
            transaction_date=transaction_date or self.clock.today(),
            notes=notes,
        )

    def update(
        self,
        actor: Actor,
        transaction_id: UUID,
        changes: TransactionChanges,
    ) -> Transaction:
        """
        Edit a transaction.

        Balance-affecting edits go through LedgerService.repost; if the new
        state is rejected, balances and the row keep their pre-update values.
        """
        transaction = self.permissions.load_mutable(actor, Transaction, transaction_id)

        if changes.account_id is not None and changes.account_id != transaction.account_id:
            self.permissions.load_visible(actor, Account, changes.account_id)
        if changes.category_id is not None and changes.category_id != transaction.category_id:
            self.permissions.load_visible(actor, Category, changes.category_id)

        if changes.touches_balance():
            self.ledger.repost(transaction, changes)

        if changes.category_id is not None:
            transaction.category_id = changes.category_id
        if changes.description is not None:
            transaction.description = changes.description
        if changes.notes is not None:
            transaction.notes = changes.notes
        if changes.transaction_date is not None:
            transaction.transaction_date = changes.transaction_date

        self.session.flush()
        logger.info(
            "transaction_updated",
            extra={"transaction_id": str(transaction.id), "actor_id": str(actor.user_id)},
        )
        return transaction

    def delete(self, actor: Actor, transaction_id: UUID) -> None:
        """Revert the transaction's balance effect, then remove the row."""
        transaction = self.permissions.load_mutable(actor, Transaction, transaction_id)
        self.ledger.revert(transaction)
        self._retire(transaction, "Transaction")
        logger.info(
            "transaction_deleted",
            extra={"transaction_id": str(transaction_id), "actor_id": str(actor.user_id)},
        )
