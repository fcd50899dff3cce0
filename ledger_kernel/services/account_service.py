"""
AccountService -- money accounts.

Balance is written here exactly once, at creation.  Every later change to
it goes through LedgerService.  Deleting an account deactivates it; rows
that reference it keep working and it disappears from lists.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.db.types import round_money
from ledger_kernel.domain.actor import Actor
from ledger_kernel.domain.clock import Clock
from ledger_kernel.exceptions import InvalidAmountError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models import Account, AccountType, User
from ledger_kernel.selectors.scope_selector import ScopeSelector
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.permission_service import PermissionService

logger = get_logger("services.account")

# Fields update() may touch.  balance is deliberately absent.
UPDATABLE_FIELDS = ("name", "description", "account_type", "is_active")


class AccountService(BaseService):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        scope: ScopeSelector | None = None,
    ):
        super().__init__(session, clock)
        self.scope = scope or ScopeSelector(session)
        self.permissions = PermissionService(session, self.scope)

    def list(self, actor: Actor) -> list[Account]:
        return self.scope.visible_accounts(actor)

    def get(self, actor: Actor, account_id: UUID) -> Account:
        return self.permissions.load_visible(actor, Account, account_id)

    def create(
        self,
        actor: Actor,
        *,
        name: str,
        account_type: AccountType | str = AccountType.CHECKING,
        description: str | None = None,
        initial_balance: Decimal | str | int = Decimal("0.00"),
    ) -> Account:
        """
        Open an account for the acting user.

        Raises:
            GroupMemberCreationDeniedError: plain group member.
            InvalidAmountError: negative or non-numeric initial balance.
        """
        user = self._get_by_id(User, actor.user_id)
        self.permissions.check_can_create(user, "Account")

        try:
            balance = round_money(initial_balance)
        except (TypeError, ValueError, ArithmeticError):
            raise InvalidAmountError(initial_balance) from None
        if not balance.is_finite() or balance < 0:
            raise InvalidAmountError(initial_balance)

        account = Account(
            name=name,
            description=description,
            account_type=AccountType(account_type),
            balance=balance,
            is_active=True,
            user_id=user.id,
        )
        self.session.add(account)
        self.session.flush()
        logger.info(
            "account_created",
            extra={
                "account_id": str(account.id),
                "user_id": str(user.id),
                "initial_balance": balance,
            },
        )
        return account

    def update(self, actor: Actor, account_id: UUID, **changes) -> Account:
        """Change descriptive fields.  Unknown fields raise TypeError."""
        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise TypeError(f"Cannot update account fields: {sorted(unknown)}")

        account = self.permissions.load_mutable(actor, Account, account_id)
        for field_name, value in changes.items():
            if value is None:
                continue
            if field_name == "account_type":
                value = AccountType(value)
            setattr(account, field_name, value)
        self.session.flush()
        logger.info(
            "account_updated",
            extra={"account_id": str(account.id), "fields": sorted(changes)},
        )
        return account

    def delete(self, actor: Actor, account_id: UUID) -> None:
        account = self.permissions.load_mutable(actor, Account, account_id)
        self._retire(account, "Account")
        logger.info("account_deactivated", extra={"account_id": str(account_id)})
