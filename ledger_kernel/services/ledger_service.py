"""
LedgerService -- running account balances.

Responsibility:
    Keep ``Account.balance`` equal to the initial balance plus the signed
    deltas of every transaction currently posted against the account.

    The Ledger is responsible for:
    - Applying signed deltas (INCOME adds, EXPENSE subtracts)
    - Rejecting expenses that would take a balance below zero
    - Rejecting postings to deactivated accounts
    - Reverting a transaction's effect before it is edited or deleted

    The Ledger does NOT:
    - Decide who may post (that's the PermissionService)
    - Create or delete transaction rows (that's the TransactionService)

Architecture position:
    Kernel > Services.  Called by TransactionService and
    RecurringTransactionService inside the caller's unit of work.

Invariants enforced:
    - repost() follows revert-old -> validate-new -> apply-new.  When the new
      state fails validation every touched account is restored to its exact
      pre-update balance and the transaction row is left untouched.
    - Money is quantized to 2 places once, at intake (normalize_amount).  No
      other rounding happens here, so post followed by revert is exact.
    - The account row is locked (SELECT ... FOR UPDATE) before its balance
      is read, so concurrent postings serialize on the store.

Failure modes:
    - InsufficientFundsError carrying available and requested amounts.
    - AccountInactiveError for postings to a soft-deleted account.
    - InvalidAmountError for missing, non-numeric or non-positive amounts.
    - RecordNotFoundError if the account row does not exist.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.db.types import round_money
from ledger_kernel.domain.balance import is_expense, reversal_delta, signed_delta
from ledger_kernel.domain.dtos import TransactionChanges
from ledger_kernel.exceptions import (
    AccountInactiveError,
    InsufficientFundsError,
    InvalidAmountError,
    RecordNotFoundError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models import Account, Transaction, TransactionType
from ledger_kernel.services.base import BaseService

logger = get_logger("services.ledger")


def normalize_amount(value) -> Decimal:
    """
    Quantize an incoming amount to the ledger scale.

    Raises:
        InvalidAmountError: value is missing, not a number, or not > 0.
    """
    if value is None or isinstance(value, bool):
        raise InvalidAmountError(value)
    try:
        amount = round_money(value)
    except (TypeError, ValueError, ArithmeticError):
        raise InvalidAmountError(value) from None
    if not amount.is_finite() or amount <= 0:
        raise InvalidAmountError(value)
    return amount


class LedgerService(BaseService):
    def lock_account(self, account_id: UUID) -> Account:
        """Load the account row with a row-level lock held until commit."""
        account = self.session.execute(
            select(Account)
            .where(Account.id == account_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if account is None:
            raise RecordNotFoundError("Account", account_id)
        return account

    def apply(self, account: Account, signed_amount: Decimal) -> Decimal:
        """Add ``signed_amount`` to the balance and return the new balance."""
        before = account.balance
        account.balance = before + signed_amount
        logger.debug(
            "balance_applied",
            extra={
                "account_id": str(account.id),
                "delta": signed_amount,
                "balance_before": before,
                "balance_after": account.balance,
            },
        )
        return account.balance

    def _validate(
        self,
        account: Account,
        transaction_type: TransactionType,
        amount: Decimal,
    ) -> None:
        if not account.is_active:
            raise AccountInactiveError(account.id)
        if is_expense(transaction_type) and account.balance < amount:
            raise InsufficientFundsError(account.id, account.balance, amount)

    def post(self, transaction: Transaction) -> Account:
        """
        Apply a new transaction's effect to its account.

        Raises:
            AccountInactiveError, InsufficientFundsError
        """
        account = self.lock_account(transaction.account_id)
        try:
            self._validate(account, transaction.transaction_type, transaction.amount)
        except InsufficientFundsError as exc:
            logger.info(
                "posting_rejected",
                extra={
                    "account_id": str(account.id),
                    "available": exc.available,
                    "requested": exc.requested,
                },
            )
            raise
        self.apply(account, signed_delta(transaction.transaction_type, transaction.amount))
        self.session.flush()
        logger.info(
            "transaction_posted",
            extra={
                "account_id": str(account.id),
                "transaction_type": transaction.transaction_type,
                "amount": transaction.amount,
                "balance": account.balance,
            },
        )
        return account

    def revert(self, transaction: Transaction) -> Account:
        """Remove a posted transaction's effect from its account."""
        account = self.lock_account(transaction.account_id)
        self.apply(account, reversal_delta(transaction.transaction_type, transaction.amount))
        self.session.flush()
        logger.info(
            "transaction_reverted",
            extra={
                "transaction_id": str(transaction.id),
                "account_id": str(account.id),
                "balance": account.balance,
            },
        )
        return account

    def repost(self, transaction: Transaction, changes: TransactionChanges) -> Transaction:
        """
        Re-post ``transaction`` with its balance-affecting fields changed.

        Sequence: revert the old effect, validate the new state, apply the
        new effect.  On validation failure every touched account gets its
        pre-update balance back and the transaction row is not modified.
        """
        new_type = (
            TransactionType(changes.transaction_type)
            if changes.transaction_type is not None
            else transaction.transaction_type
        )
        new_amount = (
            normalize_amount(changes.amount)
            if changes.amount is not None
            else transaction.amount
        )
        new_account_id = changes.account_id or transaction.account_id

        old_account = self.lock_account(transaction.account_id)
        new_account = (
            old_account
            if new_account_id == old_account.id
            else self.lock_account(new_account_id)
        )
        snapshot = {old_account.id: old_account.balance, new_account.id: new_account.balance}

        try:
            self.apply(
                old_account,
                reversal_delta(transaction.transaction_type, transaction.amount),
            )
            self._validate(new_account, new_type, new_amount)
            self.apply(new_account, signed_delta(new_type, new_amount))
        except Exception:
            old_account.balance = snapshot[old_account.id]
            new_account.balance = snapshot[new_account.id]
            logger.info(
                "repost_rolled_back",
                extra={
                    "transaction_id": str(transaction.id),
                    "account_id": str(new_account.id),
                    "restored_balance": new_account.balance,
                },
            )
            raise

        transaction.transaction_type = new_type
        transaction.amount = new_amount
        transaction.account_id = new_account.id
        transaction.account = new_account
        self.session.flush()
        logger.info(
            "transaction_reposted",
            extra={
                "transaction_id": str(transaction.id),
                "account_id": str(new_account.id),
                "balance": new_account.balance,
            },
        )
        return transaction
