"""
RecurringTransactionService -- recurring schedules and the due sweep.

Responsibility:
    CRUD for recurring schedules, manual execution, and process_due(), the
    batch pass that turns every due schedule into a posted Transaction.

Architecture position:
    Kernel > Services.  Transactions are produced through
    TransactionService.post_for_owner, so balance rules are the same as for
    hand-entered transactions.  ledger_batch.RecurringSweepScheduler drives
    process_due() on a timer.

State machine:
    ACTIVE --toggle/delete--> INACTIVE --toggle--> ACTIVE
    ACTIVE --execute past end_date--> ENDED      (terminal)

Invariants enforced:
    - A schedule's first due date is its start date; after each execution
      it advances by exactly one period from the previous due date.
    - Executions are attributed to the schedule's owner and inherit the
      owner's admin, whoever triggers them.
    - During a sweep each execution runs inside its own SAVEPOINT.  A
      failing schedule is rolled back alone, logged, and reported in the
      SweepResult; the rest of the batch continues.

Failure modes:
    - ScheduleInactiveError when executing an INACTIVE or ENDED schedule.
    - ScheduleEndedError when executing after end_date (status -> ENDED).
    - UnknownRecurrenceTypeError (configuration) for a corrupt type.
    - Any ledger error raised by posting (insufficient funds, inactive
      account).
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.actor import Actor
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import SweepFailure, SweepResult
from ledger_kernel.domain.recurrence import calculate_next_due_date, has_ended
from ledger_kernel.exceptions import (
    LedgerKernelError,
    ScheduleEndedError,
    ScheduleInactiveError,
    UnknownRecurrenceTypeError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models import (
    Account,
    Category,
    RecurrenceType,
    RecurringTransaction,
    ScheduleStatus,
    Transaction,
    TransactionType,
    User,
)
from ledger_kernel.selectors.scope_selector import ScopeSelector
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.ledger_service import normalize_amount
from ledger_kernel.services.permission_service import PermissionService
from ledger_kernel.services.transaction_service import TransactionService

logger = get_logger("services.recurring")


def _recurrence(value) -> RecurrenceType:
    try:
        return RecurrenceType(value)
    except ValueError:
        raise UnknownRecurrenceTypeError(value) from None


def first_due_on_or_after(start: date, recurrence_type, today: date) -> date:
    """First date of the cadence anchored at ``start`` that is >= ``today``."""
    due = start
    while due < today:
        due = calculate_next_due_date(due, recurrence_type)
    return due


class RecurringTransactionService(BaseService):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        scope: ScopeSelector | None = None,
    ):
        super().__init__(session, clock)
        self.scope = scope or ScopeSelector(session)
        self.permissions = PermissionService(session, self.scope)
        self.transactions = TransactionService(session, self.clock, self.scope)

    # =========================================================================
    # Reads
    # =========================================================================

    def list(self, actor: Actor) -> list[RecurringTransaction]:
        return self.scope.visible_recurring(actor)

    def list_active(self, actor: Actor) -> list[RecurringTransaction]:
        return self.scope.visible_recurring(actor, active_only=True)

    def get(self, actor: Actor, schedule_id: UUID) -> RecurringTransaction:
        return self.permissions.load_visible(actor, RecurringTransaction, schedule_id)

    # =========================================================================
    # Writes
    # =========================================================================

    def create(
        self,
        actor: Actor,
        *,
        description: str,
        amount: Decimal | str,
        transaction_type: TransactionType | str,
        recurrence_type: RecurrenceType | str,
        start_date: date,
        account_id: UUID,
        category_id: UUID,
        end_date: date | None = None,
        notes: str | None = None,
    ) -> RecurringTransaction:
        """
        Raises:
            GroupMemberCreationDeniedError: plain group member.
            RecordNotFoundError: account or category not visible.
            InvalidAmountError, UnknownRecurrenceTypeError
        """
        user = self._get_by_id(User, actor.user_id)
        self.permissions.check_can_create(user, "RecurringTransaction")
        amount = normalize_amount(amount)
        recurrence_type = _recurrence(recurrence_type)
        self.permissions.load_visible(actor, Account, account_id)
        self.permissions.load_visible(actor, Category, category_id)

        schedule = RecurringTransaction(
            description=description,
            amount=amount,
            notes=notes,
            transaction_type=TransactionType(transaction_type),
            recurrence_type=recurrence_type,
            start_date=start_date,
            end_date=end_date,
            next_due_date=start_date,
            status=ScheduleStatus.ACTIVE,
            user_id=user.id,
            account_id=account_id,
            category_id=category_id,
        )
        self.session.add(schedule)
        self.session.flush()
        logger.info(
            "recurring_created",
            extra={
                "schedule_id": str(schedule.id),
                "user_id": str(user.id),
                "recurrence_type": recurrence_type,
                "next_due_date": start_date,
            },
        )
        return schedule

    def update(
        self,
        actor: Actor,
        schedule_id: UUID,
        *,
        description: str | None = None,
        amount: Decimal | str | None = None,
        transaction_type: TransactionType | str | None = None,
        recurrence_type: RecurrenceType | str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        account_id: UUID | None = None,
        category_id: UUID | None = None,
        notes: str | None = None,
    ) -> RecurringTransaction:
        """
        Edit a schedule.

        A change of recurrence type re-derives next_due_date: the first date
        of the new cadence, anchored at the start date, on or after today.
        """
        schedule = self.permissions.load_mutable(actor, RecurringTransaction, schedule_id)

        if account_id is not None and account_id != schedule.account_id:
            self.permissions.load_visible(actor, Account, account_id)
            schedule.account_id = account_id
        if category_id is not None and category_id != schedule.category_id:
            self.permissions.load_visible(actor, Category, category_id)
            schedule.category_id = category_id
        if amount is not None:
            schedule.amount = normalize_amount(amount)
        if transaction_type is not None:
            schedule.transaction_type = TransactionType(transaction_type)
        if description is not None:
            schedule.description = description
        if notes is not None:
            schedule.notes = notes
        if start_date is not None:
            schedule.start_date = start_date
        if end_date is not None:
            schedule.end_date = end_date

        if recurrence_type is not None:
            new_type = _recurrence(recurrence_type)
            if new_type != schedule.recurrence_type:
                schedule.recurrence_type = new_type
                schedule.next_due_date = first_due_on_or_after(
                    schedule.start_date, new_type, self.clock.today()
                )

        self.session.flush()
        logger.info(
            "recurring_updated",
            extra={
                "schedule_id": str(schedule.id),
                "next_due_date": schedule.next_due_date,
            },
        )
        return schedule

    def delete(self, actor: Actor, schedule_id: UUID) -> None:
        schedule = self.permissions.load_mutable(actor, RecurringTransaction, schedule_id)
        self._retire(schedule, "RecurringTransaction", ScheduleStatus.INACTIVE)
        logger.info("recurring_deactivated", extra={"schedule_id": str(schedule_id)})

    def toggle(self, actor: Actor, schedule_id: UUID) -> RecurringTransaction:
        """Flip ACTIVE <-> INACTIVE.  ENDED schedules stay ENDED."""
        schedule = self.permissions.load_mutable(actor, RecurringTransaction, schedule_id)
        if schedule.status == ScheduleStatus.ENDED:
            raise ScheduleInactiveError(schedule.id, ScheduleStatus.ENDED.value)
        schedule.status = (
            ScheduleStatus.INACTIVE
            if schedule.status == ScheduleStatus.ACTIVE
            else ScheduleStatus.ACTIVE
        )
        self.session.flush()
        logger.info(
            "recurring_toggled",
            extra={"schedule_id": str(schedule.id), "status": schedule.status},
        )
        return schedule

    # =========================================================================
    # Execution
    # =========================================================================

    def execute(self, actor: Actor, schedule_id: UUID) -> Transaction:
        """Execute a schedule now.  Requires mutate rights on it."""
        schedule = self.permissions.load_mutable(actor, RecurringTransaction, schedule_id)
        return self._execute(schedule, self.clock.today())

    def _mark_ended(self, schedule: RecurringTransaction) -> None:
        schedule.status = ScheduleStatus.ENDED
        self.session.flush()
        logger.info(
            "recurring_ended",
            extra={"schedule_id": str(schedule.id), "end_date": schedule.end_date},
        )

    def _execute(self, schedule: RecurringTransaction, today: date) -> Transaction:
        if schedule.status != ScheduleStatus.ACTIVE:
            raise ScheduleInactiveError(schedule.id, ScheduleStatus(schedule.status).value)
        if has_ended(today, schedule.end_date):
            self._mark_ended(schedule)
            raise ScheduleEndedError(schedule.id, schedule.end_date)

        # Resolved before posting so a corrupt type never leaves a posting behind
        next_due = calculate_next_due_date(schedule.next_due_date, schedule.recurrence_type)

        owner = self._get_by_id(User, schedule.user_id)
        transaction = self.transactions.post_for_owner(
            owner,
            amount=schedule.amount,
            transaction_type=schedule.transaction_type,
            account_id=schedule.account_id,
            category_id=schedule.category_id,
            description=schedule.description,
            transaction_date=today,
            notes=schedule.notes,
            recurring_transaction_id=schedule.id,
        )

        if has_ended(next_due, schedule.end_date):
            self._mark_ended(schedule)
        else:
            schedule.next_due_date = next_due
            self.session.flush()

        logger.info(
            "recurring_executed",
            extra={
                "schedule_id": str(schedule.id),
                "transaction_id": str(transaction.id),
                "user_id": str(owner.id),
                "next_due_date": schedule.next_due_date,
                "status": schedule.status,
            },
        )
        return transaction

    def _expire_finished(self, today: date) -> list[UUID]:
        """Move ACTIVE schedules whose end date has passed to ENDED."""
        expired = list(
            self.session.scalars(
                select(RecurringTransaction).where(
                    RecurringTransaction.status == ScheduleStatus.ACTIVE,
                    RecurringTransaction.end_date.is_not(None),
                    RecurringTransaction.end_date < today,
                )
            )
        )
        for schedule in expired:
            self._mark_ended(schedule)
        return [schedule.id for schedule in expired]

    def _due_owner_ids(self, today: date) -> list[UUID]:
        return list(
            self.session.scalars(
                select(RecurringTransaction.user_id)
                .where(
                    RecurringTransaction.status == ScheduleStatus.ACTIVE,
                    RecurringTransaction.next_due_date <= today,
                )
                .distinct()
            )
        )

    def _due_for_owner(self, user_id: UUID, today: date) -> list[RecurringTransaction]:
        return list(
            self.session.scalars(
                select(RecurringTransaction)
                .where(
                    RecurringTransaction.user_id == user_id,
                    RecurringTransaction.status == ScheduleStatus.ACTIVE,
                    RecurringTransaction.next_due_date <= today,
                    (RecurringTransaction.end_date.is_(None))
                    | (RecurringTransaction.end_date >= today),
                )
                .order_by(RecurringTransaction.next_due_date, RecurringTransaction.created_at)
            )
        )

    def process_due(self, today: date | None = None) -> SweepResult:
        """
        Execute every due schedule once.

        Runs as the system: no actor, no permission checks.  Each schedule
        gets its own SAVEPOINT so one failure never undoes another's work.
        """
        today = today or self.clock.today()
        ended = self._expire_finished(today)
        executed: list[UUID] = []
        failed: list[SweepFailure] = []

        for user_id in self._due_owner_ids(today):
            for schedule in self._due_for_owner(user_id, today):
                schedule_id = schedule.id
                savepoint = self.session.begin_nested()
                with LogContext.bind(record_id=str(schedule_id)):
                    try:
                        self._execute(schedule, today)
                    except Exception as exc:
                        savepoint.rollback()
                        kernel_error = isinstance(exc, LedgerKernelError)
                        code = exc.code if kernel_error else "UNHANDLED_EXCEPTION"
                        failed.append(SweepFailure(schedule_id, code, str(exc)))
                        logger.warning(
                            "recurring_execution_failed",
                            extra={
                                "schedule_id": str(schedule_id),
                                "user_id": str(user_id),
                                "error_code": code,
                                "error": str(exc),
                            },
                            exc_info=not kernel_error,
                        )
                        continue
                    savepoint.commit()
                executed.append(schedule_id)
                if schedule.status == ScheduleStatus.ENDED:
                    ended.append(schedule_id)

        result = SweepResult(
            run_date=today,
            executed=tuple(executed),
            failed=tuple(failed),
            ended=tuple(ended),
        )
        logger.info(
            "recurring_sweep_completed",
            extra={
                "run_date": today,
                "executed": result.executed_count,
                "failed": result.failed_count,
                "ended": len(result.ended),
            },
        )
        return result
