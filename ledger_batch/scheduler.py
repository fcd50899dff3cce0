"""
RecurringSweepScheduler -- in-process timer for the recurring sweep.

Contract:
    Every interval, opens a session from the factory, runs
    ``RecurringTransactionService.process_due()`` for the clock's current
    date, and commits.

Architecture: ledger_batch.  Drives ledger_kernel services; holds no
    business rules of its own.

Invariants enforced:
    - All dates come from the injected Clock.
    - ``tick()`` never raises; a failed sweep is rolled back and logged.
    - Graceful shutdown: the stop signal is honored between ticks.
"""

from __future__ import annotations

import threading
from typing import Callable

from sqlalchemy.orm import Session

from ledger_kernel.domain.actor import GroupAdminRecords
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import SweepResult
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.selectors.scope_selector import ScopeSelector
from ledger_kernel.services.recurring_service import RecurringTransactionService

logger = get_logger("batch.scheduler")


class RecurringSweepScheduler:
    """Polling scheduler for due recurring schedules.

    Contract:
        - ``tick()`` runs one sweep in its own session and unit of work.
        - ``start()`` / ``stop()`` for background thread operation.

    Non-goals:
        - NOT a distributed scheduler (no leader election).
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        interval_seconds: int = 3600,
        group_admin_records: GroupAdminRecords = GroupAdminRecords.EXCLUDE,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._interval = interval_seconds
        self._group_admin_records = group_admin_records
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self.last_result: SweepResult | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def tick(self) -> SweepResult | None:
        """Run one sweep (public for testing).  Returns None if it failed."""
        session = self._session_factory()
        try:
            with LogContext.bind(correlation_id=f"sweep-{self._clock.today().isoformat()}"):
                service = RecurringTransactionService(
                    session,
                    clock=self._clock,
                    scope=ScopeSelector(session, self._group_admin_records),
                )
                result = service.process_due(self._clock.today())
            session.commit()
            self.last_result = result
            return result
        except Exception:
            session.rollback()
            logger.exception("sweep_tick_failed")
            return None
        finally:
            session.close()

    def start(self) -> None:
        """Start sweeping in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="recurring-sweep",
            daemon=True,
        )
        self._thread.start()
        logger.info("scheduler_started", extra={"interval_seconds": self._interval})

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the current tick to finish."""
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("scheduler_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            self.tick()
            self._stop_event.wait(timeout=self._interval)
