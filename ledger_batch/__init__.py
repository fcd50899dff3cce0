"""Batch processing: the timed recurring-transaction sweep."""

from ledger_batch.scheduler import RecurringSweepScheduler

__all__ = ["RecurringSweepScheduler"]
