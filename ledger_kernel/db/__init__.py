"""Database layer - engine, base classes, and column types."""

from ledger_kernel.db.base import UUID, Base, TimestampedBase, UUIDString
from ledger_kernel.db.engine import create_tables, get_engine, get_session, session_scope
from ledger_kernel.db.types import Money, round_money

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TimestampedBase",
    "UUIDString",
    "UUID",
    "Money",
    "round_money",
]
