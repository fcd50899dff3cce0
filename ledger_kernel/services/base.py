"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Common constructor and session-handling contract for every write-side
    service.  Services receive a SQLAlchemy ``Session`` and a ``Clock`` and
    use ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's transaction
      and never commit or roll back.  The caller (session_scope(), the sweep
      scheduler, or a test) owns the unit of work, so an authorization check,
      a balance mutation and the record write land together or not at all.
    - Deletion follows the per-entity lifecycle table (domain/lifecycle.py).
"""

from abc import ABC
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.lifecycle import DeleteMode, policy_for
from ledger_kernel.exceptions import RecordNotFoundError


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a Session from the caller and flushes changes within the
        active transaction.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()

    def _get_by_id(self, model: type, record_id: UUID, kind: str | None = None) -> Any:
        record = self.session.get(model, record_id)
        if record is None:
            raise RecordNotFoundError(kind or model.__name__, record_id)
        return record

    def _retire(self, record: Any, kind: str, retired_value: Any = None) -> None:
        """Delete ``record`` the way its lifecycle policy prescribes."""
        policy = policy_for(kind)
        if policy.mode is DeleteMode.SOFT:
            value = policy.retired_value if retired_value is None else retired_value
            setattr(record, policy.flag, value)
        else:
            self.session.delete(record)
        self.session.flush()
