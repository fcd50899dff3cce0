"""
PermissionService -- view and mutate verdicts for a specific record.

Responsibility:
    Given an Actor and a record, decide whether the actor may see it and
    whether it may update or delete it.  Also gates creation of
    group-scoped records.

Architecture position:
    Kernel > Services.  Builds on ScopeSelector; entity services call it
    before every read-by-id and every mutation.

Rules:
    can_view    -- the record's owner is in the actor's scope, OR the record
                   is a default Category, OR (transactions) the actor owns
                   the transaction's Admin (approval path).
    can_mutate  -- allow the record's direct owner; allow an ADMIN whose
                   Admin owns the record owner's user group; allow the
                   Owner; deny everyone else.  Default categories are never
                   mutable.  Orphaned records are mutable only by the Owner.
                   Seeing a peer's record through group scope never implies
                   mutate access.

Failure modes:
    - RecordNotFoundError when a record is missing OR outside scope.  The
      two cases are indistinguishable to the caller.
    - MutationDeniedError / DefaultCategoryImmutableError when a visible
      record may not be changed.
    - GroupMemberCreationDeniedError when a plain group member creates a
      group-scoped record.
"""

from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.domain.actor import (
    Actor,
    AdminActor,
    AdminFound,
    OwnerActor,
    describe,
)
from ledger_kernel.domain.dtos import MutationVerdict
from ledger_kernel.exceptions import (
    DefaultCategoryImmutableError,
    GroupMemberCreationDeniedError,
    MutationDeniedError,
    RecordNotFoundError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models import Category, Transaction, User, UserGroup, UserRole
from ledger_kernel.selectors.scope_selector import ScopeSelector
from ledger_kernel.services.base import BaseService

logger = get_logger("services.permission")

# Kinds whose creation is gated for plain group members
GATED_KINDS = frozenset({"Account", "Budget", "Category", "RecurringTransaction"})


def _kind(record: Any) -> str:
    return type(record).__name__


class PermissionService(BaseService):
    def __init__(self, session: Session, scope: ScopeSelector | None = None):
        super().__init__(session)
        self.scope = scope or ScopeSelector(session)

    # =========================================================================
    # View
    # =========================================================================

    def can_view(self, actor: Actor, record: Any) -> bool:
        if isinstance(record, Category) and record.is_default:
            return True
        if isinstance(actor, OwnerActor):
            return True
        if self.scope.user_in_scope(actor, record.user_id):
            return True
        if isinstance(record, Transaction) and record.admin is not None:
            return record.admin.owner_id == actor.user_id
        return False

    def require_visible(self, actor: Actor, record: Any, kind: str, record_id: UUID) -> Any:
        """Return ``record`` if visible, else raise the same error as a missing row."""
        if record is None or not self.can_view(actor, record):
            raise RecordNotFoundError(kind, record_id)
        return record

    def load_visible(self, actor: Actor, model: type, record_id: UUID) -> Any:
        return self.require_visible(
            actor, self.session.get(model, record_id), model.__name__, record_id
        )

    # =========================================================================
    # Mutate
    # =========================================================================

    def can_mutate(self, actor: Actor, record: Any) -> MutationVerdict:
        if isinstance(record, Category) and record.is_default:
            return MutationVerdict.deny("default categories are read-only")
        if isinstance(actor, OwnerActor):
            return MutationVerdict.allow()
        if record.user_id is None:
            return MutationVerdict.deny("orphaned records can only be changed by the owner")
        if record.user_id == actor.user_id:
            return MutationVerdict.allow()
        if isinstance(actor, AdminActor) and isinstance(actor.admin, AdminFound):
            owner = self.session.get(User, record.user_id)
            if owner is not None and owner.user_group_id is not None:
                group = self.session.get(UserGroup, owner.user_group_id)
                if group is not None and group.admin_id == actor.admin.admin_id:
                    return MutationVerdict.allow()
        return MutationVerdict.deny("only the record owner or its group admin may change it")

    def require_mutable(self, actor: Actor, record: Any, kind: str | None = None) -> Any:
        """Raise unless ``actor`` may update or delete ``record``.

        Visibility is checked first, so an out-of-scope record fails with
        RecordNotFoundError exactly like a missing one.
        """
        kind = kind or _kind(record)
        self.require_visible(actor, record, kind, record.id)
        verdict = self.can_mutate(actor, record)
        if verdict.allowed:
            return record

        logger.warning(
            "mutation_denied",
            extra={
                "kind": kind,
                "record_id": str(record.id),
                "actor_id": str(actor.user_id),
                "actor_kind": describe(actor),
                "reason": verdict.reason,
            },
        )
        if isinstance(record, Category) and record.is_default:
            raise DefaultCategoryImmutableError(record.id)
        raise MutationDeniedError(kind, record.id, verdict.reason)

    def load_mutable(self, actor: Actor, model: type, record_id: UUID) -> Any:
        record = self.session.get(model, record_id)
        if record is None:
            raise RecordNotFoundError(model.__name__, record_id)
        return self.require_mutable(actor, record, model.__name__)

    # =========================================================================
    # Create
    # =========================================================================

    def check_can_create(self, user: User, kind: str) -> None:
        """
        Gate creation of Account/Budget/Category/RecurringTransaction.

        ADMIN and OWNER bypass the check, a USER without a group may always
        create, and a USER in a group may create only when an Admin record
        matches the user and owns that group.

        Raises:
            GroupMemberCreationDeniedError: plain group member.
        """
        if kind not in GATED_KINDS:
            return
        if user.role in (UserRole.ADMIN, UserRole.OWNER):
            return
        if user.user_group_id is None:
            return
        lookup = self.scope.lookup_admin(user)
        if isinstance(lookup, AdminFound):
            group = self.session.get(UserGroup, user.user_group_id)
            if group is not None and group.admin_id == lookup.admin_id:
                return
        logger.info(
            "creation_denied",
            extra={"kind": kind, "user_id": str(user.id), "group_id": str(user.user_group_id)},
        )
        raise GroupMemberCreationDeniedError(user.id, kind)

    # =========================================================================
    # Administration
    # =========================================================================

    def manages_user(self, actor: Actor, target: User) -> bool:
        """True if ``actor`` administers ``target`` (Owner, or its Admin directly or via group)."""
        if isinstance(actor, OwnerActor):
            return True
        if not (isinstance(actor, AdminActor) and isinstance(actor.admin, AdminFound)):
            return False
        admin_id = actor.admin.admin_id
        if target.admin_id == admin_id:
            return True
        if target.user_group_id is not None:
            group = self.session.get(UserGroup, target.user_group_id)
            return group is not None and group.admin_id == admin_id
        return False
