"""
ScopeSelector -- hierarchical data scoping.

Responsibility:
    Resolves an authenticated User into an Actor variant and computes the
    set of users, and therefore records, that actor may see.

Architecture position:
    Kernel > Selectors.  Read-only.  The PermissionService builds view and
    mutate verdicts on top of the scope computed here; entity services use
    the list queries directly.

Resolution (strict priority order):
    1. OWNER            -- every record.  Aggregate views narrow to the
                           Owner's own records (aggregate_user_ids).
    2. ADMIN            -- own records, records of direct reports
                           (user.admin == A) and of members of groups A owns
                           (user.user_group.admin == A).  Without a
                           provisioned Admin row: own records only.
    3. Group member     -- records of every user in the same group.  The
                           group admin's personal records are added only
                           under GroupAdminRecords.INCLUDE.
    4. Standalone USER  -- own records only.

Invariants enforced:
    - The visible-user sequence is ordered (own -> direct reports -> group
      members) and deduplicated by identity, first occurrence wins, so list
      endpoints never return the same record twice.
    - The same GroupAdminRecords policy applies to every entity kind and to
      list, detail and aggregate paths.
    - Orphaned transactions (owner deleted) are visible only to the Owner
      and to the user that owns the transaction's Admin.
    - Default categories are visible to everyone.
    - Soft-deleted accounts and budgets never appear in lists.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import ColumnElement, Select, false, func, or_, select
from sqlalchemy.orm import Session

from ledger_kernel.domain.actor import (
    Actor,
    AdminActor,
    AdminFound,
    AdminLookup,
    AdminNotProvisioned,
    GroupAdminRecords,
    GroupMemberActor,
    OwnerActor,
    StandaloneActor,
)
from ledger_kernel.domain.dtos import Page, TransactionFilter
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models import (
    Account,
    Admin,
    Budget,
    Category,
    RecurringTransaction,
    ScheduleStatus,
    Transaction,
    User,
    UserGroup,
    UserRole,
)
from ledger_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.scope")


def _ordered_unique(ids: Iterable[UUID]) -> list[UUID]:
    seen: set[UUID] = set()
    result: list[UUID] = []
    for uid in ids:
        if uid not in seen:
            seen.add(uid)
            result.append(uid)
    return result


class ScopeSelector(BaseSelector):
    """
    Computes visibility for an Actor.

    The GroupAdminRecords policy is fixed per selector instance, which is
    built from the active settings once per request.
    """

    def __init__(
        self,
        session: Session,
        group_admin_records: GroupAdminRecords = GroupAdminRecords.EXCLUDE,
    ):
        super().__init__(session)
        self.group_admin_records = GroupAdminRecords(group_admin_records)

    # =========================================================================
    # Identity
    # =========================================================================

    def lookup_admin(self, user: User) -> AdminLookup:
        """Find the Admin row matching ``user`` by email, then by username."""
        admin = self.session.scalars(
            select(Admin).where(Admin.email == user.email)
        ).first()
        if admin is None:
            admin = self.session.scalars(
                select(Admin).where(Admin.username == user.username)
            ).first()
        if admin is None:
            return AdminNotProvisioned(username=user.username, email=user.email)
        return AdminFound(admin_id=admin.id, username=admin.username, email=admin.email)

    def resolve_actor(self, user: User) -> Actor:
        """Compute the Actor variant for ``user``.  Called once per request."""
        if user.role == UserRole.OWNER:
            return OwnerActor(user_id=user.id)
        if user.role == UserRole.ADMIN:
            lookup = self.lookup_admin(user)
            if isinstance(lookup, AdminNotProvisioned):
                logger.debug(
                    "admin_not_provisioned",
                    extra={"user_id": str(user.id), "username": user.username},
                )
            return AdminActor(user_id=user.id, admin=lookup)
        if user.user_group_id is not None:
            group = self.session.get(UserGroup, user.user_group_id)
            if group is not None:
                return GroupMemberActor(
                    user_id=user.id,
                    group_id=group.id,
                    group_admin_id=group.admin_id,
                )
        return StandaloneActor(user_id=user.id)

    def admin_user_id(self, admin_id: UUID) -> UUID | None:
        """The ADMIN-role User behind an Admin row, matched by username/email."""
        admin = self.session.get(Admin, admin_id)
        if admin is None:
            return None
        return self.session.scalars(
            select(User.id)
            .where(or_(User.username == admin.username, User.email == admin.email))
            .order_by(User.created_at)
        ).first()

    def _direct_report_ids(self, admin_id: UUID) -> list[UUID]:
        return list(
            self.session.scalars(
                select(User.id)
                .where(User.admin_id == admin_id)
                .order_by(User.created_at, User.username)
            )
        )

    def _managed_group_member_ids(self, admin_id: UUID) -> list[UUID]:
        return list(
            self.session.scalars(
                select(User.id)
                .join(UserGroup, User.user_group_id == UserGroup.id)
                .where(UserGroup.admin_id == admin_id)
                .order_by(User.created_at, User.username)
            )
        )

    def _group_member_ids(self, group_id: UUID) -> list[UUID]:
        return list(
            self.session.scalars(
                select(User.id)
                .where(User.user_group_id == group_id)
                .order_by(User.created_at, User.username)
            )
        )

    def _scoped_user_ids(self, actor: Actor) -> list[UUID] | None:
        """Visible user ids, or None for unrestricted (Owner) scope."""
        match actor:
            case OwnerActor():
                return None
            case AdminActor(admin=AdminFound(admin_id=admin_id)):
                return _ordered_unique(
                    [actor.user_id]
                    + self._direct_report_ids(admin_id)
                    + self._managed_group_member_ids(admin_id)
                )
            case AdminActor(admin=AdminNotProvisioned()):
                return [actor.user_id]
            case GroupMemberActor(group_id=group_id, group_admin_id=group_admin_id):
                ids = [actor.user_id] + self._group_member_ids(group_id)
                if self.group_admin_records == GroupAdminRecords.INCLUDE:
                    admin_user = self.admin_user_id(group_admin_id)
                    if admin_user is not None:
                        ids.append(admin_user)
                return _ordered_unique(ids)
            case StandaloneActor():
                return [actor.user_id]
        raise TypeError(f"Unknown actor variant: {actor!r}")

    def visible_user_ids(self, actor: Actor) -> list[UUID]:
        """Ordered, deduplicated ids of every user whose records ``actor`` sees."""
        ids = self._scoped_user_ids(actor)
        if ids is not None:
            return ids
        return _ordered_unique(
            [actor.user_id]
            + list(self.session.scalars(select(User.id).order_by(User.created_at, User.username)))
        )

    def visible_users(self, actor: Actor) -> list[User]:
        ids = self.visible_user_ids(actor)
        if not ids:
            return []
        by_id = {
            u.id: u for u in self.session.scalars(select(User).where(User.id.in_(ids)))
        }
        return [by_id[uid] for uid in ids if uid in by_id]

    def aggregate_user_ids(self, actor: Actor) -> list[UUID]:
        """Users whose records feed dashboard-style aggregates.

        Identical to visible_user_ids except for the Owner, whose
        aggregates cover only the Owner's own records.
        """
        if isinstance(actor, OwnerActor):
            return [actor.user_id]
        return self.visible_user_ids(actor)

    def user_in_scope(self, actor: Actor, user_id: UUID | None) -> bool:
        if isinstance(actor, OwnerActor):
            return True
        if user_id is None:
            return False
        return user_id in self._scoped_user_ids(actor)

    # =========================================================================
    # Record queries
    # =========================================================================

    def _owned_by_scope(self, column, actor: Actor) -> ColumnElement[bool] | None:
        ids = self._scoped_user_ids(actor)
        if ids is None:
            return None
        if not ids:
            return false()
        return column.in_(ids)

    def _owned_admin_ids(self, actor: Actor) -> Select:
        return select(Admin.id).where(Admin.owner_id == actor.user_id)

    def transaction_scope_clause(self, actor: Actor) -> ColumnElement[bool] | None:
        """WHERE clause for transactions visible to ``actor``; None = all."""
        owned = self._owned_by_scope(Transaction.user_id, actor)
        if owned is None:
            return None
        # Approval path: the owner of a transaction's Admin may see it,
        # including after the authoring user has been deleted.
        return or_(owned, Transaction.admin_id.in_(self._owned_admin_ids(actor)))

    def visible_transactions(
        self,
        actor: Actor,
        filters: TransactionFilter | None = None,
    ) -> Page[Transaction]:
        """Transactions visible to ``actor``, newest first.

        Ordered by transaction_date desc, then created_at desc.  With
        ``filters.limit`` set, only that slice is returned; ``total`` always
        counts every matching row.
        """
        filters = filters or TransactionFilter()
        stmt = select(Transaction)
        clause = self.transaction_scope_clause(actor)
        if clause is not None:
            stmt = stmt.where(clause)
        if filters.start_date is not None:
            stmt = stmt.where(Transaction.transaction_date >= filters.start_date)
        if filters.end_date is not None:
            stmt = stmt.where(Transaction.transaction_date <= filters.end_date)
        if filters.category_id is not None:
            stmt = stmt.where(Transaction.category_id == filters.category_id)
        if filters.account_id is not None:
            stmt = stmt.where(Transaction.account_id == filters.account_id)
        if filters.transaction_type is not None:
            stmt = stmt.where(Transaction.transaction_type == filters.transaction_type)

        total = self.session.scalar(
            select(func.count()).select_from(stmt.order_by(None).subquery())
        )

        stmt = stmt.order_by(
            Transaction.transaction_date.desc(),
            Transaction.created_at.desc(),
        )
        if filters.offset:
            stmt = stmt.offset(filters.offset)
        if filters.limit is not None:
            stmt = stmt.limit(filters.limit)

        items = tuple(self.session.scalars(stmt))
        return Page(items=items, total=total or 0, limit=filters.limit, offset=filters.offset)

    def visible_accounts(self, actor: Actor) -> list[Account]:
        """Active accounts in scope, ordered by name."""
        stmt = select(Account).where(Account.is_active.is_(True))
        clause = self._owned_by_scope(Account.user_id, actor)
        if clause is not None:
            stmt = stmt.where(clause)
        return list(self.session.scalars(stmt.order_by(Account.name, Account.created_at)))

    def visible_categories(self, actor: Actor) -> list[Category]:
        """Default categories plus owned categories in scope, sorted by name."""
        defaults = self.session.scalars(
            select(Category).where(Category.is_default.is_(True)).order_by(Category.name)
        )
        stmt = select(Category).where(Category.is_default.is_(False))
        clause = self._owned_by_scope(Category.user_id, actor)
        if clause is not None:
            stmt = stmt.where(clause)
        owned = self.session.scalars(stmt.order_by(Category.name))

        seen: set[UUID] = set()
        combined: list[Category] = []
        for category in [*defaults, *owned]:
            if category.id not in seen:
                seen.add(category.id)
                combined.append(category)
        combined.sort(key=lambda c: c.name.lower())
        return combined

    def visible_budgets(self, actor: Actor) -> list[Budget]:
        """Active budgets in scope, most recent start first."""
        stmt = select(Budget).where(Budget.is_active.is_(True))
        clause = self._owned_by_scope(Budget.user_id, actor)
        if clause is not None:
            stmt = stmt.where(clause)
        return list(
            self.session.scalars(stmt.order_by(Budget.start_date.desc(), Budget.name))
        )

    def visible_recurring(
        self,
        actor: Actor,
        active_only: bool = False,
    ) -> list[RecurringTransaction]:
        """Recurring schedules in scope, ordered by next due date."""
        stmt = select(RecurringTransaction)
        if active_only:
            stmt = stmt.where(RecurringTransaction.status == ScheduleStatus.ACTIVE)
        clause = self._owned_by_scope(RecurringTransaction.user_id, actor)
        if clause is not None:
            stmt = stmt.where(clause)
        return list(
            self.session.scalars(
                stmt.order_by(
                    RecurringTransaction.next_due_date,
                    RecurringTransaction.description,
                )
            )
        )
