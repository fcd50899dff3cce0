"""
Administration -- Admin provisioning, managed users, groups, roles, approval.

Responsibility:
    AdminProvisioningService materializes the Admin row behind an ADMIN-role
    user the first time one is needed.  AdminService implements the admin
    portal: Owner-only admin management and role changes, per-admin user and
    group management, blocking, and transaction approval.

Architecture position:
    Kernel > Services.  Uses ScopeSelector for admin lookup,
    PermissionService.manages_user for per-target checks and
    NotificationService for the role-change mail.

Invariants enforced:
    - Only the Owner creates or deletes admins and changes roles.  The
      OWNER role is never granted and the Owner is never a role-change
      target.
    - Promotion to ADMIN clears admin_id and user_group_id in the same
      flush as the role write, then provisions the Admin row.
    - Deleting a user keeps its transactions with a NULL owner.  Accounts
      and categories those transactions still reference are orphaned
      instead of deleted; accounts are also deactivated.
    - A user outside the actor's administration is reported as not found.
    - The creator of a user group is not made a member of it.

Failure modes:
    - OwnerOnlyError, AdminOnlyError for callers without the needed role.
    - RoleChangeDeniedError, RoleAlreadySetError on invalid role changes.
    - BlockDeniedError, AlreadyBlockedError, NotBlockedError on blocking.
    - DuplicateUserError on username/email collisions.
"""

from uuid import UUID

from sqlalchemy import delete, exists, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.domain.actor import (
    Actor,
    AdminActor,
    AdminFound,
    AdminLookup,
    OwnerActor,
)
from ledger_kernel.domain.clock import Clock
from ledger_kernel.exceptions import (
    AdminOnlyError,
    AlreadyBlockedError,
    BlockDeniedError,
    DuplicateUserError,
    NotBlockedError,
    OwnerOnlyError,
    RecordNotFoundError,
    RoleAlreadySetError,
    RoleChangeDeniedError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models import (
    Account,
    Admin,
    Budget,
    Category,
    PasswordResetToken,
    RecurringTransaction,
    Transaction,
    User,
    UserGroup,
    UserRole,
)
from ledger_kernel.selectors.analytics_selector import AnalyticsSelector
from ledger_kernel.selectors.scope_selector import ScopeSelector
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.notification_service import NotificationService
from ledger_kernel.services.permission_service import PermissionService

logger = get_logger("services.admin")


class AdminProvisioningService(BaseService):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        scope: ScopeSelector | None = None,
    ):
        super().__init__(session, clock)
        self.scope = scope or ScopeSelector(session)

    def lookup(self, user: User) -> AdminLookup:
        return self.scope.lookup_admin(user)

    def ensure_admin(self, user: User, owner_id: UUID | None = None) -> Admin:
        """
        Return the Admin row for ``user``, creating it if missing.

        ``owner_id`` defaults to the user itself.  A concurrent insert of the
        same admin loses the unique-constraint race inside a SAVEPOINT and
        falls back to the winner's row.
        """
        lookup = self.lookup(user)
        if isinstance(lookup, AdminFound):
            return self.session.get(Admin, lookup.admin_id)

        admin = Admin(
            username=user.username,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            is_active=True,
            owner_id=owner_id or user.id,
        )
        savepoint = self.session.begin_nested()
        try:
            self.session.add(admin)
            self.session.flush()
        except IntegrityError:
            savepoint.rollback()
            lookup = self.lookup(user)
            if isinstance(lookup, AdminFound):
                logger.info("admin_provisioning_raced", extra={"user_id": str(user.id)})
                return self.session.get(Admin, lookup.admin_id)
            raise
        savepoint.commit()
        logger.info(
            "admin_provisioned",
            extra={
                "admin_id": str(admin.id),
                "user_id": str(user.id),
                "owner_id": str(admin.owner_id),
            },
        )
        return admin


class AdminService(BaseService):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        scope: ScopeSelector | None = None,
        notifications: NotificationService | None = None,
    ):
        super().__init__(session, clock)
        self.scope = scope or ScopeSelector(session)
        self.permissions = PermissionService(session, self.scope)
        self.provisioning = AdminProvisioningService(session, self.clock, self.scope)
        self.analytics = AnalyticsSelector(session, self.scope)
        self.notifications = notifications or NotificationService()

    # =========================================================================
    # Guards
    # =========================================================================

    def _require_owner(self, actor: Actor, operation: str) -> None:
        if not isinstance(actor, OwnerActor):
            logger.warning(
                "owner_only_denied",
                extra={"operation": operation, "actor_id": str(actor.user_id)},
            )
            raise OwnerOnlyError(operation, actor.user_id)

    def _require_administrator(self, actor: Actor, operation: str) -> None:
        if not isinstance(actor, (OwnerActor, AdminActor)):
            logger.warning(
                "admin_only_denied",
                extra={"operation": operation, "actor_id": str(actor.user_id)},
            )
            raise AdminOnlyError(operation, actor.user_id)

    def _acting_admin(self, actor: Actor) -> Admin:
        """The Admin row new users and groups are attached to."""
        return self.provisioning.ensure_admin(self._get_by_id(User, actor.user_id))

    def _check_unique(self, username: str, email: str) -> None:
        if self.session.scalars(select(User.id).where(User.username == username)).first():
            raise DuplicateUserError("username", username)
        if self.session.scalars(select(User.id).where(User.email == email)).first():
            raise DuplicateUserError("email", email)

    def _new_user(
        self,
        *,
        username: str,
        email: str,
        password: str,
        role: UserRole,
        first_name: str | None,
        last_name: str | None,
        country: str | None = None,
        admin_id: UUID | None = None,
    ) -> User:
        self._check_unique(username, email)
        user = User(
            username=username,
            email=email,
            first_name=first_name,
            last_name=last_name,
            country=country,
            role=role,
            blocked=False,
            admin_id=admin_id,
        )
        user.set_password(password)
        self.session.add(user)
        self.session.flush()
        return user

    # =========================================================================
    # Admins (Owner only)
    # =========================================================================

    def create_admin_user(
        self,
        actor: Actor,
        *,
        username: str,
        email: str,
        password: str,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> User:
        self._require_owner(actor, "create_admin_user")
        user = self._new_user(
            username=username,
            email=email,
            password=password,
            role=UserRole.ADMIN,
            first_name=first_name,
            last_name=last_name,
        )
        admin = self.provisioning.ensure_admin(user, owner_id=actor.user_id)
        logger.info(
            "admin_created",
            extra={"user_id": str(user.id), "admin_id": str(admin.id)},
        )
        return user

    def list_admins(self, actor: Actor) -> list[User]:
        self._require_owner(actor, "list_admins")
        return list(
            self.session.scalars(
                select(User).where(User.role == UserRole.ADMIN).order_by(User.username)
            )
        )

    def delete_admin(self, actor: Actor, user_id: UUID) -> None:
        """
        Remove an ADMIN user and its Admin row.

        Direct reports lose their admin, the admin's groups are dissolved,
        and transactions and categories keep existing without an admin.
        """
        self._require_owner(actor, "delete_admin")
        user = self.session.get(User, user_id)
        if user is None or user.role != UserRole.ADMIN:
            raise RecordNotFoundError("Admin", user_id)

        lookup = self.provisioning.lookup(user)
        if isinstance(lookup, AdminFound):
            admin_id = lookup.admin_id
            group_ids = select(UserGroup.id).where(UserGroup.admin_id == admin_id)
            self.session.execute(
                update(User).where(User.user_group_id.in_(group_ids)).values(user_group_id=None)
            )
            self.session.execute(
                update(User).where(User.admin_id == admin_id).values(admin_id=None)
            )
            self.session.execute(delete(UserGroup).where(UserGroup.admin_id == admin_id))
            self.session.execute(
                update(Transaction).where(Transaction.admin_id == admin_id).values(admin_id=None)
            )
            self.session.execute(
                update(Category).where(Category.admin_id == admin_id).values(admin_id=None)
            )
            self.session.execute(delete(Admin).where(Admin.id == admin_id))

        self._purge_user(user)
        logger.info("admin_deleted", extra={"user_id": str(user_id)})

    # =========================================================================
    # Managed users
    # =========================================================================

    def create_user_for_admin(
        self,
        actor: Actor,
        *,
        username: str,
        email: str,
        password: str,
        first_name: str | None = None,
        last_name: str | None = None,
        country: str | None = None,
    ) -> User:
        """Create a USER whose admin is the acting administrator's Admin."""
        self._require_administrator(actor, "create_user_for_admin")
        admin = self._acting_admin(actor)
        user = self._new_user(
            username=username,
            email=email,
            password=password,
            role=UserRole.USER,
            first_name=first_name,
            last_name=last_name,
            country=country,
            admin_id=admin.id,
        )
        logger.info(
            "managed_user_created",
            extra={"user_id": str(user.id), "admin_id": str(admin.id)},
        )
        return user

    def list_managed_users(self, actor: Actor) -> list[User]:
        self._require_administrator(actor, "list_managed_users")
        return self.analytics.managed_users(actor)

    def get_managed_user(self, actor: Actor, user_id: UUID) -> User:
        self._require_administrator(actor, "get_managed_user")
        user = self.session.get(User, user_id)
        if (
            user is None
            or user.role != UserRole.USER
            or not self.permissions.manages_user(actor, user)
        ):
            raise RecordNotFoundError("User", user_id)
        return user

    def delete_user(self, actor: Actor, user_id: UUID) -> None:
        user = self.get_managed_user(actor, user_id)
        self._purge_user(user)
        logger.info(
            "managed_user_deleted",
            extra={"user_id": str(user_id), "actor_id": str(actor.user_id)},
        )

    def _purge_user(self, user: User) -> None:
        """Delete ``user`` and its records, keeping its transaction history."""
        user_id = user.id
        schedule_ids = select(RecurringTransaction.id).where(
            RecurringTransaction.user_id == user_id
        )

        self.session.execute(
            delete(PasswordResetToken).where(PasswordResetToken.user_id == user_id)
        )
        self.session.execute(
            update(Transaction).where(Transaction.user_id == user_id).values(user_id=None)
        )
        self.session.execute(
            update(Transaction)
            .where(Transaction.recurring_transaction_id.in_(schedule_ids))
            .values(recurring_transaction_id=None)
        )
        self.session.execute(
            delete(RecurringTransaction).where(RecurringTransaction.user_id == user_id)
        )
        self.session.execute(delete(Budget).where(Budget.user_id == user_id))

        category_used = or_(
            exists().where(Transaction.category_id == Category.id),
            exists().where(Budget.category_id == Category.id),
            exists().where(RecurringTransaction.category_id == Category.id),
        )
        self.session.execute(
            update(Category)
            .where(Category.user_id == user_id, category_used)
            .values(user_id=None)
        )
        self.session.execute(delete(Category).where(Category.user_id == user_id))

        account_used = or_(
            exists().where(Transaction.account_id == Account.id),
            exists().where(RecurringTransaction.account_id == Account.id),
        )
        self.session.execute(
            update(Account)
            .where(Account.user_id == user_id, account_used)
            .values(user_id=None, is_active=False)
        )
        self.session.execute(delete(Account).where(Account.user_id == user_id))

        self._retire(user, "User")

    # =========================================================================
    # User groups
    # =========================================================================

    def create_user_group(
        self,
        actor: Actor,
        *,
        name: str,
        description: str | None = None,
    ) -> UserGroup:
        self._require_administrator(actor, "create_user_group")
        admin = self._acting_admin(actor)
        group = UserGroup(name=name, description=description, admin_id=admin.id)
        self.session.add(group)
        self.session.flush()
        logger.info(
            "user_group_created",
            extra={"group_id": str(group.id), "admin_id": str(admin.id)},
        )
        return group

    def list_user_groups(self, actor: Actor) -> list[UserGroup]:
        self._require_administrator(actor, "list_user_groups")
        stmt = select(UserGroup).order_by(UserGroup.name)
        match actor:
            case OwnerActor():
                pass
            case AdminActor(admin=AdminFound(admin_id=admin_id)):
                stmt = stmt.where(UserGroup.admin_id == admin_id)
            case _:
                return []
        return list(self.session.scalars(stmt))

    def _load_group(self, actor: Actor, group_id: UUID) -> UserGroup:
        group = self.session.get(UserGroup, group_id)
        if group is None:
            raise RecordNotFoundError("UserGroup", group_id)
        if isinstance(actor, OwnerActor):
            return group
        if isinstance(actor, AdminActor) and isinstance(actor.admin, AdminFound):
            if group.admin_id == actor.admin.admin_id:
                return group
        raise RecordNotFoundError("UserGroup", group_id)

    def assign_user_to_group(self, actor: Actor, user_id: UUID, group_id: UUID) -> User:
        user = self.get_managed_user(actor, user_id)
        group = self._load_group(actor, group_id)
        user.user_group_id = group.id
        self.session.flush()
        logger.info(
            "user_assigned_to_group",
            extra={"user_id": str(user.id), "group_id": str(group.id)},
        )
        return user

    def users_in_group(self, actor: Actor, group_id: UUID) -> list[User]:
        """USER-role members of a group the actor administers."""
        self._require_administrator(actor, "users_in_group")
        group = self._load_group(actor, group_id)
        return list(
            self.session.scalars(
                select(User)
                .where(User.user_group_id == group.id, User.role == UserRole.USER)
                .order_by(User.username)
            )
        )

    # =========================================================================
    # Roles and blocking
    # =========================================================================

    def change_user_role(self, actor: Actor, user_id: UUID, new_role: UserRole | str) -> User:
        """
        Change a user's role (Owner only).

        Promotion to ADMIN detaches the user from its admin and group and
        provisions its Admin row, owned by the Owner.  A promotion from USER
        also mails the user; a mail failure is logged and never undoes the
        role change.
        """
        self._require_owner(actor, "change_user_role")
        target_role = UserRole(new_role)
        user = self._get_by_id(User, user_id)

        if user.role == UserRole.OWNER:
            raise RoleChangeDeniedError(user.id, "the owner's role cannot be changed")
        if target_role == UserRole.OWNER:
            raise RoleChangeDeniedError(user.id, "the owner role cannot be granted")
        if user.role == target_role:
            raise RoleAlreadySetError(user.id, target_role.value)

        old_role = user.role
        user.role = target_role
        if target_role == UserRole.ADMIN:
            user.admin_id = None
            user.user_group_id = None
        self.session.flush()
        if target_role == UserRole.ADMIN:
            self.provisioning.ensure_admin(user, owner_id=actor.user_id)

        logger.info(
            "role_changed",
            extra={
                "user_id": str(user.id),
                "old_role": old_role,
                "new_role": target_role,
                "actor_id": str(actor.user_id),
            },
        )

        if target_role == UserRole.ADMIN and old_role == UserRole.USER:
            try:
                self.notifications.role_changed(user, target_role.value)
            except Exception:
                logger.warning(
                    "role_change_notification_failed",
                    extra={"user_id": str(user.id)},
                    exc_info=True,
                )
        return user

    def _block_target(self, actor: Actor, user_id: UUID) -> User:
        if not isinstance(actor, (OwnerActor, AdminActor)):
            raise BlockDeniedError(user_id, "only administrators can block users")
        user = self.session.get(User, user_id)
        if user is None or not self.permissions.manages_user(actor, user):
            raise RecordNotFoundError("User", user_id)
        if user.role != UserRole.USER:
            raise BlockDeniedError(user.id, "only USER accounts can be blocked")
        return user

    def block_user(self, actor: Actor, user_id: UUID) -> User:
        user = self._block_target(actor, user_id)
        if user.blocked:
            raise AlreadyBlockedError(user.id)
        user.blocked = True
        self.session.flush()
        logger.info(
            "user_blocked",
            extra={"user_id": str(user.id), "actor_id": str(actor.user_id)},
        )
        return user

    def unblock_user(self, actor: Actor, user_id: UUID) -> User:
        user = self._block_target(actor, user_id)
        if not user.blocked:
            raise NotBlockedError(user.id)
        user.blocked = False
        self.session.flush()
        logger.info(
            "user_unblocked",
            extra={"user_id": str(user.id), "actor_id": str(actor.user_id)},
        )
        return user

    # =========================================================================
    # Approval
    # =========================================================================

    def approve_transaction(self, actor: Actor, transaction_id: UUID) -> Transaction:
        """
        Mark a transaction approved.

        Allowed for the Owner, the user owning the transaction's Admin, and
        the ADMIN user behind that Admin.
        """
        transaction = self.session.get(Transaction, transaction_id)
        if transaction is None:
            raise RecordNotFoundError("Transaction", transaction_id)

        allowed = isinstance(actor, OwnerActor)
        if not allowed and transaction.admin is not None:
            allowed = transaction.admin.owner_id == actor.user_id or (
                isinstance(actor, AdminActor)
                and isinstance(actor.admin, AdminFound)
                and actor.admin.admin_id == transaction.admin_id
            )
        if not allowed:
            raise RecordNotFoundError("Transaction", transaction_id)

        transaction.is_approved = True
        self.session.flush()
        logger.info(
            "transaction_approved",
            extra={"transaction_id": str(transaction.id), "actor_id": str(actor.user_id)},
        )
        return transaction
