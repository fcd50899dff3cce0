"""
Module: ledger_kernel.models.identity
Responsibility: ORM persistence for the actor/tenant graph -- User, Admin and
    UserGroup.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - A USER has at most one admin and at most one user_group (single FKs).
    - ADMIN and OWNER users never carry admin_id or user_group_id; the role
      write and the clearing of both happen in one flush (AdminService).
    - blocked only matters for role USER (is_enabled).
    - An Admin is linked to its ADMIN-role User by username or email, not by
      foreign key.  Admin.owner_id is a soft reference (no FK) because the
      owning User may itself reference an Admin.

Failure modes:
    - IntegrityError on duplicate username or email.
"""

from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from werkzeug.security import check_password_hash, generate_password_hash

from ledger_kernel.db.base import TimestampedBase, UUIDString


class UserRole(str, Enum):
    """Closed set of roles.  Exactly one OWNER exists per deployment."""

    OWNER = "OWNER"
    ADMIN = "ADMIN"
    USER = "USER"


class User(TimestampedBase):
    """
    Authenticated actor.

    Contract:
        username and email are unique.  password_hash is a werkzeug hash,
        never the clear-text password.
    """

    __tablename__ = "users"

    __table_args__ = (
        UniqueConstraint("username", name="uq_user_username"),
        UniqueConstraint("email", name="uq_user_email"),
        Index("idx_user_admin", "admin_id"),
        Index("idx_user_group", "user_group_id"),
    )

    username: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)

    role: Mapped[UserRole] = mapped_column(
        SAEnum(UserRole, native_enum=False, length=20),
        default=UserRole.USER,
        nullable=False,
    )

    blocked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    admin_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("admins.id"),
        nullable=True,
    )

    user_group_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("user_groups.id"),
        nullable=True,
    )

    admin: Mapped["Admin | None"] = relationship(foreign_keys=[admin_id])
    user_group: Mapped["UserGroup | None"] = relationship(
        back_populates="members",
        foreign_keys=[user_group_id],
    )

    def __repr__(self) -> str:
        return f"<User {self.username} ({self.role.value})>"

    @property
    def is_owner(self) -> bool:
        return self.role == UserRole.OWNER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_enabled(self) -> bool:
        """Only USER accounts can be disabled by the blocked flag."""
        if self.role != UserRole.USER:
            return True
        return not self.blocked

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p) or self.username

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)


class Admin(TimestampedBase):
    """
    Tenant boundary.

    Contract:
        Owns zero or more direct-report Users and zero or more UserGroups.
        Materialized lazily the first time an ADMIN-role user needs one.
    """

    __tablename__ = "admins"

    __table_args__ = (
        UniqueConstraint("username", name="uq_admin_username"),
        UniqueConstraint("email", name="uq_admin_email"),
    )

    username: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # User that owns this Admin (the Owner, or the ADMIN user itself)
    owner_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    owner: Mapped[User | None] = relationship(
        primaryjoin="foreign(Admin.owner_id) == User.id",
        viewonly=True,
    )
    user_groups: Mapped[list["UserGroup"]] = relationship(back_populates="admin")

    def __repr__(self) -> str:
        return f"<Admin {self.username}>"

    def matches(self, user: User) -> bool:
        """True if ``user`` is the ADMIN-role account behind this Admin."""
        return self.username == user.username or self.email == user.email


class UserGroup(TimestampedBase):
    """Peer collective of Users owned by exactly one Admin."""

    __tablename__ = "user_groups"

    __table_args__ = (
        Index("idx_user_group_admin", "admin_id"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    admin_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("admins.id"),
        nullable=False,
    )

    admin: Mapped[Admin] = relationship(back_populates="user_groups")
    members: Mapped[list[User]] = relationship(
        back_populates="user_group",
        foreign_keys="User.user_group_id",
    )

    def __repr__(self) -> str:
        return f"<UserGroup {self.name}>"
