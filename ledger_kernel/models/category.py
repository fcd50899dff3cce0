"""
Module: ledger_kernel.models.category
Responsibility: ORM persistence for transaction categories.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Default categories (is_default) have no owning user, are visible to
      everyone and are never mutable.
    - Category names are unique per owning user (DuplicateCategoryError is
      raised by CategoryService before the constraint fires).
"""

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TimestampedBase, UUIDString
from ledger_kernel.models.identity import Admin, User


class Category(TimestampedBase):
    __tablename__ = "categories"

    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_category_user_name"),
        Index("idx_category_default", "is_default"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    # Hex colour code, e.g. "#FF5733"
    color: Mapped[str | None] = mapped_column(String(7), nullable=True)

    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    user_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=True,
    )

    admin_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("admins.id"),
        nullable=True,
    )

    user: Mapped[User | None] = relationship()
    admin: Mapped[Admin | None] = relationship()

    def __repr__(self) -> str:
        return f"<Category {self.name}{' (default)' if self.is_default else ''}>"
