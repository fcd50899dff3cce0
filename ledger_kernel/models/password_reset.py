"""
Module: ledger_kernel.models.password_reset
Responsibility: ORM persistence for single-use password reset tokens.
Architecture position: Kernel > Models.  May import from db/ only.

A user holds at most one outstanding token; requesting a new one deletes the
old ones.  Tokens are consumed by setting used=True, never by deletion, so a
replay is reported as "already used" rather than "unknown".
"""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TimestampedBase, UUIDString
from ledger_kernel.models.identity import User


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from backends without tz."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class PasswordResetToken(TimestampedBase):
    __tablename__ = "password_reset_tokens"

    __table_args__ = (
        UniqueConstraint("token", name="uq_password_reset_token"),
    )

    token: Mapped[str] = mapped_column(String(64), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    used: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=False,
    )

    user: Mapped[User] = relationship()

    def is_expired(self, now: datetime) -> bool:
        return as_utc(self.expires_at) < now
