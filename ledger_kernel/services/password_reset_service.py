"""
PasswordResetService -- single-use, time-limited reset tokens.

request_reset() answers with the same message whether or not the identifier
matched an account, and mails only the address on record, never the one
typed in.
"""

import secrets
from datetime import timedelta

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock
from ledger_kernel.exceptions import (
    InvalidResetTokenError,
    ResetTokenExpiredError,
    ResetTokenUsedError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models import PasswordResetToken, User
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.notification_service import NotificationService

logger = get_logger("services.password_reset")

RESET_REQUESTED_MESSAGE = (
    "If an account matches that username or email, a password reset link "
    "has been sent to its registered email address."
)
DEFAULT_TOKEN_HOURS = 24
DEFAULT_RESET_URL_TEMPLATE = "http://localhost:5173/reset-password?token={token}"


class PasswordResetService(BaseService):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        notifications: NotificationService | None = None,
        token_hours: int = DEFAULT_TOKEN_HOURS,
        reset_url_template: str = DEFAULT_RESET_URL_TEMPLATE,
    ):
        super().__init__(session, clock)
        self.notifications = notifications or NotificationService()
        self.token_hours = token_hours
        self.reset_url_template = reset_url_template

    def _find_user(self, identifier: str) -> User | None:
        user = self.session.scalars(select(User).where(User.email == identifier)).first()
        if user is None:
            user = self.session.scalars(select(User).where(User.username == identifier)).first()
        return user

    def request_reset(self, identifier: str) -> str:
        user = self._find_user(identifier)
        if user is None:
            logger.info("password_reset_unknown_identifier")
            return RESET_REQUESTED_MESSAGE

        self.session.execute(
            delete(PasswordResetToken).where(PasswordResetToken.user_id == user.id)
        )
        token = PasswordResetToken(
            token=secrets.token_urlsafe(32),
            expires_at=self.clock.now() + timedelta(hours=self.token_hours),
            used=False,
            user_id=user.id,
        )
        self.session.add(token)
        self.session.flush()

        reset_url = self.reset_url_template.format(token=token.token)
        try:
            self.notifications.password_reset(user, reset_url, self.token_hours)
        except Exception:
            logger.warning(
                "password_reset_notification_failed",
                extra={"user_id": str(user.id)},
                exc_info=True,
            )
        logger.info(
            "password_reset_requested",
            extra={"user_id": str(user.id), "expires_at": token.expires_at},
        )
        return RESET_REQUESTED_MESSAGE

    def reset_password(self, token_value: str, new_password: str) -> User:
        """
        Raises:
            InvalidResetTokenError, ResetTokenUsedError, ResetTokenExpiredError
        """
        token = self.session.scalars(
            select(PasswordResetToken).where(PasswordResetToken.token == token_value)
        ).first()
        if token is None:
            raise InvalidResetTokenError()
        if token.used:
            raise ResetTokenUsedError(token.id)
        if token.is_expired(self.clock.now()):
            raise ResetTokenExpiredError(token.id, token.expires_at)

        user = self._get_by_id(User, token.user_id)
        user.set_password(new_password)
        token.used = True
        self.session.flush()
        logger.info("password_reset_completed", extra={"user_id": str(user.id)})
        return user

    def cleanup_expired_tokens(self) -> int:
        """Delete expired tokens; returns how many were removed."""
        result = self.session.execute(
            delete(PasswordResetToken).where(PasswordResetToken.expires_at < self.clock.now())
        )
        self.session.flush()
        logger.info("password_reset_tokens_cleaned", extra={"removed": result.rowcount})
        return result.rowcount
