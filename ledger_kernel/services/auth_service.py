"""
AuthService -- registration and credential checks.

Passwords are hashed with werkzeug.security.  Self-registration always
yields a USER; admins and the Owner are created through AdminService and
BootstrapService.
"""

import secrets

from sqlalchemy import select

from ledger_kernel.exceptions import (
    AccountDisabledError,
    BadCredentialsError,
    DuplicateUserError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models import User, UserRole
from ledger_kernel.services.base import BaseService

logger = get_logger("services.auth")

DEFAULT_EXTERNAL_COUNTRY = "US"


class AuthService(BaseService):
    def find_by_username(self, username: str) -> User | None:
        return self.session.scalars(select(User).where(User.username == username)).first()

    def find_by_email(self, email: str) -> User | None:
        return self.session.scalars(select(User).where(User.email == email)).first()

    def register_user(
        self,
        *,
        username: str,
        email: str,
        password: str,
        first_name: str | None = None,
        last_name: str | None = None,
        country: str | None = None,
    ) -> User:
        """
        Raises:
            DuplicateUserError: username or email already registered.
        """
        if self.find_by_username(username) is not None:
            raise DuplicateUserError("username", username)
        if self.find_by_email(email) is not None:
            raise DuplicateUserError("email", email)

        user = User(
            username=username,
            email=email,
            first_name=first_name,
            last_name=last_name,
            country=country,
            role=UserRole.USER,
            blocked=False,
        )
        user.set_password(password)
        self.session.add(user)
        self.session.flush()
        logger.info("user_registered", extra={"user_id": str(user.id), "username": username})
        return user

    def _unique_username(self, email: str) -> str:
        base = email.split("@", 1)[0] or "user"
        candidate = base
        counter = 1
        while self.find_by_username(candidate) is not None:
            candidate = f"{base}{counter}"
            counter += 1
        return candidate

    def find_or_create_external_user(
        self,
        email: str,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> User:
        """
        Return the user registered with ``email``, creating one for a first
        login through an external identity provider.

        The new user's username is derived from the email's local part,
        suffixed with a counter until unique.  Its password is random and
        never disclosed.
        """
        existing = self.find_by_email(email)
        if existing is not None:
            return existing

        user = User(
            username=self._unique_username(email),
            email=email,
            first_name=first_name or "",
            last_name=last_name or "",
            country=DEFAULT_EXTERNAL_COUNTRY,
            role=UserRole.USER,
            blocked=False,
        )
        user.set_password(secrets.token_urlsafe(32))
        self.session.add(user)
        self.session.flush()
        logger.info(
            "external_user_created",
            extra={"user_id": str(user.id), "username": user.username},
        )
        return user

    def authenticate(self, username: str, password: str) -> User:
        """
        Check credentials.

        Unknown usernames and wrong passwords fail identically.  The blocked
        flag is consulted only after the password matched.

        Raises:
            BadCredentialsError, AccountDisabledError
        """
        user = self.find_by_username(username)
        if user is None or not user.check_password(password):
            logger.info("authentication_failed", extra={"username": username})
            raise BadCredentialsError()
        if not user.is_enabled:
            logger.info("authentication_disabled", extra={"user_id": str(user.id)})
            raise AccountDisabledError(user.id)
        logger.info("authentication_succeeded", extra={"user_id": str(user.id)})
        return user
