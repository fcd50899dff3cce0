"""
Outbound mail.

Services talk to a MailSender; the default implementation only logs the
message, which is what tests and local runs want.  Deployments plug in a
real transport that satisfies the same protocol.
"""

from typing import Protocol, runtime_checkable

from ledger_kernel.logging_config import get_logger
from ledger_kernel.models import User

logger = get_logger("services.notification")


@runtime_checkable
class MailSender(Protocol):
    """Delivers a plain-text message.  May raise on transport failure."""

    def send(self, to: str, subject: str, body: str) -> None: ...


class LoggingMailSender:
    """MailSender that records messages in the log and keeps them in memory."""

    def __init__(self, mail_from: str = "noreply@localhost"):
        self.mail_from = mail_from
        self.outbox: list[tuple[str, str, str]] = []

    def send(self, to: str, subject: str, body: str) -> None:
        self.outbox.append((to, subject, body))
        logger.info(
            "mail_sent",
            extra={"mail_from": self.mail_from, "mail_to": to, "subject": subject},
        )


class NotificationService:
    def __init__(self, sender: MailSender | None = None):
        self.sender = sender or LoggingMailSender()

    def role_changed(self, user: User, new_role: str) -> None:
        body = (
            f"Hello {user.full_name},\n\n"
            f"Your account has been upgraded to the {new_role} role.\n"
            "Log in to explore the features now available to you.\n"
        )
        self.sender.send(user.email, "Your role has been updated", body)

    def password_reset(self, user: User, reset_url: str, valid_hours: int) -> None:
        body = (
            f"Hello {user.full_name},\n\n"
            "We received a request to reset your password.  Use the link below\n"
            f"within {valid_hours} hour(s):\n\n{reset_url}\n\n"
            "If you did not ask for this, you can ignore this message.\n"
        )
        self.sender.send(user.email, "Password reset request", body)
