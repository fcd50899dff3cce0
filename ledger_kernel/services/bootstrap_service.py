"""
BootstrapService -- first-run data: default categories and the Owner.

Both operations are idempotent, so running bootstrap twice changes nothing.
"""

from collections.abc import Iterable, Mapping

from sqlalchemy import func, select

from ledger_kernel.exceptions import DuplicateUserError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models import Category, User, UserRole
from ledger_kernel.services.base import BaseService

logger = get_logger("services.bootstrap")


def _category_fields(item: str | Mapping) -> tuple[str, str | None, str | None]:
    if isinstance(item, str):
        return item, None, None
    return item["name"], item.get("color"), item.get("description")


class BootstrapService(BaseService):
    def seed_default_categories(self, categories: Iterable[str | Mapping]) -> list[Category]:
        """
        Create the shared default categories that do not exist yet.

        Names are matched case-insensitively against existing defaults.
        Accepts plain names or mappings with ``name`` and optional
        ``color``/``description``.  Returns only the newly created rows.
        """
        existing = {
            name.lower()
            for name in self.session.scalars(
                select(Category.name).where(Category.is_default.is_(True))
            )
        }
        created: list[Category] = []
        for item in categories:
            name, color, description = _category_fields(item)
            if name.lower() in existing:
                continue
            category = Category(
                name=name,
                color=color,
                description=description,
                is_default=True,
                user_id=None,
            )
            self.session.add(category)
            existing.add(name.lower())
            created.append(category)
        self.session.flush()
        logger.info(
            "default_categories_seeded",
            extra={"created_count": len(created), "total_defaults": len(existing)},
        )
        return created

    def ensure_owner(
        self,
        *,
        username: str,
        email: str,
        password: str,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> tuple[User, bool]:
        """
        Return the deployment's Owner, creating it if none exists.

        Returns (owner, created).

        Raises:
            DuplicateUserError: no Owner exists and the username or email
                belongs to another account.
        """
        owner = self.session.scalars(select(User).where(User.role == UserRole.OWNER)).first()
        if owner is not None:
            return owner, False

        if self.session.scalar(
            select(func.count()).select_from(User).where(User.username == username)
        ):
            raise DuplicateUserError("username", username)
        if self.session.scalar(
            select(func.count()).select_from(User).where(User.email == email)
        ):
            raise DuplicateUserError("email", email)

        owner = User(
            username=username,
            email=email,
            first_name=first_name,
            last_name=last_name,
            role=UserRole.OWNER,
            blocked=False,
        )
        owner.set_password(password)
        self.session.add(owner)
        self.session.flush()
        logger.info("owner_created", extra={"user_id": str(owner.id), "username": username})
        return owner, True
