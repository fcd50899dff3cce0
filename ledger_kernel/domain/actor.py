"""
Actor -- the resolved identity of the caller for one request.

Responsibility:
    A closed, tagged variant computed once per request from the
    authenticated User.  Scope and permission code match on it exhaustively
    instead of branching on role strings, and it is always passed explicitly
    (there is no ambient "current user").

Architecture position:
    Kernel > Domain -- pure, no ORM objects, no session.

Variants:
    OwnerActor        -- global scope.
    AdminActor        -- own records plus direct reports plus members of
                         groups the Admin owns.  Carries an AdminLookup
                         because the Admin row may not be provisioned yet.
    GroupMemberActor  -- role USER with a group; sees every member's records.
    StandaloneActor   -- role USER without a group; own records only.
"""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class GroupAdminRecords(str, Enum):
    """Whether group members also see their group admin's personal records."""

    EXCLUDE = "exclude"
    INCLUDE = "include"


@dataclass(frozen=True)
class AdminFound:
    admin_id: UUID
    username: str
    email: str


@dataclass(frozen=True)
class AdminNotProvisioned:
    """The user has role ADMIN but no Admin row matches it yet."""

    username: str
    email: str


AdminLookup = AdminFound | AdminNotProvisioned


@dataclass(frozen=True)
class OwnerActor:
    user_id: UUID


@dataclass(frozen=True)
class AdminActor:
    user_id: UUID
    admin: AdminLookup

    @property
    def admin_id(self) -> UUID | None:
        if isinstance(self.admin, AdminFound):
            return self.admin.admin_id
        return None


@dataclass(frozen=True)
class GroupMemberActor:
    user_id: UUID
    group_id: UUID
    group_admin_id: UUID


@dataclass(frozen=True)
class StandaloneActor:
    user_id: UUID


Actor = OwnerActor | AdminActor | GroupMemberActor | StandaloneActor


def describe(actor: Actor) -> str:
    """Short label for log payloads."""
    match actor:
        case OwnerActor():
            return "owner"
        case AdminActor(admin=AdminFound()):
            return "admin"
        case AdminActor(admin=AdminNotProvisioned()):
            return "admin_unprovisioned"
        case GroupMemberActor():
            return "group_member"
        case StandaloneActor():
            return "standalone"
    raise TypeError(f"Unknown actor variant: {actor!r}")
