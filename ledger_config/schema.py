"""
LedgerSettings schema.

The parsed, validated form of the YAML settings file.  The loader builds
these; everything else only reads them.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ledger_kernel.domain.actor import GroupAdminRecords

# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DefaultCategory:
    name: str
    color: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class OwnerSettings:
    """Identity of the deployment Owner created by ``bootstrap``."""

    username: str
    email: str
    first_name: str | None = None
    last_name: str | None = None


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerSettings:
    database_url: str
    owner: OwnerSettings
    echo_sql: bool = False
    group_admin_records: GroupAdminRecords = GroupAdminRecords.EXCLUDE
    password_reset_token_hours: int = 24
    reset_url_template: str = "http://localhost:5173/reset-password?token={token}"
    mail_from: str = "noreply@localhost"
    sweep_interval_seconds: int = 3600
    default_categories: tuple[DefaultCategory, ...] = field(default_factory=tuple)
