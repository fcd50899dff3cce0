"""
ledger_config -- runtime settings for the ledger.

Responsibility:
    ``get_active_config()`` is the single place the running application
    obtains its settings.  The result is cached for the life of the
    process; tests call ``load_settings()`` directly or clear the cache
    with ``reset_active_config()``.

Architecture position:
    Sits above ``ledger_kernel``.  The kernel never imports this package;
    the CLI and the batch scheduler translate settings into kernel
    arguments (engine URL, GroupAdminRecords policy, reset token lifetime).

Failure modes:
    - ``FileNotFoundError`` -- LEDGER_CONFIG_PATH points to a missing file.
    - ``ValueError`` -- a value failed validation; the message names the key.
"""

from __future__ import annotations

import logging

from ledger_config.loader import load_settings
from ledger_config.schema import DefaultCategory, LedgerSettings, OwnerSettings

_logger = logging.getLogger("ledger_kernel.config")

_active: LedgerSettings | None = None


def get_active_config() -> LedgerSettings:
    """Load settings once and return the cached instance thereafter."""
    global _active
    if _active is None:
        _active = load_settings()
        _logger.info(
            "LEDGER_CONFIG_TRACE",
            extra={
                "group_admin_records": _active.group_admin_records.value,
                "sweep_interval_seconds": _active.sweep_interval_seconds,
                "default_category_count": len(_active.default_categories),
            },
        )
    return _active


def reset_active_config() -> None:
    global _active
    _active = None


__all__ = [
    "DefaultCategory",
    "LedgerSettings",
    "OwnerSettings",
    "get_active_config",
    "load_settings",
    "reset_active_config",
]
