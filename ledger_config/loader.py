"""
Settings loader (``ledger_config.loader``).

Responsibility
--------------
Reads the packaged ``defaults.yaml``, layers an optional override file on
top (``LEDGER_CONFIG_PATH`` or an explicit path), applies environment
overrides, and parses the result into a frozen ``LedgerSettings``.

Precedence (last wins)
----------------------
1. ``defaults.yaml`` shipped with the package
2. the override file
3. ``LEDGER_DATABASE_URL``, ``LEDGER_SWEEP_INTERVAL_SECONDS``,
   ``LEDGER_GROUP_ADMIN_RECORDS``

Failure modes
-------------
* Missing override file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid or missing value  -> ``ValueError`` naming the offending key.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import DefaultCategory, LedgerSettings, OwnerSettings
from ledger_kernel.domain.actor import GroupAdminRecords

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

CONFIG_PATH_ENV = "LEDGER_CONFIG_PATH"

# Environment variable -> settings key
ENV_OVERRIDES = {
    "LEDGER_DATABASE_URL": "database_url",
    "LEDGER_SWEEP_INTERVAL_SECONDS": "sweep_interval_seconds",
    "LEDGER_GROUP_ADMIN_RECORDS": "group_admin_records",
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML mapping; an empty file yields an empty dict."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into ``base``; nested mappings merge key by key."""
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(result.get(key), Mapping):
            result[key] = merge(result[key], value)
        else:
            result[key] = value
    return result


# ---------------------------------------------------------------------------
# Field parsers
# ---------------------------------------------------------------------------


def _require(data: Mapping[str, Any], key: str) -> Any:
    if data.get(key) in (None, ""):
        raise ValueError(f"{key}: value is required")
    return data[key]


def _parse_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "1", "yes", "on"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "0", "no", "off"):
        return False
    raise ValueError(f"{key}: expected a boolean, got {value!r}")


def _parse_positive_int(key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{key}: expected a positive integer, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{key}: expected a positive integer, got {value!r}") from None
    if number <= 0:
        raise ValueError(f"{key}: expected a positive integer, got {value!r}")
    return number


def _parse_group_admin_records(value: Any) -> GroupAdminRecords:
    try:
        return GroupAdminRecords(str(value).strip().lower())
    except ValueError:
        choices = ", ".join(m.value for m in GroupAdminRecords)
        raise ValueError(
            f"group_admin_records: expected one of {choices}, got {value!r}"
        ) from None


def _parse_owner(data: Any) -> OwnerSettings:
    if not isinstance(data, Mapping):
        raise ValueError(f"owner: expected a mapping, got {data!r}")
    return OwnerSettings(
        username=_require(data, "username"),
        email=_require(data, "email"),
        first_name=data.get("first_name"),
        last_name=data.get("last_name"),
    )


def _parse_categories(items: Any) -> tuple[DefaultCategory, ...]:
    if items is None:
        return ()
    if not isinstance(items, list):
        raise ValueError(f"default_categories: expected a list, got {items!r}")
    parsed = []
    for item in items:
        if isinstance(item, str):
            parsed.append(DefaultCategory(name=item))
        elif isinstance(item, Mapping) and item.get("name"):
            parsed.append(
                DefaultCategory(
                    name=item["name"],
                    color=item.get("color"),
                    description=item.get("description"),
                )
            )
        else:
            raise ValueError(f"default_categories: invalid entry {item!r}")
    return tuple(parsed)


def parse_settings(data: Mapping[str, Any]) -> LedgerSettings:
    """Build LedgerSettings from a merged mapping."""
    template = str(data.get("reset_url_template", LedgerSettings.reset_url_template))
    if "{token}" not in template:
        raise ValueError("reset_url_template: must contain the {token} placeholder")

    return LedgerSettings(
        database_url=str(_require(data, "database_url")),
        owner=_parse_owner(_require(data, "owner")),
        echo_sql=_parse_bool("echo_sql", data.get("echo_sql", False)),
        group_admin_records=_parse_group_admin_records(
            data.get("group_admin_records", GroupAdminRecords.EXCLUDE.value)
        ),
        password_reset_token_hours=_parse_positive_int(
            "password_reset_token_hours", data.get("password_reset_token_hours", 24)
        ),
        reset_url_template=template,
        mail_from=str(data.get("mail_from", LedgerSettings.mail_from)),
        sweep_interval_seconds=_parse_positive_int(
            "sweep_interval_seconds", data.get("sweep_interval_seconds", 3600)
        ),
        default_categories=_parse_categories(data.get("default_categories")),
    )


def load_settings(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> LedgerSettings:
    """
    Load settings from the packaged defaults, an override file and the
    environment.

    Args:
        path: Override file.  Falls back to ``LEDGER_CONFIG_PATH``; when
            neither is set only the defaults apply.
        environ: Environment mapping, ``os.environ`` when omitted.
    """
    environ = os.environ if environ is None else environ
    data = load_yaml_file(DEFAULTS_PATH)

    override_path = path or environ.get(CONFIG_PATH_ENV)
    if override_path:
        data = merge(data, load_yaml_file(Path(override_path)))

    for env_name, key in ENV_OVERRIDES.items():
        if environ.get(env_name):
            data[key] = environ[env_name]

    return parse_settings(data)
