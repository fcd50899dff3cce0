"""
Tests for ledger_config: packaged defaults, override files, environment
overrides and validation.
"""

import pytest

from ledger_config import get_active_config, load_settings, reset_active_config
from ledger_config.loader import _parse_bool, merge
from ledger_kernel.domain.actor import GroupAdminRecords

EMPTY_ENV: dict[str, str] = {}


@pytest.fixture
def write_yaml(tmp_path):
    def _write(text: str, name: str = "ledger.yaml"):
        path = tmp_path / name
        path.write_text(text)
        return path

    return _write


class TestDefaults:
    def test_packaged_defaults(self):
        settings = load_settings(environ=EMPTY_ENV)

        assert settings.database_url == "sqlite:///ledger.db"
        assert settings.group_admin_records is GroupAdminRecords.EXCLUDE
        assert settings.sweep_interval_seconds == 3600
        assert settings.password_reset_token_hours == 24
        assert settings.owner.username == "owner"
        assert len(settings.default_categories) == 11
        assert settings.default_categories[0].name == "Food & Dining"
        assert settings.default_categories[0].color == "#FF6B6B"


class TestOverrides:
    def test_override_file_merges_nested_keys(self, write_yaml):
        path = write_yaml(
            "group_admin_records: include\n"
            "owner:\n"
            "  email: root@example.com\n"
            "default_categories: [Rent, {name: Pets, color: '#123456'}]\n"
        )
        settings = load_settings(path, environ=EMPTY_ENV)

        assert settings.group_admin_records is GroupAdminRecords.INCLUDE
        assert settings.owner.username == "owner"
        assert settings.owner.email == "root@example.com"
        assert [c.name for c in settings.default_categories] == ["Rent", "Pets"]

    def test_config_path_from_environment(self, write_yaml):
        path = write_yaml("sweep_interval_seconds: 60\n")
        settings = load_settings(environ={"LEDGER_CONFIG_PATH": str(path)})
        assert settings.sweep_interval_seconds == 60

    def test_environment_wins_over_file(self, write_yaml):
        path = write_yaml("database_url: sqlite:///file.db\n")
        settings = load_settings(
            path,
            environ={
                "LEDGER_DATABASE_URL": "sqlite:///env.db",
                "LEDGER_SWEEP_INTERVAL_SECONDS": "120",
                "LEDGER_GROUP_ADMIN_RECORDS": "INCLUDE",
            },
        )
        assert settings.database_url == "sqlite:///env.db"
        assert settings.sweep_interval_seconds == 120
        assert settings.group_admin_records is GroupAdminRecords.INCLUDE

    def test_empty_override_file(self, write_yaml):
        settings = load_settings(write_yaml(""), environ=EMPTY_ENV)
        assert settings.sweep_interval_seconds == 3600

    def test_missing_override_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "missing.yaml", environ=EMPTY_ENV)

    def test_merge_replaces_lists(self):
        merged = merge({"a": {"x": 1, "y": 2}, "l": [1, 2]}, {"a": {"y": 3}, "l": [9]})
        assert merged == {"a": {"x": 1, "y": 3}, "l": [9]}


class TestValidation:
    def test_bad_group_admin_records(self, write_yaml):
        with pytest.raises(ValueError, match="group_admin_records"):
            load_settings(write_yaml("group_admin_records: sometimes\n"), environ=EMPTY_ENV)

    @pytest.mark.parametrize("value", ["0", "-5", "soon"])
    def test_non_positive_interval(self, value):
        with pytest.raises(ValueError, match="sweep_interval_seconds"):
            load_settings(environ={"LEDGER_SWEEP_INTERVAL_SECONDS": value})

    def test_template_requires_token_placeholder(self, write_yaml):
        path = write_yaml("reset_url_template: https://example.com/reset\n")
        with pytest.raises(ValueError, match="reset_url_template"):
            load_settings(path, environ=EMPTY_ENV)

    def test_top_level_must_be_mapping(self, write_yaml):
        with pytest.raises(ValueError, match="top level must be a mapping"):
            load_settings(write_yaml("- just\n- a list\n"), environ=EMPTY_ENV)

    def test_owner_requires_username(self, write_yaml):
        with pytest.raises(ValueError, match="username"):
            load_settings(write_yaml("owner:\n  username: ''\n"), environ=EMPTY_ENV)

    def test_invalid_category_entry(self, write_yaml):
        with pytest.raises(ValueError, match="default_categories"):
            load_settings(write_yaml("default_categories: [{color: red}]\n"), environ=EMPTY_ENV)


class TestParseBool:
    @pytest.mark.parametrize("value", [True, "true", "YES", " on ", "1"])
    def test_truthy(self, value):
        assert _parse_bool("flag", value) is True

    @pytest.mark.parametrize("value", [False, "false", "No", "off", "0"])
    def test_falsy(self, value):
        assert _parse_bool("flag", value) is False

    def test_rejects_other_values(self):
        with pytest.raises(ValueError, match="flag"):
            _parse_bool("flag", "maybe")


class TestActiveConfig:
    @pytest.fixture(autouse=True)
    def _reset(self, monkeypatch):
        for name in (
            "LEDGER_CONFIG_PATH",
            "LEDGER_DATABASE_URL",
            "LEDGER_SWEEP_INTERVAL_SECONDS",
            "LEDGER_GROUP_ADMIN_RECORDS",
        ):
            monkeypatch.delenv(name, raising=False)
        reset_active_config()
        yield
        reset_active_config()

    def test_cached_until_reset(self, monkeypatch):
        first = get_active_config()
        assert get_active_config() is first

        monkeypatch.setenv("LEDGER_SWEEP_INTERVAL_SECONDS", "30")
        assert get_active_config().sweep_interval_seconds == 3600

        reset_active_config()
        assert get_active_config().sweep_interval_seconds == 30
