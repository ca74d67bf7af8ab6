"""Tests for YAML engine settings: defaults, overrides and rejection of bad input."""

import pytest
import yaml

from ledger_config import DEFAULTS_PATH, get_active_settings, parse_settings
from ledger_config.schema import EngineSettings
from ledger_kernel.exceptions import ConfigurationError


class TestDefaults:
    def test_packaged_defaults_match_schema(self):
        assert get_active_settings() == EngineSettings()

    def test_defaults_file_is_plain_yaml(self):
        data = yaml.safe_load(DEFAULTS_PATH.read_text())
        assert set(data) == {"trash", "background", "updates", "ledger"}

    def test_documented_values(self):
        settings = get_active_settings()
        assert settings.trash.maximum_age_seconds == 120
        assert settings.updates.max_errors == 2
        assert settings.ledger.account_separator == ":"


class TestOverrides:
    def test_partial_section(self):
        settings = parse_settings({"trash": {"maximum_age_seconds": 5}})
        assert settings.trash.maximum_age_seconds == 5
        assert settings.trash.sweep_period_seconds == 300
        assert settings.background == EngineSettings().background

    def test_empty_section_takes_defaults(self):
        assert parse_settings({"ledger": None}) == EngineSettings()

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("background:\n  enabled: false\nledger:\n  default_currency: EUR\n")
        settings = get_active_settings(path)
        assert settings.background.enabled is False
        assert settings.ledger.default_currency == "EUR"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert get_active_settings(path) == EngineSettings()


class TestRejection:
    def test_unknown_section(self):
        with pytest.raises(ConfigurationError, match="Unknown sections: plugins"):
            parse_settings({"plugins": {}})

    def test_unknown_key(self):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_settings({"trash": {"max_age": 5}})
        assert exc_info.value.path == "trash"

    @pytest.mark.parametrize(
        "data, path",
        [
            ({"background": {"enabled": "yes"}}, "background.enabled"),
            ({"trash": {"maximum_age_seconds": True}}, "trash.maximum_age_seconds"),
            ({"trash": {"maximum_age_seconds": -1}}, "trash.maximum_age_seconds"),
            ({"ledger": {"account_separator": ""}}, "ledger.account_separator"),
            ({"updates": {"max_errors": 0}}, "updates.max_errors"),
            ({"trash": {"sweep_period_seconds": 0}}, "trash.sweep_period_seconds"),
        ],
    )
    def test_bad_values_name_their_path(self, data, path):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_settings(data)
        assert exc_info.value.path == path
        assert exc_info.value.code == "CONFIGURATION_ERROR"

    def test_section_must_be_mapping(self):
        with pytest.raises(ConfigurationError):
            parse_settings({"trash": [1, 2]})

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ConfigurationError):
            get_active_settings(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_settings(tmp_path / "absent.yaml")
