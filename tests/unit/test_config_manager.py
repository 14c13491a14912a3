"""
Unit tests for ConfigManager and schema validation.
"""

from pathlib import Path

import pytest

from seda_progression.core.config.errors import (
    ConfigInitializationError,
    ConfigValidationError,
)
from seda_progression.core.config.manager import ConfigManager
from seda_progression.core.config.validator import ConfigSchema, validate_config_value
from seda_progression.modules.progression import constants
from seda_progression.modules.progression.decay import DecayPolicy
from seda_progression.modules.progression.level_table import LevelTable
from seda_progression.modules.progression.rules import XPRuleEngine

SHIPPED_CONFIG_DIR = Path(__file__).resolve().parents[2] / "config"


@pytest.mark.unit
class TestConfigManager:
    """Test dot-notation reads, overrides and section merging."""

    def test_missing_key_returns_default(self, config_manager):
        assert config_manager.get("progression.nothing.here", 7) == 7

    def test_override_visible_through_get(self):
        manager = ConfigManager(
            overrides={"progression.credit_economy.SEASONAL_CREDIT_CAP": 200}, load_yaml=False
        )

        assert manager.get("progression.credit_economy.SEASONAL_CREDIT_CAP") == 200

    def test_get_section_merges_over_defaults(self):
        manager = ConfigManager(
            overrides={"progression.xp_rewards.FAN_TIP_PER_DOLLAR": 2}, load_yaml=False
        )

        section = manager.get_section("progression.xp_rewards", constants.XP_REWARDS)

        assert section["FAN_TIP_PER_DOLLAR"] == 2
        assert section["FAN_TRACK_PURCHASE"] == 10

    def test_get_returns_copies(self, config_manager):
        config_manager.set("progression.levels", [{"level": 1, "xp_required": 0, "badge": "A"}])

        rows = config_manager.get("progression.levels")
        rows.append({"level": 2})

        assert len(config_manager.get("progression.levels")) == 1

    def test_set_rejects_wrong_type(self, config_manager):
        with pytest.raises(ConfigValidationError):
            config_manager.set("progression.credit_economy.SEASONAL_CREDIT_CAP", "lots")

    def test_set_rejects_bool_for_int(self, config_manager):
        with pytest.raises(ConfigValidationError):
            config_manager.set("progression.xp_rewards.DJ_TRACK_PLAYED", True)

    def test_strict_sections_reject_unknown_keys(self, config_manager):
        with pytest.raises(ConfigValidationError):
            config_manager.set("progression.credit_economy.FREE_MONEY", 1)

    def test_constructor_overrides_are_validated(self):
        with pytest.raises(ConfigValidationError):
            ConfigManager(overrides={"progression.decay.short_rate": "fast"}, load_yaml=False)

    def test_registered_validator_runs_on_set(self, config_manager):
        def non_negative(value):
            if value < 0:
                raise ValueError("must be >= 0")
            return value

        config_manager.register_validator("progression.dedup_window_seconds", non_negative)

        with pytest.raises(ConfigValidationError):
            config_manager.set("progression.dedup_window_seconds", -1)


@pytest.mark.unit
class TestYamlLoading:
    """Test YAML discovery and validation."""

    def test_loads_and_merges_yaml_files(self, tmp_path):
        (tmp_path / "economy.yaml").write_text(
            "progression:\n  credit_economy:\n    SEASONAL_CREDIT_CAP: 300\n"
        )
        nested = tmp_path / "rates"
        nested.mkdir()
        (nested / "xp.yml").write_text("progression:\n  xp_rewards:\n    FAN_TIP_PER_DOLLAR: 2.5\n")

        manager = ConfigManager(config_dir=tmp_path)
        manager.load()

        assert manager.get("progression.credit_economy.SEASONAL_CREDIT_CAP") == 300
        assert manager.get("progression.xp_rewards.FAN_TIP_PER_DOLLAR") == 2.5

    def test_overrides_win_over_yaml(self, tmp_path):
        (tmp_path / "economy.yaml").write_text(
            "progression:\n  credit_economy:\n    SEASONAL_CREDIT_CAP: 300\n"
        )

        manager = ConfigManager(
            config_dir=tmp_path,
            overrides={"progression.credit_economy.SEASONAL_CREDIT_CAP": 50},
        )
        manager.reload()

        assert manager.get("progression.credit_economy.SEASONAL_CREDIT_CAP") == 50

    def test_invalid_yaml_values_rejected(self, tmp_path):
        (tmp_path / "bad.yaml").write_text("progression:\n  decay:\n    period_days: weekly\n")

        with pytest.raises(ConfigValidationError):
            ConfigManager(config_dir=tmp_path).load()

    def test_unparseable_yaml_is_fatal(self, tmp_path):
        (tmp_path / "broken.yaml").write_text("progression: [unclosed\n")

        with pytest.raises(ConfigInitializationError):
            ConfigManager(config_dir=tmp_path).load()

    def test_missing_directory_uses_defaults(self, tmp_path):
        manager = ConfigManager(config_dir=tmp_path / "absent")

        assert manager.get("progression.levels") is None
        assert LevelTable.from_config(manager).max_level == 6

    def test_shipped_config_matches_builtin_tables(self):
        manager = ConfigManager(config_dir=SHIPPED_CONFIG_DIR)
        manager.load()

        table = LevelTable.from_config(manager)
        engine = XPRuleEngine.from_config(manager)
        policy = DecayPolicy.from_config(manager)

        assert table.levels == LevelTable.default().levels
        assert dict(engine.rewards) == dict(constants.XP_REWARDS)
        assert engine.xp_to_credits_ratio == 100
        assert policy.short_rate == 0.01
        assert manager.get("core.event.listener_timeout.critical_seconds") == 5.0


@pytest.mark.unit
class TestSchema:
    def test_nested_error_path(self):
        with pytest.raises(ConfigValidationError) as exc_info:
            validate_config_value("progression", {"decay": {"long_rate": "high"}})

        assert "progression.decay.long_rate" in str(exc_info.value)

    def test_unknown_top_key_passes(self):
        assert validate_config_value("other", {"x": 1}) == {"x": 1}

    def test_int_accepted_for_float(self):
        schema = ConfigSchema(fields={"rate": float})

        assert schema.validate({"rate": 1}) == {"rate": 1}

    def test_non_mapping_rejected(self):
        with pytest.raises(ConfigValidationError):
            ConfigSchema(fields={}).validate([1, 2])
