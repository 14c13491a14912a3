"""
Unit tests for the level table.

Covers threshold lookups, progress percentages, badge/reward lookups and
load-time validation of configured tables.
"""

import pytest

from seda_progression.core.config.errors import ConfigValidationError
from seda_progression.core.config.manager import ConfigManager
from seda_progression.modules.progression.level_table import (
    LevelInfo,
    LevelTable,
    calculate_level,
)
from seda_progression.modules.shared.exceptions import ValidationError


@pytest.fixture
def table() -> LevelTable:
    return LevelTable.default()


@pytest.mark.unit
class TestCalculateLevel:
    """Test XP -> level mapping."""

    def test_zero_xp_is_level_one(self, table):
        progress = table.calculate_level(0)

        assert progress.level == 1
        assert progress.current_level_xp == 0
        assert progress.next_level_xp == 100
        assert progress.progress == 0.0

    def test_exact_threshold_reaches_level(self, table):
        assert table.calculate_level(99).level == 1
        assert table.calculate_level(100).level == 2

    def test_progress_is_percentage_through_level(self, table):
        progress = table.calculate_level(175)

        assert progress.level == 2
        assert progress.next_level_xp == 250
        assert progress.progress == pytest.approx(50.0)

    def test_max_level_reports_full_progress(self, table):
        progress = table.calculate_level(50_000)

        assert progress.level == 6
        assert progress.next_level_xp == progress.current_level_xp == 2000
        assert progress.progress == 100.0
        assert progress.is_max_level

    def test_level_is_monotonic_in_xp(self, table):
        """More XP never yields a lower level."""
        levels = [table.level_for(xp) for xp in range(0, 2500, 7)]

        assert levels == sorted(levels)

    def test_equal_inputs_give_equal_results(self, table):
        assert table.calculate_level(321) == table.calculate_level(321)

    def test_negative_xp_rejected(self, table):
        with pytest.raises(ValidationError) as exc_info:
            table.calculate_level(-1)

        assert exc_info.value.error_code == "VALIDATION_TOTAL_XP"

    def test_module_level_helper_uses_default_table(self):
        assert calculate_level(1000).level == 5


@pytest.mark.unit
class TestLookups:
    """Test badge and reward lookups."""

    def test_badge_for_level(self, table):
        assert table.badge_for(1) == "Bronze Note"
        assert table.badge_for(6) == "Prestige Badge"

    def test_unknown_level_rejected(self, table):
        with pytest.raises(ValidationError):
            table.get_level_info(99)

    def test_badges_through_level(self, table):
        assert table.badges_through(3) == ["Bronze Note", "Silver Note", "Gold Note"]

    def test_levels_between_excludes_start(self, table):
        crossed = table.levels_between(1, 3)

        assert [info.level for info in crossed] == [2, 3]
        assert sum(info.credits_reward for info in crossed) == 15

    def test_next_level_info(self, table):
        assert table.next_level_info(2).xp_required == 250
        assert table.next_level_info(6) is None

    def test_max_level_and_initial_badge(self, table):
        assert table.max_level == 6
        assert table.initial_badge == "Bronze Note"


@pytest.mark.unit
class TestValidation:
    """Test table validation on load."""

    def test_first_threshold_must_be_zero(self):
        with pytest.raises(ConfigValidationError):
            LevelTable([LevelInfo(1, 10, "A"), LevelInfo(2, 20, "B")])

    def test_thresholds_must_strictly_increase(self):
        with pytest.raises(ConfigValidationError):
            LevelTable([LevelInfo(1, 0, "A"), LevelInfo(2, 100, "B"), LevelInfo(3, 100, "C")])

    def test_levels_must_strictly_increase(self):
        with pytest.raises(ConfigValidationError):
            LevelTable([LevelInfo(1, 0, "A"), LevelInfo(1, 100, "B")])

    def test_duplicate_badges_rejected(self):
        with pytest.raises(ConfigValidationError):
            LevelTable([LevelInfo(1, 0, "A"), LevelInfo(2, 100, "A")])

    def test_empty_table_rejected(self):
        with pytest.raises(ConfigValidationError):
            LevelTable([])

    def test_malformed_row_rejected(self):
        with pytest.raises(ConfigValidationError):
            LevelTable.from_rows([{"level": 1, "badge": "A"}])

    def test_from_config_uses_configured_rows(self):
        manager = ConfigManager(
            overrides={
                "progression.levels": [
                    {"level": 1, "xp_required": 0, "badge": "Start"},
                    {"level": 2, "xp_required": 50, "badge": "Next", "credits_reward": 3},
                ]
            },
            load_yaml=False,
        )

        table = LevelTable.from_config(manager)

        assert table.max_level == 2
        assert table.level_for(50) == 2
        assert table.get_level_info(2).credits_reward == 3

    def test_from_config_without_levels_uses_default(self, config_manager):
        assert LevelTable.from_config(config_manager).max_level == 6
