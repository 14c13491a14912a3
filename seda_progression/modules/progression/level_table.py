"""
Level Table: cumulative XP to level and badge.

Purpose
-------
Static, ordered mapping from cumulative XP to a level index, badge name and
one-time credit reward. Pure lookups, no state.

Invariants
----------
- `level` and `xp_required` are strictly increasing.
- The first entry requires 0 XP, so every non-negative total has a level.
- `calculate_level` is referentially stable: equal inputs produce equal
  (frozen) results.

Configuration
-------------
`progression.levels` in the balance YAML replaces the built-in table
(`constants.LEVEL_PROGRESSION`). Invalid tables raise ConfigValidationError
when the LevelTable is built.
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from seda_progression.core.config.errors import ConfigValidationError
from seda_progression.modules.progression.constants import LEVEL_PROGRESSION
from seda_progression.modules.shared.exceptions import ValidationError

if TYPE_CHECKING:
    from seda_progression.core.config.manager import ConfigManager


@dataclass(frozen=True)
class LevelInfo:
    """One row of the level table."""

    level: int
    xp_required: int
    badge: str
    credits_reward: int = 0
    description: str = ""

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> "LevelInfo":
        try:
            return cls(
                level=int(row["level"]),
                xp_required=int(row["xp_required"]),
                badge=str(row["badge"]),
                credits_reward=int(row.get("credits_reward", 0)),
                description=str(row.get("description", "")),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigValidationError(f"Invalid level table row {dict(row)!r}: {exc}") from exc


@dataclass(frozen=True)
class LevelProgress:
    """
    Result of `calculate_level`.

    Attributes
    ----------
    level : int
        Highest level whose threshold is <= total XP.
    current_level_xp : int
        Threshold of that level.
    next_level_xp : int
        Threshold of the next level, or `current_level_xp` at max level.
    progress : float
        Percentage through the current level in [0, 100]; 100 at max level.
    """

    level: int
    current_level_xp: int
    next_level_xp: int
    progress: float

    @property
    def is_max_level(self) -> bool:
        return self.next_level_xp == self.current_level_xp


class LevelTable:
    """
    Ordered level thresholds with badge and reward lookups.

    Examples
    --------
    >>> table = LevelTable.default()
    >>> table.calculate_level(119)
    LevelProgress(level=2, current_level_xp=100, next_level_xp=250, progress=12.666666666666666)
    >>> table.badge_for(2)
    'Silver Note'
    """

    def __init__(self, levels: Iterable[LevelInfo]) -> None:
        entries: Tuple[LevelInfo, ...] = tuple(levels)
        self._validate(entries)
        self._levels = entries
        self._thresholds: List[int] = [entry.xp_required for entry in entries]
        self._by_level = {entry.level: entry for entry in entries}

    # =========================================================================
    # CONSTRUCTION
    # =========================================================================

    @staticmethod
    def _validate(entries: Sequence[LevelInfo]) -> None:
        if not entries:
            raise ConfigValidationError("Level table must contain at least one level")
        if entries[0].xp_required != 0:
            raise ConfigValidationError(
                f"First level must require 0 XP, got {entries[0].xp_required}"
            )

        seen_badges = set()
        for previous, current in zip(entries, entries[1:]):
            if current.level <= previous.level:
                raise ConfigValidationError(
                    f"Level numbers must be strictly increasing ({previous.level} -> {current.level})"
                )
            if current.xp_required <= previous.xp_required:
                raise ConfigValidationError(
                    "XP thresholds must be strictly increasing "
                    f"(level {previous.level}: {previous.xp_required}, "
                    f"level {current.level}: {current.xp_required})"
                )
        for entry in entries:
            if entry.credits_reward < 0:
                raise ConfigValidationError(f"Level {entry.level} has a negative credits_reward")
            if entry.badge in seen_badges:
                raise ConfigValidationError(f"Duplicate badge name '{entry.badge}'")
            seen_badges.add(entry.badge)

    @classmethod
    def from_rows(cls, rows: Iterable[Mapping[str, Any]]) -> "LevelTable":
        return cls(LevelInfo.from_mapping(row) for row in rows)

    @classmethod
    def default(cls) -> "LevelTable":
        return cls.from_rows(LEVEL_PROGRESSION)

    @classmethod
    def from_config(cls, config_manager: Optional["ConfigManager"]) -> "LevelTable":
        """Build from `progression.levels`, falling back to the built-in table."""
        if config_manager is None:
            return cls.default()
        rows = config_manager.get("progression.levels", None)
        if rows is None:
            return cls.default()
        if not isinstance(rows, list):
            raise ConfigValidationError("progression.levels must be a list of level rows")
        return cls.from_rows(rows)

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    @property
    def levels(self) -> Tuple[LevelInfo, ...]:
        return self._levels

    @property
    def max_level(self) -> int:
        return self._levels[-1].level

    @property
    def initial_badge(self) -> str:
        return self._levels[0].badge

    def _index_for(self, total_xp: int) -> int:
        if isinstance(total_xp, bool) or not isinstance(total_xp, int) or total_xp < 0:
            raise ValidationError("total_xp", f"must be a non-negative integer, got {total_xp!r}")
        return bisect_right(self._thresholds, total_xp) - 1

    def calculate_level(self, total_xp: int) -> LevelProgress:
        """
        Map cumulative XP to a level and the progress through it.

        Raises
        ------
        ValidationError
            If `total_xp` is negative or not an integer.
        """
        index = self._index_for(total_xp)
        current = self._levels[index]

        if index + 1 >= len(self._levels):
            return LevelProgress(
                level=current.level,
                current_level_xp=current.xp_required,
                next_level_xp=current.xp_required,
                progress=100.0,
            )

        nxt = self._levels[index + 1]
        span = nxt.xp_required - current.xp_required
        progress = 100.0 * (total_xp - current.xp_required) / span
        return LevelProgress(
            level=current.level,
            current_level_xp=current.xp_required,
            next_level_xp=nxt.xp_required,
            progress=min(100.0, max(0.0, progress)),
        )

    def level_for(self, total_xp: int) -> int:
        return self._levels[self._index_for(total_xp)].level

    def get_level_info(self, level: int) -> LevelInfo:
        try:
            return self._by_level[level]
        except KeyError:
            raise ValidationError("level", f"unknown level {level!r}") from None

    def badge_for(self, level: int) -> str:
        return self.get_level_info(level).badge

    def next_level_info(self, level: int) -> Optional[LevelInfo]:
        """Row after `level`, or None at max level."""
        for entry in self._levels:
            if entry.level > level:
                return entry
        return None

    def levels_between(self, old_level: int, new_level: int) -> List[LevelInfo]:
        """Rows with old_level < level <= new_level, in ascending order."""
        return [entry for entry in self._levels if old_level < entry.level <= new_level]

    def badges_through(self, level: int) -> List[str]:
        return [entry.badge for entry in self._levels if entry.level <= level]


DEFAULT_LEVEL_TABLE = LevelTable.default()


def calculate_level(total_xp: int, table: Optional[LevelTable] = None) -> LevelProgress:
    """
    Module-level convenience over `LevelTable.calculate_level`.

    Examples
    --------
    >>> calculate_level(0).level
    1
    >>> calculate_level(5000).progress
    100.0
    """
    return (table or DEFAULT_LEVEL_TABLE).calculate_level(total_xp)


__all__ = [
    "DEFAULT_LEVEL_TABLE",
    "LevelInfo",
    "LevelProgress",
    "LevelTable",
    "calculate_level",
]
