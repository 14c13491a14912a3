"""
DJ session eligibility.

A finished DJ session earns XP only when it was public and met the
minimum audience, duration, track and engagement requirements. Checks run
in that order and the first failure is reported.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Mapping, Optional

from seda_progression.core.config.errors import ConfigValidationError
from seda_progression.modules.progression.constants import SESSION_REQUIREMENTS
from seda_progression.modules.progression.models import SessionSnapshot
from seda_progression.modules.progression.rules import INELIGIBLE_REASON

if TYPE_CHECKING:
    from seda_progression.core.config.manager import ConfigManager


@dataclass(frozen=True)
class SessionEligibility:
    eligible: bool
    reason: Optional[str] = None


class SessionEligibilityPolicy:
    """
    Minimum requirements for a session to award XP.

    Examples
    --------
    >>> policy = SessionEligibilityPolicy()
    >>> policy.evaluate(SessionSnapshot("s1", True, 2, 30, 10, 4)).reason
    'Need at least 3 listeners'
    """

    def __init__(self, requirements: Optional[Mapping[str, int]] = None) -> None:
        merged = dict(SESSION_REQUIREMENTS)
        merged.update(requirements or {})
        for key, value in merged.items():
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ConfigValidationError(
                    f"Session requirement '{key}' must be a non-negative integer, got {value!r}"
                )

        self.min_listeners = merged["MIN_LISTENERS"]
        self.min_duration_minutes = merged["MIN_DURATION_MINUTES"]
        self.min_tracks = merged["MIN_TRACKS"]
        self.min_engagement = merged["MIN_ENGAGEMENT_THRESHOLD"]

    @classmethod
    def from_config(cls, config_manager: Optional["ConfigManager"]) -> "SessionEligibilityPolicy":
        if config_manager is None:
            return cls()
        return cls(config_manager.get_section("progression.session_requirements", SESSION_REQUIREMENTS))

    def evaluate(self, snapshot: SessionSnapshot) -> SessionEligibility:
        if not snapshot.is_public:
            return SessionEligibility(False, INELIGIBLE_REASON)
        if snapshot.listener_count < self.min_listeners:
            return SessionEligibility(False, f"Need at least {self.min_listeners} listeners")
        if snapshot.duration_minutes < self.min_duration_minutes:
            return SessionEligibility(
                False, f"Session must last at least {self.min_duration_minutes} minutes"
            )
        if snapshot.tracks_played < self.min_tracks:
            return SessionEligibility(False, f"Play at least {self.min_tracks} tracks")
        if snapshot.engagement_count < self.min_engagement:
            return SessionEligibility(False, "Session needs listener engagement")
        return SessionEligibility(True)


__all__ = ["SessionEligibility", "SessionEligibilityPolicy"]
