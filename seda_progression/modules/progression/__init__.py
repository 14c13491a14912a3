"""
Progression Module
==================

XP, levels, badges and the virtual credit economy for seda.fm DJs and fans.

Components
----------
- LevelTable: XP thresholds, badges and level-up credit rewards
- XPRuleEngine: per-action XP and XP-to-credit conversion
- SessionEligibilityPolicy: minimum requirements for a DJ session to earn XP
- ProgressionStore: single writer of UserProgression (per-user locks)
- DecayPolicy / DecayScheduler: inactivity decay
- NotificationEmitter: one observer per user, post-commit delivery
- ProgressionService: public async facade
"""

from .constants import (
    CREDIT_ECONOMY,
    DECAY_POLICY,
    LEVEL_PROGRESSION,
    SESSION_REQUIREMENTS,
    XP_REWARDS,
)
from .decay import DecayPolicy, DecayResult, DecayScheduler
from .eligibility import SessionEligibility, SessionEligibilityPolicy
from .level_table import LevelInfo, LevelProgress, LevelTable, calculate_level
from .models import (
    ActionCategory,
    ActionEvent,
    ActionType,
    NotificationEvent,
    NotificationType,
    SessionSnapshot,
    UserProgression,
)
from .notifications import NotificationEmitter
from .repository import (
    InMemoryProgressionRepository,
    ProgressionRepository,
    SqlAlchemyProgressionRepository,
)
from .rules import XPAward, XPRuleEngine
from .service import ProgressionService, build_progression_service
from .store import ProgressionStore

__all__ = [
    "CREDIT_ECONOMY",
    "DECAY_POLICY",
    "LEVEL_PROGRESSION",
    "SESSION_REQUIREMENTS",
    "XP_REWARDS",
    "ActionCategory",
    "ActionEvent",
    "ActionType",
    "DecayPolicy",
    "DecayResult",
    "DecayScheduler",
    "InMemoryProgressionRepository",
    "LevelInfo",
    "LevelProgress",
    "LevelTable",
    "NotificationEmitter",
    "NotificationEvent",
    "NotificationType",
    "ProgressionRepository",
    "ProgressionService",
    "ProgressionStore",
    "SessionEligibility",
    "SessionEligibilityPolicy",
    "SessionSnapshot",
    "SqlAlchemyProgressionRepository",
    "UserProgression",
    "XPAward",
    "XPRuleEngine",
    "build_progression_service",
    "calculate_level",
]
