"""
Built-in balance tables for progression and the credit economy.

These are the defaults the engine falls back to when no YAML balance file
overrides them (see `config/progression.yaml`). Keys mirror the YAML layout
under the `progression.` prefix.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Dict, List, Mapping

# ============================================================================
# LEVEL TABLE
# ============================================================================

LEVEL_PROGRESSION: List[Dict[str, Any]] = [
    {
        "level": 1,
        "xp_required": 0,
        "badge": "Bronze Note",
        "credits_reward": 0,
        "description": "Welcome to seda.fm",
    },
    {
        "level": 2,
        "xp_required": 100,
        "badge": "Silver Note",
        "credits_reward": 5,
        "description": "Rising Music Lover",
    },
    {
        "level": 3,
        "xp_required": 250,
        "badge": "Gold Note",
        "credits_reward": 10,
        "description": "Dedicated Supporter",
    },
    {
        "level": 4,
        "xp_required": 500,
        "badge": "Platinum Note",
        "credits_reward": 20,
        "description": "Music Champion",
    },
    {
        "level": 5,
        "xp_required": 1000,
        "badge": "Diamond Note",
        "credits_reward": 40,
        "description": "Elite Supporter",
    },
    {
        "level": 6,
        "xp_required": 2000,
        "badge": "Prestige Badge",
        "credits_reward": 50,
        "description": "Legendary Status",
    },
]

# ============================================================================
# XP REWARDS
# ============================================================================

XP_REWARDS: Mapping[str, float] = MappingProxyType(
    {
        # DJ category (public sessions only)
        "DJ_TRACK_PLAYED": 1,
        "DJ_UPVOTE_RECEIVED": 1,
        "DJ_DOWNVOTE_RECEIVED": 0,
        # Fan support (always eligible)
        "FAN_TIP_PER_DOLLAR": 5,
        "FAN_TRACK_PURCHASE": 10,
        "FAN_MERCH_PURCHASE": 20,
        "FAN_TICKET_PURCHASE": 25,
        "ARTIST_REPLY_BONUS": 10,
    }
)

# ============================================================================
# CREDIT ECONOMY
# ============================================================================

CREDIT_ECONOMY: Mapping[str, int] = MappingProxyType(
    {
        "CREDITS_PER_PREMIUM_MONTH": 100,
        "PREMIUM_MONTHLY_PRICE": 10,
        "SEASONAL_CREDIT_CAP": 125,
        "XP_TO_CREDITS_RATIO": 100,
        "SEASON_LENGTH_MONTHS": 3,
    }
)

# Reasons accepted by spend_credits
SPEND_REASONS = frozenset({"premium_upgrade", "premium_renewal"})

# ============================================================================
# SESSION REQUIREMENTS
# ============================================================================

SESSION_REQUIREMENTS: Mapping[str, int] = MappingProxyType(
    {
        "MIN_LISTENERS": 3,
        "MIN_DURATION_MINUTES": 5,
        "MIN_TRACKS": 3,
        "MIN_ENGAGEMENT_THRESHOLD": 1,
    }
)

# ============================================================================
# DECAY POLICY
# ============================================================================

DECAY_POLICY: Mapping[str, float] = MappingProxyType(
    {
        "grace_days": 7,
        "period_days": 7,
        "long_inactivity_days": 30,
        "short_rate": 0.01,
        "long_rate": 0.05,
    }
)

# Replayed (session_id, type) pairs are rejected for this long
DEDUP_WINDOW_SECONDS = 24 * 60 * 60

# ============================================================================
# EVENT NAMES (EventBus)
# ============================================================================

EVENT_APPLIED = "progression.event_applied"
EVENT_LEVEL_UP = "progression.level_up"
EVENT_BADGE_UNLOCKED = "progression.badge_unlocked"
EVENT_CREDITS_EARNED = "progression.credits_earned"
EVENT_CREDITS_SPENT = "progression.credits_spent"
EVENT_SEASONAL_CAP_REACHED = "progression.seasonal_cap_reached"
EVENT_XP_DECAYED = "progression.xp_decayed"
EVENT_SEASON_RESET = "progression.season_reset"
EVENT_DAILY_LOGIN = "progression.daily_login"
