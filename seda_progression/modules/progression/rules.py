"""
XP Rule Engine.

Purpose
-------
Translate one ActionEvent into an XP delta, the credits that XP converts
into, and an eligibility verdict. Pure arithmetic over configured rates;
the Progression Store decides what to do with the award.

Rules
-----
- DJ category: eligible only in public sessions. Eligible events award
  `rate * int(value)` (value is an occurrence count).
- Fan category: always eligible. `fan_tip` awards `floor(value * rate)`
  for a dollar value; purchases and reply bonuses are fixed per occurrence.
- Credits: XP converts at `XP_TO_CREDITS_RATIO` XP per credit. The
  remainder is carried on the record so no XP is lost to rounding.

Configuration
-------------
`progression.xp_rewards.*` and `progression.credit_economy.XP_TO_CREDITS_RATIO`
override the defaults in `constants.py`. Negative rates and a non-positive
ratio are rejected with ConfigValidationError.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Dict, Mapping, Optional

from seda_progression.core.config.errors import ConfigValidationError
from seda_progression.core.logging.logger import get_logger
from seda_progression.modules.progression.constants import CREDIT_ECONOMY, XP_REWARDS
from seda_progression.modules.progression.models import (
    ActionCategory,
    ActionEvent,
    ActionType,
)
from seda_progression.modules.shared.exceptions import UnknownEventTypeError

if TYPE_CHECKING:
    from seda_progression.core.config.manager import ConfigManager

logger = get_logger(__name__)

INELIGIBLE_REASON = "Only public sessions earn XP points"

# Action type -> reward key in XP_REWARDS
_RULE_KEYS: Dict[ActionType, str] = {
    ActionType.DJ_TRACK_PLAYED: "DJ_TRACK_PLAYED",
    ActionType.DJ_UPVOTE_RECEIVED: "DJ_UPVOTE_RECEIVED",
    ActionType.DJ_DOWNVOTE_RECEIVED: "DJ_DOWNVOTE_RECEIVED",
    ActionType.FAN_TIP: "FAN_TIP_PER_DOLLAR",
    ActionType.FAN_TRACK_PURCHASE: "FAN_TRACK_PURCHASE",
    ActionType.FAN_MERCH_PURCHASE: "FAN_MERCH_PURCHASE",
    ActionType.FAN_TICKET_PURCHASE: "FAN_TICKET_PURCHASE",
    ActionType.ARTIST_REPLY_BONUS: "ARTIST_REPLY_BONUS",
}


@dataclass(frozen=True)
class XPAward:
    """
    Outcome of evaluating one event.

    Attributes
    ----------
    xp_delta : int
        XP to add (0 when ineligible).
    credits_delta : int
        Credits produced by XP conversion; level rewards are added by the store.
    credit_carry : int
        XP remainder to carry toward the next credit.
    eligible : bool
        False for DJ events outside a public session.
    category : ActionCategory
        Sub-total the XP is credited to.
    reason : Optional[str]
        Why the event was ineligible.
    """

    xp_delta: int
    credits_delta: int
    credit_carry: int
    eligible: bool
    category: ActionCategory
    reason: Optional[str] = None


class XPRuleEngine:
    """
    Stateless evaluator of ActionEvents.

    Examples
    --------
    >>> engine = XPRuleEngine()
    >>> award = engine.evaluate(ActionEvent(type="fan_tip", value=10))
    >>> award.xp_delta
    50
    """

    def __init__(
        self,
        rewards: Optional[Mapping[str, float]] = None,
        xp_to_credits_ratio: int = CREDIT_ECONOMY["XP_TO_CREDITS_RATIO"],
    ) -> None:
        merged = dict(XP_REWARDS)
        merged.update(rewards or {})

        for key, rate in merged.items():
            if isinstance(rate, bool) or not isinstance(rate, (int, float)) or rate < 0:
                raise ConfigValidationError(f"XP reward '{key}' must be a non-negative number, got {rate!r}")
        if isinstance(xp_to_credits_ratio, bool) or not isinstance(xp_to_credits_ratio, int) or xp_to_credits_ratio <= 0:
            raise ConfigValidationError(
                f"XP_TO_CREDITS_RATIO must be a positive integer, got {xp_to_credits_ratio!r}"
            )

        self._rewards: Mapping[str, float] = MappingProxyType(merged)
        self._ratio = xp_to_credits_ratio

    @classmethod
    def from_config(cls, config_manager: Optional["ConfigManager"]) -> "XPRuleEngine":
        if config_manager is None:
            return cls()
        rewards = config_manager.get_section("progression.xp_rewards", XP_REWARDS)
        ratio = config_manager.get(
            "progression.credit_economy.XP_TO_CREDITS_RATIO",
            CREDIT_ECONOMY["XP_TO_CREDITS_RATIO"],
        )
        return cls(rewards=rewards, xp_to_credits_ratio=ratio)

    @property
    def rewards(self) -> Mapping[str, float]:
        return self._rewards

    @property
    def xp_to_credits_ratio(self) -> int:
        return self._ratio

    # =========================================================================
    # EVALUATION
    # =========================================================================

    def xp_for(self, event: ActionEvent) -> int:
        """Raw XP for an eligible event."""
        try:
            key = _RULE_KEYS[event.type]
        except KeyError:
            raise UnknownEventTypeError(event.type) from None

        rate = self._rewards[key]

        if event.type is ActionType.FAN_TIP:
            return int(math.floor(event.value * rate))
        if event.category is ActionCategory.DJ:
            return int(rate * int(event.value))
        return int(rate)

    def convert_to_credits(self, xp_delta: int, credit_carry: int = 0) -> tuple[int, int]:
        """Return `(credits, new_carry)` for XP added on top of `credit_carry`."""
        pool = credit_carry + xp_delta
        return pool // self._ratio, pool % self._ratio

    def evaluate(self, event: ActionEvent, credit_carry: int = 0) -> XPAward:
        """
        Evaluate one event against the configured rates.

        Raises
        ------
        UnknownEventTypeError
            If the event type has no rule.
        """
        if event.category is ActionCategory.DJ and not event.is_public_session:
            logger.debug(
                "Action ineligible: private session",
                extra={"event_type": event.type.value, "session_id": event.session_id},
            )
            return XPAward(
                xp_delta=0,
                credits_delta=0,
                credit_carry=credit_carry,
                eligible=False,
                category=event.category,
                reason=INELIGIBLE_REASON,
            )

        xp_delta = self.xp_for(event)
        credits_delta, carry = self.convert_to_credits(xp_delta, credit_carry)

        return XPAward(
            xp_delta=xp_delta,
            credits_delta=credits_delta,
            credit_carry=carry,
            eligible=True,
            category=event.category,
        )


__all__ = ["INELIGIBLE_REASON", "XPAward", "XPRuleEngine"]
