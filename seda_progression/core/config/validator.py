"""
Configuration validation and schema management.

Purpose
-------
Provides recursive schema-based validation for nested configuration
structures. Ensures type safety and structural integrity of balance values
before they reach the ConfigManager cache.

Key Validation Rules
--------------------
1. All schema-backed config values must be Mapping types (dict-like)
2. Known fields are validated against specified types or nested schemas
3. Type coercion: int values accepted where float expected
4. Missing fields are allowed (sparse configuration support)
5. Unknown fields allowed by default (set allow_extra=False to forbid)
6. Nested schemas validated recursively with path tracking
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

from seda_progression.core.config.errors import ConfigValidationError

SchemaField = Union[type, "ConfigSchema"]


@dataclass(slots=True)
class ConfigSchema:
    """
    Recursive schema for nested configuration validation.

    Examples
    --------
    >>> schema = ConfigSchema(fields={"SEASONAL_CREDIT_CAP": int})
    >>> schema.validate({"SEASONAL_CREDIT_CAP": 125})
    {'SEASONAL_CREDIT_CAP': 125}

    >>> try:
    ...     schema.validate({"SEASONAL_CREDIT_CAP": "lots"})
    ... except ConfigValidationError as e:
    ...     print(e)
    Config value at 'SEASONAL_CREDIT_CAP' must be int; got str
    """

    fields: Mapping[str, SchemaField]
    allow_extra: bool = True

    def validate(self, value: Any, path: str = "") -> Any:
        """
        Validate value against this schema with dot-notation error paths.

        Raises
        ------
        ConfigValidationError
            If validation fails.
        """
        if not isinstance(value, Mapping):
            raise ConfigValidationError(
                f"Config value at '{path or '<root>'}' must be a mapping; "
                f"got {type(value).__name__}"
            )

        for key, expected in self.fields.items():
            full_path = f"{path}.{key}" if path else key

            if key not in value:
                continue

            raw = value[key]

            if isinstance(expected, ConfigSchema):
                expected.validate(raw, path=full_path)
                continue

            if expected is float and isinstance(raw, int) and not isinstance(raw, bool):
                continue

            # bool is an int subclass; never accept it for numeric fields
            if expected in (int, float) and isinstance(raw, bool):
                raise ConfigValidationError(
                    f"Config value at '{full_path}' must be {expected.__name__}; got bool"
                )

            if not isinstance(raw, expected):
                raise ConfigValidationError(
                    f"Config value at '{full_path}' must be {expected.__name__}; "
                    f"got {type(raw).__name__}"
                )

        if not self.allow_extra:
            unknown_keys = set(value.keys()) - set(self.fields.keys())
            if unknown_keys:
                unknown_list = ", ".join(sorted(str(k) for k in unknown_keys))
                raise ConfigValidationError(
                    f"Unexpected config keys at '{path or '<root>'}': {unknown_list}"
                )

        return value


# ============================================================================
# Schema Registry
# ============================================================================

_SCHEMAS: Dict[str, ConfigSchema] = {
    "progression": ConfigSchema(
        fields={
            "levels": list,
            "xp_rewards": ConfigSchema(
                fields={
                    "DJ_TRACK_PLAYED": int,
                    "DJ_UPVOTE_RECEIVED": int,
                    "DJ_DOWNVOTE_RECEIVED": int,
                    "FAN_TIP_PER_DOLLAR": float,
                    "FAN_TRACK_PURCHASE": int,
                    "FAN_MERCH_PURCHASE": int,
                    "FAN_TICKET_PURCHASE": int,
                    "ARTIST_REPLY_BONUS": int,
                },
                allow_extra=False,
            ),
            "credit_economy": ConfigSchema(
                fields={
                    "CREDITS_PER_PREMIUM_MONTH": int,
                    "PREMIUM_MONTHLY_PRICE": int,
                    "SEASONAL_CREDIT_CAP": int,
                    "XP_TO_CREDITS_RATIO": int,
                    "SEASON_LENGTH_MONTHS": int,
                },
                allow_extra=False,
            ),
            "session_requirements": ConfigSchema(
                fields={
                    "MIN_LISTENERS": int,
                    "MIN_DURATION_MINUTES": int,
                    "MIN_TRACKS": int,
                    "MIN_ENGAGEMENT_THRESHOLD": int,
                },
                allow_extra=True,
            ),
            "decay": ConfigSchema(
                fields={
                    "grace_days": int,
                    "period_days": int,
                    "long_inactivity_days": int,
                    "short_rate": float,
                    "long_rate": float,
                },
                allow_extra=False,
            ),
            "dedup_window_seconds": int,
        },
        allow_extra=True,
    ),
    "core": ConfigSchema(
        fields={
            "event": ConfigSchema(
                fields={
                    "listener_timeout": ConfigSchema(
                        fields={"critical_seconds": float, "high_seconds": float},
                    ),
                },
            ),
        },
        allow_extra=True,
    ),
}


def get_schema_for_top_key(top_key: str) -> Optional[ConfigSchema]:
    """Return the validation schema for a top-level key, or None."""
    return _SCHEMAS.get(top_key)


def register_schema(top_key: str, schema: ConfigSchema) -> None:
    """Register a new schema for a top-level configuration key."""
    _SCHEMAS[top_key] = schema


def validate_config_value(top_key: str, value: Any) -> Any:
    """
    Validate a top-level configuration value against its schema.

    If no schema is registered for the key, the value passes unchanged.

    Examples
    --------
    >>> validate_config_value("progression", {"dedup_window_seconds": 86400})
    {'dedup_window_seconds': 86400}
    >>> validate_config_value("unknown_key", {"any": "value"})
    {'any': 'value'}
    """
    schema = get_schema_for_top_key(top_key)
    if schema is None:
        return value
    return schema.validate(value, path=top_key)


__all__ = [
    "ConfigSchema",
    "SchemaField",
    "get_schema_for_top_key",
    "register_schema",
    "validate_config_value",
]
