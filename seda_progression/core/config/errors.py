"""
Configuration exceptions for seda progression.

Exception Hierarchy
-------------------
ConfigError (base)
├── ConfigValidationError (schema/type/table validation failures)
└── ConfigInitializationError (YAML discovery/load failures)
"""


class ConfigError(Exception):
    """
    Base exception for all configuration-related errors.

    Example
    -------
    >>> try:
    ...     manager.set("progression.xp_rewards", {"FAN_TIP_PER_DOLLAR": "five"})
    ... except ConfigError as e:
    ...     logger.error(f"Config operation failed: {e}")
    """

    pass


class ConfigValidationError(ConfigError):
    """
    Raised when configuration validation fails.

    This exception is raised when:
    - Schema validation fails (wrong type, invalid structure)
    - A level table is not strictly increasing
    - A reward rate or economy constant is negative
    """

    pass


class ConfigInitializationError(ConfigError):
    """
    Raised when ConfigManager cannot load its YAML sources.

    This is a critical error: the engine refuses to start with a half-read
    balance table.
    """

    pass


__all__ = [
    "ConfigError",
    "ConfigValidationError",
    "ConfigInitializationError",
]
