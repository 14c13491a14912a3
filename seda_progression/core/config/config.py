"""
Static configuration management for seda progression.

Purpose
-------
Provides centralized static configuration loaded from environment variables
with sensible defaults and bounds checking. Handles the settings fixed at
process start; balance values (XP rates, level table, credit economy) live in
the dynamic ConfigManager instead.

Responsibilities
----------------
- Load configuration from environment variables with .env support
- Provide type-safe access to static configuration values
- Validate and clamp out-of-range settings on startup

Non-Responsibilities
--------------------
- Balance tables and reward rates (handled by ConfigManager)
- Runtime configuration changes

Dependencies
------------
- python-dotenv: Environment variable loading
- pathlib: Cross-platform path handling

Environment Variables
---------------------
- ENVIRONMENT: development | testing | staging | production (default: development)
- LOG_LEVEL: Logging level (default: INFO)
- LOG_JSON: Force JSON logs (default: on in production)
- LOG_COLORS: Colored console output in development (default: True)
- LOGS_DIR: Directory for the rotating JSON log file (default: <root>/logs)
- LOG_TO_FILE: Enable the rotating file handler (default: False)
- PROGRESSION_CONFIG_DIR: Directory scanned for YAML balance files (default: <root>/config)
- DECAY_INTERVAL_SECONDS: Decay scheduler period (default: 3600)
"""

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

load_dotenv()


class Environment(Enum):
    """Deployment environment types."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """
        Parse environment string safely with fallback.

        Example
        -------
        >>> Environment.from_string("PRODUCTION") == Environment.PRODUCTION
        True
        >>> Environment.from_string("moon") == Environment.DEVELOPMENT
        True
        """
        try:
            return cls(value.lower())
        except ValueError:
            # Structured logger is not initialized yet during bootstrap
            logging.warning(f"Unknown environment '{value}', defaulting to development")
            return cls.DEVELOPMENT


class Config:
    """
    Centralized static configuration for the progression engine.

    Usage
    -----
    >>> if Config.is_production():
    ...     logger.info("Running in production mode")
    >>> summary = Config.get_config_summary()
    """

    _loaded: bool = False

    # =========================================================================
    # Environment
    # =========================================================================

    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_JSON: Optional[bool] = None
    LOG_COLORS: bool = True
    LOG_TO_FILE: bool = False

    # =========================================================================
    # Directories
    # =========================================================================

    PROJECT_ROOT = Path(__file__).resolve().parents[3]
    LOGS_DIR = PROJECT_ROOT / "logs"
    PROGRESSION_CONFIG_DIR = PROJECT_ROOT / "config"

    # =========================================================================
    # Scheduler
    # =========================================================================

    DECAY_INTERVAL_SECONDS: int = 3600

    # =========================================================================
    # Helper Methods
    # =========================================================================

    @classmethod
    def _safe_int(
        cls,
        key: str,
        default: int,
        min_val: Optional[int] = None,
        max_val: Optional[int] = None,
    ) -> int:
        """
        Parse an integer from the environment, falling back on bad input.

        Example
        -------
        >>> Config._safe_int("DECAY_INTERVAL_SECONDS", 3600, min_val=1)
        3600
        """
        raw_value = os.getenv(key)
        if raw_value is None:
            return default

        try:
            value = int(raw_value)
        except ValueError:
            logging.warning(f"{key}='{raw_value}' is not a valid integer, using default {default}")
            return default

        if min_val is not None and value < min_val:
            logging.warning(f"{key}={value} is below minimum {min_val}, using default {default}")
            return default
        if max_val is not None and value > max_val:
            logging.warning(f"{key}={value} exceeds maximum {max_val}, using default {default}")
            return default
        return value

    @classmethod
    def _safe_bool(cls, key: str, default: Optional[bool]) -> Optional[bool]:
        """
        Parse a boolean from the environment.

        Recognizes: true/false, yes/no, 1/0, on/off (case-insensitive).
        """
        raw_value = os.getenv(key)
        if raw_value is None:
            return default

        normalized = raw_value.strip().lower()
        if normalized in ("true", "yes", "1", "on"):
            return True
        if normalized in ("false", "no", "0", "off"):
            return False

        logging.warning(f"{key}='{raw_value}' is not a valid boolean, using default {default}")
        return default

    @classmethod
    def _safe_path(cls, key: str, default: Path) -> Path:
        raw_value = os.getenv(key)
        if not raw_value:
            return default
        return Path(raw_value).expanduser().resolve()

    # =========================================================================
    # Loading
    # =========================================================================

    @classmethod
    def load(cls) -> None:
        """Load (or reload) all static values from the environment."""
        cls.ENVIRONMENT = Environment.from_string(
            os.getenv("ENVIRONMENT", "development")
        ).value
        cls.DEBUG = bool(cls._safe_bool("DEBUG", False))
        cls.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        cls.LOG_JSON = cls._safe_bool("LOG_JSON", None)
        cls.LOG_COLORS = bool(cls._safe_bool("LOG_COLORS", True))
        cls.LOG_TO_FILE = bool(cls._safe_bool("LOG_TO_FILE", False))
        cls.LOGS_DIR = cls._safe_path("LOGS_DIR", cls.PROJECT_ROOT / "logs")
        cls.PROGRESSION_CONFIG_DIR = cls._safe_path(
            "PROGRESSION_CONFIG_DIR", cls.PROJECT_ROOT / "config"
        )
        cls.DECAY_INTERVAL_SECONDS = cls._safe_int(
            "DECAY_INTERVAL_SECONDS", 3600, min_val=1, max_val=7 * 24 * 3600
        )
        cls._loaded = True

    # =========================================================================
    # Environment Helpers
    # =========================================================================

    @classmethod
    def is_production(cls) -> bool:
        return cls.ENVIRONMENT == Environment.PRODUCTION.value

    @classmethod
    def is_development(cls) -> bool:
        return cls.ENVIRONMENT == Environment.DEVELOPMENT.value

    @classmethod
    def is_testing(cls) -> bool:
        return cls.ENVIRONMENT == Environment.TESTING.value

    @classmethod
    def get_config_summary(cls) -> Dict[str, Any]:
        """Non-secret configuration snapshot suitable for a startup log line."""
        return {
            "environment": cls.ENVIRONMENT,
            "debug": cls.DEBUG,
            "log_level": cls.LOG_LEVEL,
            "log_json": cls.LOG_JSON,
            "log_to_file": cls.LOG_TO_FILE,
            "logs_dir": str(cls.LOGS_DIR),
            "progression_config_dir": str(cls.PROGRESSION_CONFIG_DIR),
            "decay_interval_seconds": cls.DECAY_INTERVAL_SECONDS,
        }


# Load on import
Config.load()
