"""
Dynamic balance configuration for seda progression.

Purpose
-------
Holds the tunable balance values of the progression engine (level table,
XP reward matrix, credit economy, decay policy, session requirements) and
serves them with dot-notation lookups.

Sources, in precedence order (later wins):
1. Caller-supplied defaults at lookup time (`get(key, default)`)
2. YAML files discovered recursively under the config directory
3. Explicit overrides passed to the constructor or written with `set()`

Design Notes
------------
- Instance-based: each engine gets its own manager.
- YAML dictionaries are deep-merged, so balance files can be split by topic.
- Every write (constructor overrides included) is validated against the
  registered schema for its top-level key.
- Reads never raise for missing keys; they return the supplied default.

Dependencies
------------
- PyYAML for YAML parsing
- `seda_progression.core.config.validator` for schema checks
"""

from __future__ import annotations

import copy
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, MutableMapping, Optional

import yaml

from seda_progression.core.config.config import Config
from seda_progression.core.config.errors import (
    ConfigInitializationError,
    ConfigValidationError,
)
from seda_progression.core.config.validator import validate_config_value
from seda_progression.core.logging.logger import get_logger

logger = get_logger(__name__)

_MISSING = object()


class ConfigManager:
    """
    Balance configuration with YAML backing and validated overrides.

    Examples
    --------
    >>> manager = ConfigManager(config_dir=Path("config"))
    >>> manager.load()
    >>> manager.get("progression.credit_economy.SEASONAL_CREDIT_CAP", 125)
    125
    >>> manager.set("progression.xp_rewards.FAN_TIP_PER_DOLLAR", 2)
    """

    def __init__(
        self,
        config_dir: Optional[Path] = None,
        overrides: Optional[Mapping[str, Any]] = None,
        *,
        load_yaml: bool = True,
    ) -> None:
        self._config_dir = Path(config_dir) if config_dir is not None else Config.PROGRESSION_CONFIG_DIR
        self._load_yaml = load_yaml
        self._yaml_values: Dict[str, Any] = {}
        self._overrides: Dict[str, Any] = {}
        self._cache: Dict[str, Any] = {}
        self._validators: Dict[str, Callable[[Any], Any]] = {}
        self._loaded = False

        for key, value in (overrides or {}).items():
            self._write_override(key, value)

    # =========================================================================
    # YAML LOADING
    # =========================================================================

    @staticmethod
    def _deep_merge_dict(
        target: MutableMapping[str, Any],
        source: Mapping[str, Any],
    ) -> None:
        """Recursively merge `source` into `target` (in-place)."""
        for key, value in source.items():
            if isinstance(value, Mapping) and isinstance(target.get(key), dict):
                ConfigManager._deep_merge_dict(target[key], value)
            else:
                target[key] = copy.deepcopy(value)

    def _load_yaml_configs(self) -> None:
        """
        Recursively load all YAML files under the config directory.

        A missing directory is not an error; built-in defaults apply. A file
        that exists but cannot be parsed or fails validation is fatal.
        """
        config_dir = self._config_dir
        if not config_dir.exists():
            logger.warning(
                "Config directory not found; using built-in defaults only",
                extra={"config_dir": str(config_dir)},
            )
            return

        yaml_files = sorted(config_dir.rglob("*.yaml")) + sorted(config_dir.rglob("*.yml"))
        if not yaml_files:
            logger.info(
                "No YAML config files discovered; using built-in defaults only",
                extra={"config_dir": str(config_dir)},
            )
            return

        merged: Dict[str, Any] = {}
        for yaml_file in yaml_files:
            try:
                with yaml_file.open("r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle)
            except (OSError, yaml.YAMLError) as exc:
                raise ConfigInitializationError(
                    f"Failed to load YAML config '{yaml_file}': {exc}"
                ) from exc

            if isinstance(data, dict):
                self._deep_merge_dict(merged, data)
                logger.debug(
                    "Loaded YAML config",
                    extra={"file": str(yaml_file.relative_to(config_dir))},
                )
            elif data is not None:
                logger.warning(
                    "Ignoring non-dict YAML root object",
                    extra={
                        "file": str(yaml_file.relative_to(config_dir)),
                        "root_type": type(data).__name__,
                    },
                )

        for top_key, value in merged.items():
            validate_config_value(top_key, value)

        self._yaml_values = merged
        logger.info(
            "YAML configs loaded",
            extra={
                "yaml_file_count": len(yaml_files),
                "top_level_keys": sorted(merged.keys()),
            },
        )

    # =========================================================================
    # INITIALIZATION
    # =========================================================================

    def load(self) -> None:
        """Load YAML sources and rebuild the cache (idempotent)."""
        start = time.perf_counter()
        if self._load_yaml:
            self._load_yaml_configs()
        self._rebuild_cache()
        self._loaded = True

        logger.info(
            "ConfigManager initialized",
            extra={
                "config_dir": str(self._config_dir),
                "override_count": len(self._overrides),
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )

    def reload(self) -> None:
        """Re-read YAML sources, keeping explicit overrides."""
        self._loaded = False
        self.load()

    def _rebuild_cache(self) -> None:
        cache: Dict[str, Any] = copy.deepcopy(self._yaml_values)
        for key, value in self._overrides.items():
            self._assign_path(cache, key, copy.deepcopy(value))
        self._cache = cache

    @staticmethod
    def _assign_path(target: Dict[str, Any], key: str, value: Any) -> None:
        parts = key.split(".")
        node = target
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value

    # =========================================================================
    # VALIDATION HOOKS
    # =========================================================================

    def register_validator(self, key: str, validator: Callable[[Any], Any]) -> None:
        """
        Register a validator for an exact dot-notation key.

        Validators run on `set()` and must return the value to store or raise.
        """
        self._validators[key] = validator
        logger.debug(
            "ConfigManager validator registered",
            extra={
                "config_key": key,
                "validator": getattr(validator, "__name__", "anonymous"),
            },
        )

    def _write_override(self, key: str, value: Any) -> None:
        validator = self._validators.get(key)
        if validator is not None:
            try:
                value = validator(value)
            except ConfigValidationError:
                raise
            except (TypeError, ValueError) as exc:
                raise ConfigValidationError(
                    f"Validation failed for config key '{key}': {exc}"
                ) from exc

        # Validate the whole top-level subtree as it would look after the write
        top_key = key.split(".")[0]
        candidate: Dict[str, Any] = {}
        current = self._cache.get(top_key, self._yaml_values.get(top_key))
        if isinstance(current, dict):
            candidate[top_key] = copy.deepcopy(current)
        self._assign_path(candidate, key, copy.deepcopy(value))
        validate_config_value(top_key, candidate[top_key])

        self._overrides[key] = value

    # =========================================================================
    # READ / WRITE API
    # =========================================================================

    def get(self, key: str, default: Any = None) -> Any:
        """
        Retrieve a configuration value by dot-notation path.

        Examples
        --------
        >>> manager.get("progression.xp_rewards.FAN_TRACK_PURCHASE", 10)
        10
        """
        if not self._loaded:
            logger.debug("ConfigManager accessed before explicit load; loading now")
            self.load()

        value: Any = self._cache
        for part in key.split("."):
            if isinstance(value, Mapping) and part in value:
                value = value[part]
            else:
                return default
        return copy.deepcopy(value)

    def get_section(self, key: str, defaults: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Return a mapping section merged over `defaults`.

        Useful for constant tables where YAML may override a subset of keys.
        """
        merged: Dict[str, Any] = dict(defaults)
        section = self.get(key, _MISSING)
        if section is _MISSING:
            return merged
        if not isinstance(section, Mapping):
            raise ConfigValidationError(
                f"Config value at '{key}' must be a mapping; got {type(section).__name__}"
            )
        merged.update(section)
        return merged

    def set(self, key: str, value: Any) -> None:
        """Write a validated in-memory override and refresh the cache."""
        self._write_override(key, value)
        self._rebuild_cache()
        logger.info(
            "Config override applied",
            extra={"config_key": key},
        )

    def get_all_keys(self) -> List[str]:
        if not self._loaded:
            self.load()
        return sorted(self._cache.keys())


__all__ = ["ConfigManager"]
