"""
Configuration subsystem for seda progression.

Static vs Dynamic Configuration
--------------------------------
**Static (Config):**
- Loaded from environment variables at import (.env supported)
- Includes: environment, log settings, config directory, decay interval
- Changes require a restart or an explicit `Config.load()`

**Dynamic (ConfigManager):**
- Loaded from YAML balance files plus in-memory overrides
- Includes: level table, XP rewards, credit economy, decay policy
- Every write is schema-validated

Usage
-----
```python
from seda_progression.core.config import Config, ConfigManager

manager = ConfigManager()
manager.load()
cap = manager.get("progression.credit_economy.SEASONAL_CREDIT_CAP", 125)

if Config.is_production():
    logger.info("Running in production mode")
```
"""

from seda_progression.core.config.config import Config, Environment
from seda_progression.core.config.errors import (
    ConfigError,
    ConfigInitializationError,
    ConfigValidationError,
)
from seda_progression.core.config.manager import ConfigManager
from seda_progression.core.config.validator import (
    ConfigSchema,
    SchemaField,
    get_schema_for_top_key,
    register_schema,
    validate_config_value,
)

__all__ = [
    # Static configuration
    "Config",
    "Environment",
    # Dynamic configuration manager
    "ConfigManager",
    # Error hierarchy
    "ConfigError",
    "ConfigInitializationError",
    "ConfigValidationError",
    # Validation
    "ConfigSchema",
    "SchemaField",
    "get_schema_for_top_key",
    "register_schema",
    "validate_config_value",
]
