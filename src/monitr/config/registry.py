"""Configuration Registry - Defines all configuration keys.

Every option monitr understands is registered here with its type, default
and validation bounds. ConfigManager uses the registry to apply TOML and
environment overrides and to reject invalid values at startup.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ConfigKey:
    """Defines a single configuration key with validation.

    Attributes:
        value_type: Expected Python type (str, int, float, bool)
        default: Default value if not specified in config files
        min_value: Minimum value for numeric types (optional)
        max_value: Maximum value for numeric types (optional)
        validator: Custom validation function (optional)
        description: One-line help text
    """
    value_type: type
    default: Any
    min_value: Optional[Any] = None
    max_value: Optional[Any] = None
    validator: Optional[Callable[[Any], bool]] = None
    description: str = ""


REGISTRY: dict[str, ConfigKey] = {
    # ===== DATABASE =====
    "database.path": ConfigKey(
        value_type=str,
        default="~/.monitr/system_info.db",
        validator=lambda v: bool(v.strip()),
        description="SQLite snapshot store",
    ),

    # ===== POLL LOOP =====
    "monitor.interval_seconds": ConfigKey(
        value_type=int,
        default=30,
        min_value=1,
        max_value=3600,
        description="Wait between sample cycles",
    ),

    # ===== REACHABILITY PROBE =====
    "probe.host": ConfigKey(
        value_type=str,
        default="1.1.1.1",
        validator=lambda v: bool(v.strip()) and not v.startswith("-"),
        description="Reference host pinged every cycle",
    ),

    # ===== LOGGING =====
    "logging.level": ConfigKey(
        value_type=str,
        default="INFO",
        validator=lambda v: v.upper() in LOG_LEVELS,
    ),
    "logging.file_path": ConfigKey(
        value_type=str,
        default="",
        description="Append logs to this file instead of stderr (empty = stderr)",
    ),
    "logging.json": ConfigKey(
        value_type=bool,
        default=False,
        description="Render log lines as JSON",
    ),
}


def get_config_key(key: str) -> ConfigKey:
    """Get configuration key definition from registry.

    Args:
        key: Configuration key path (e.g., "database.path")

    Returns:
        ConfigKey definition

    Raises:
        KeyError: If key not found in registry
    """
    if key not in REGISTRY:
        raise KeyError(f"Configuration key '{key}' not found in registry")
    return REGISTRY[key]


def validate_config_value(key: str, value: Any) -> tuple[bool, Optional[str]]:
    """Validate a configuration value against its registered definition.

    Args:
        key: Configuration key path
        value: Value to validate

    Returns:
        Tuple of (is_valid, error_message)
        error_message is None if valid
    """
    try:
        config_key = get_config_key(key)
    except KeyError as e:
        return False, str(e)

    # bool is an int subclass; don't let True pass as an interval
    if config_key.value_type is not bool and isinstance(value, bool):
        return False, f"Expected type {config_key.value_type.__name__}, got bool"

    if not isinstance(value, config_key.value_type):
        return False, f"Expected type {config_key.value_type.__name__}, got {type(value).__name__}"

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if config_key.min_value is not None and value < config_key.min_value:
            return False, f"Value {value} below minimum {config_key.min_value}"
        if config_key.max_value is not None and value > config_key.max_value:
            return False, f"Value {value} above maximum {config_key.max_value}"

    if config_key.validator is not None:
        try:
            if not config_key.validator(value):
                return False, f"Custom validation failed for value: {value}"
        except Exception as e:
            return False, f"Validator error: {str(e)}"

    return True, None


def get_default_values() -> dict[str, Any]:
    """Get default values for all configuration keys.

    Returns:
        Dictionary of key -> default_value
    """
    return {key: config_key.default for key, config_key in REGISTRY.items()}
