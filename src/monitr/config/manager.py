"""Configuration Manager.

Loads monitr's settings once at startup with the precedence

    registry defaults < TOML file < environment variables

The TOML file defaults to ~/.monitr/config.toml. Environment variables use
the MONITR_ prefix with dots replaced by underscores, e.g.
MONITR_DATABASE_PATH overrides database.path. A .env file in the working
directory is loaded first if present.
"""

import os
from pathlib import Path
from typing import Any, Optional

try:
    import tomllib  # Python 3.11+
except ImportError:
    import tomli as tomllib  # type: ignore

from dotenv import load_dotenv
import structlog

from .registry import REGISTRY, get_config_key, get_default_values, validate_config_value

logger = structlog.get_logger(__name__)

ENV_PREFIX = "MONITR_"
DEFAULT_CONFIG_FILE = Path("~/.monitr/config.toml")


class ConfigManager:
    """Holds validated configuration values.

    Attributes:
        config: Loaded key -> value mapping (empty until load() is called)
        config_file: TOML file consulted by load()
        env_file: .env file consulted by load()
    """

    def __init__(self, config_file: Optional[Path] = None, env_file: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            config_file: Path to TOML config file (default: ~/.monitr/config.toml)
            env_file: Path to .env file (default: .env in working directory)
        """
        self.config: dict[str, Any] = {}

        if config_file is None:
            config_file = DEFAULT_CONFIG_FILE
        if env_file is None:
            env_file = Path(".env")

        self.config_file = Path(config_file).expanduser()
        self.env_file = Path(env_file)

    def load(self) -> dict[str, Any]:
        """Load configuration from defaults, TOML and environment variables.

        Returns:
            Dictionary of configuration key-value pairs

        Raises:
            ValueError: If a TOML or environment value is invalid

        Note:
            A missing config file is not an error; defaults are used.
        """
        if self.env_file.exists():
            load_dotenv(self.env_file)
            logger.debug("env_file_loaded", env_file=str(self.env_file))

        # Step 1: Start with defaults
        config = get_default_values()

        # Step 2: Load from TOML file
        if self.config_file.exists():
            with open(self.config_file, "rb") as f:
                try:
                    toml_data = tomllib.load(f)
                except tomllib.TOMLDecodeError as e:
                    raise ValueError(f"Invalid TOML in {self.config_file}: {e}") from e

            flattened = self._flatten_toml(toml_data)
            for key in REGISTRY:
                if key in flattened:
                    config[key] = flattened[key]

            unknown = sorted(set(flattened) - set(REGISTRY))
            if unknown:
                logger.warning("unknown_config_keys", keys=unknown, config_file=str(self.config_file))

            logger.debug("toml_config_loaded", config_file=str(self.config_file), keys_count=len(flattened))

        # Step 3: Apply environment variable overrides
        for key in REGISTRY:
            env_key = ENV_PREFIX + key.replace(".", "_").upper()
            env_value = os.getenv(env_key)
            if env_value is not None:
                config_key_def = get_config_key(key)
                try:
                    config[key] = self._parse_env_value(env_value, config_key_def.value_type)
                except ValueError as e:
                    raise ValueError(f"Failed to parse env var {env_key}: {e}") from e
                logger.debug("env_override_applied", key=key, env_key=env_key)

        # Step 4: Validate everything
        for key, value in config.items():
            is_valid, error_msg = validate_config_value(key, value)
            if not is_valid:
                raise ValueError(f"Config validation failed for '{key}': {error_msg}")

        self.config = config
        return config

    def get(self, key: str) -> Any:
        """Get configuration value.

        Raises:
            KeyError: If key is not registered
        """
        config_key_def = get_config_key(key)
        return self.config.get(key, config_key_def.default)

    def _flatten_toml(self, data: dict) -> dict[str, Any]:
        """Flatten nested TOML structure to dotted keys.

        Example: {"probe": {"host": "8.8.8.8"}} -> {"probe.host": "8.8.8.8"}
        """
        result = {}

        def _flatten(d: dict, prefix: str = ""):
            for key, value in d.items():
                full_key = f"{prefix}.{key}" if prefix else key
                if isinstance(value, dict):
                    _flatten(value, full_key)
                else:
                    result[full_key] = value

        _flatten(data)
        return result

    def _parse_env_value(self, value: str, target_type: type) -> Any:
        """Parse environment variable string to target type.

        Raises:
            ValueError: If parsing fails
        """
        if target_type == bool:
            return value.lower() in ("true", "1", "yes", "on")
        elif target_type == int:
            return int(value)
        elif target_type == float:
            return float(value)
        elif target_type == str:
            return value
        else:
            raise ValueError(f"Unsupported type for env parsing: {target_type}")


def initialize_config(config_file: Optional[Path] = None,
                      env_file: Optional[Path] = None) -> ConfigManager:
    """Create and load a configuration manager.

    Args:
        config_file: Path to TOML config file
        env_file: Path to .env file

    Returns:
        Loaded ConfigManager instance
    """
    manager = ConfigManager(config_file, env_file)
    manager.load()
    return manager
