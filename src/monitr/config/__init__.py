# Configuration - registry of known keys and the loader

from .manager import ConfigManager, initialize_config
from .registry import REGISTRY, ConfigKey, get_config_key, validate_config_value

__all__ = [
    "ConfigManager",
    "initialize_config",
    "REGISTRY",
    "ConfigKey",
    "get_config_key",
    "validate_config_value",
]
