"""Configuration for the ServiceNow client."""

from .unified_config import UnifiedConfig, ConfigError, get_config, reset_config

# Import all constants (star import acceptable for config constants)
from .constants import *  # noqa: F403

__all__ = [
    'UnifiedConfig',
    'ConfigError',
    'get_config',
    'reset_config',
]
