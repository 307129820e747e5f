"""Unified configuration system with clear precedence and secrets handling."""

import os
import json
from typing import Dict, Any, Optional, Union
from pathlib import Path

from dotenv import load_dotenv

from .constants import (
    DEFAULT_API_NAME,
    DEFAULT_NAMESPACE,
    DEFAULT_TIMEOUT_SECONDS,
    CONFIG_COMPONENT,
)


# Import logger lazily to avoid circular imports
logger = None

def _get_logger():
    """Lazy logger initialization to avoid circular imports."""
    global logger
    if logger is None:
        from ..logging import get_logger
        logger = get_logger(CONFIG_COMPONENT)
    return logger


class ConfigError(Exception):
    """Configuration-related errors."""
    pass


class UnifiedConfig:
    """Unified configuration with clear precedence:

    Precedence (highest to lowest):
    1. Environment variables (a .env file is loaded first)
    2. nowclient_config.json
    3. Code defaults

    Secrets are handled separately and only come from environment variables.
    """

    def __init__(self, config_file: str = "nowclient_config.json", load_env_file: bool = True,
                 defer_logging: bool = False):
        """Load configuration.

        Args:
            config_file: JSON file with non-secret settings
            load_env_file: Load a .env file into the environment first
            defer_logging: Keep load events until ``flush_load_events()``;
                used while the shared logger is itself being configured
        """
        if load_env_file:
            load_dotenv()

        self._config_file = config_file
        self._config = {}
        self._secrets = {}
        self._load_events = []
        self._defaults = self._get_code_defaults()

        self._load_json_config()
        self._load_secrets()
        self._apply_env_overrides()

        self._record("info", "unified_config_loaded",
                     config_file=config_file,
                     secrets_loaded=len(self._secrets),
                     config_sections=list(self._config.keys()))

        if not defer_logging:
            self.flush_load_events()

    def _record(self, level: str, message: str, **kwargs):
        self._load_events.append((level, message, kwargs))

    def flush_load_events(self):
        """Write the events collected while loading to the log."""
        log = _get_logger()
        events, self._load_events = self._load_events, []
        for level, message, kwargs in events:
            getattr(log, level)(message, component=CONFIG_COMPONENT, **kwargs)

    def _get_code_defaults(self) -> Dict[str, Any]:
        """Code defaults as fallback."""
        return {
            "servicenow": {
                "api_name": DEFAULT_API_NAME,
                "namespace": DEFAULT_NAMESPACE,
                "timeout": DEFAULT_TIMEOUT_SECONDS,
            },
            "logging": {
                "level": "INFO",
                "dir": "logs",
            },
        }

    def _load_json_config(self):
        """Load configuration from JSON file."""
        config_path = Path(self._config_file)
        if not config_path.exists():
            self._record("debug", "config_file_not_found",
                         path=str(config_path),
                         using_defaults=True)
            self._config = self._deep_merge(self._defaults, {})
            return

        try:
            with open(config_path, 'r') as f:
                file_config = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            self._record("error", "config_file_load_error",
                         path=str(config_path),
                         error=str(e),
                         using_defaults=True)
            self._config = self._deep_merge(self._defaults, {})
            return

        # File config takes precedence over defaults
        self._config = self._deep_merge(self._defaults, file_config)
        self._record("info", "config_file_loaded",
                     path=str(config_path),
                     sections=list(file_config.keys()))

    def _load_secrets(self):
        """Load sensitive values from environment only."""
        secret_mappings = {
            'servicenow_instance': 'SERVICENOW_INSTANCE',
            'servicenow_user': 'SERVICENOW_USER',
            'servicenow_password': 'SERVICENOW_PASSWORD',
        }

        for key, env_var in secret_mappings.items():
            value = os.getenv(env_var)
            if value:
                self._secrets[key] = value

        self._record("debug", "secrets_loaded",
                     secret_count=len(self._secrets),
                     secret_keys=list(self._secrets.keys()))

    def _apply_env_overrides(self):
        """Apply environment variable overrides for non-sensitive config."""
        env_mappings = {
            'SERVICENOW_API_NAME': 'servicenow.api_name',
            'SERVICENOW_NAMESPACE': 'servicenow.namespace',
            'SERVICENOW_TIMEOUT': 'servicenow.timeout',

            'LOG_LEVEL': 'logging.level',
            'LOG_DIR': 'logging.dir',
        }

        for env_var, config_path in env_mappings.items():
            value = os.getenv(env_var)
            if value is not None:
                converted_value = self._convert_env_value(value)
                self._set_nested_value(self._config, config_path, converted_value)
                self._record("debug", "env_override_applied",
                             env_var=env_var,
                             config_path=config_path,
                             value=converted_value)

    def _convert_env_value(self, value: str) -> Union[str, int, float, bool]:
        """Convert environment variable string to appropriate type."""
        if value.lower() in ('true', 'false'):
            return value.lower() == 'true'

        try:
            if '.' not in value:
                return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value

    def _deep_merge(self, base: Dict, override: Dict) -> Dict:
        """Deep merge two dictionaries."""
        result = {}
        for key, value in base.items():
            result[key] = self._deep_merge(value, {}) if isinstance(value, dict) else value

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def _set_nested_value(self, config: Dict, path: str, value: Any):
        """Set a nested configuration value using dot notation."""
        keys = path.split('.')
        current = config

        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value

    def get(self, path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation.

        Args:
            path: Dot-separated path like 'servicenow.timeout'
            default: Default value if path not found

        Returns:
            Configuration value or default
        """
        keys = path.split('.')
        current = self._config

        try:
            for key in keys:
                current = current[key]
            return current
        except (KeyError, TypeError):
            return default

    def get_secret(self, key: str, required: bool = True) -> Optional[str]:
        """Get secret value from environment.

        Args:
            key: Secret key
            required: Whether to raise error if missing

        Returns:
            Secret value or None

        Raises:
            ConfigError: If required secret is missing
        """
        value = self._secrets.get(key)

        if value is None and required:
            raise ConfigError(f"Required secret '{key}' not found in environment variables")

        return value

    def has_secret(self, key: str) -> bool:
        """Check if secret exists without exposing value."""
        return key in self._secrets

    def validate_required_secrets(self, required_keys: list):
        """Validate that all required secrets are present."""
        missing = [key for key in required_keys if not self.has_secret(key)]

        if missing:
            raise ConfigError(f"Missing required secrets: {', '.join(missing)}")

    @property
    def servicenow_api_name(self) -> str:
        return self.get('servicenow.api_name', DEFAULT_API_NAME)

    @property
    def servicenow_namespace(self) -> str:
        return self.get('servicenow.namespace', DEFAULT_NAMESPACE)

    @property
    def servicenow_timeout(self) -> float:
        return self.get('servicenow.timeout', DEFAULT_TIMEOUT_SECONDS)

    @property
    def log_level(self) -> str:
        return self.get('logging.level', 'INFO')

    @property
    def log_dir(self) -> str:
        return str(self.get('logging.dir', 'logs'))


_config: Optional[UnifiedConfig] = None


def get_config() -> UnifiedConfig:
    """Get the shared configuration (created on first use)."""
    global _config
    if _config is None:
        # Assigned before logging, the shared logger reads this configuration
        _config = UnifiedConfig(defer_logging=True)
        _config.flush_load_events()
    return _config


def reset_config():
    """Drop the shared configuration so the next get_config() reloads it."""
    global _config
    _config = None
