"""Configuration manager for loading and validating .httpbackoff.yml"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from httpbackoff.domain.config import AppConfig, BackOffConfig, HttpConfig

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".httpbackoff.yml"

# Environment variable -> (section, key, converter)
ENV_OVERRIDES = {
    "HTTPBACKOFF_POLICY": ("backoff", "policy", str.lower),
    "HTTPBACKOFF_MAX_ATTEMPTS": ("backoff", "max_attempts", int),
    "HTTPBACKOFF_MAX_ELAPSED_TIME": ("backoff", "max_elapsed_time_millis", int),
    "HTTPBACKOFF_TIMEOUT": ("http", "timeout", float),
}


class ConfigurationError(Exception):
    """Configuration validation error."""

    pass


class ConfigManager:
    """Manages configuration from .httpbackoff.yml and environment variables

    Configuration priority:
    1. Default values (defined in Pydantic models)
    2. .httpbackoff.yml file (searched from current directory upwards)
    3. Environment variables (HTTPBACKOFF_*)
    4. CLI arguments (handled by CLI layer)
    """

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize config manager

        Args:
            config_path: Path to .httpbackoff.yml (searches from current dir if None)

        Raises:
            ConfigurationError: If configuration validation fails
        """
        if isinstance(config_path, str):
            config_path = Path(config_path)
        self.config_path = config_path or self._find_config_file()
        try:
            self.config: AppConfig = self._load_config()
        except ValidationError as e:
            errors = []
            for error in e.errors():
                field = ".".join(str(x) for x in error["loc"])
                errors.append(f"  - {field}: {error['msg']}")
            raise ConfigurationError(
                "Configuration validation failed:\n" + "\n".join(errors)
            ) from e

    def _find_config_file(self) -> Optional[Path]:
        current = Path.cwd()
        for parent in [current] + list(current.parents):
            config_file = parent / CONFIG_FILE_NAME
            if config_file.exists():
                logger.info(f"Found config file: {config_file}")
                return config_file
        logger.debug(f"No {CONFIG_FILE_NAME} found, using defaults")
        return None

    def _load_config(self) -> AppConfig:
        """Load configuration from file and validate with Pydantic

        Raises:
            ValidationError: If configuration is invalid
            ConfigurationError: If the file cannot be parsed
        """
        config_dict: Dict[str, Any] = {
            "backoff": BackOffConfig().model_dump(),
            "http": HttpConfig().model_dump(),
        }

        if self.config_path and self.config_path.exists():
            try:
                with open(self.config_path, "r", encoding="utf-8") as f:
                    file_config = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                raise ConfigurationError(f"Failed to load config from {self.config_path}: {e}") from e
            if not isinstance(file_config, dict):
                raise ConfigurationError(f"{self.config_path} must contain a mapping")
            config_dict = self._merge_config(config_dict, file_config)
            logger.info(f"Loaded configuration from {self.config_path}")

        config_dict = self._apply_env_overrides(config_dict)
        return AppConfig(**config_dict)

    def _merge_config(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge configuration dictionaries"""
        result = copy.deepcopy(base)
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value
        return result

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply HTTPBACKOFF_* environment variable overrides

        Raises:
            ConfigurationError: If a variable has the wrong type
        """
        for env_name, (section, key, convert) in ENV_OVERRIDES.items():
            raw = os.getenv(env_name)
            if not raw:
                continue
            try:
                config.setdefault(section, {})[key] = convert(raw)
            except ValueError as e:
                raise ConfigurationError(f"Invalid value for {env_name}: {raw!r}") from e
            logger.debug(f"{section}.{key} overridden by {env_name}")
        return config

    def get_backoff_config(self) -> BackOffConfig:
        """Get back off configuration"""
        return self.config.backoff

    def get_http_config(self) -> HttpConfig:
        """Get HTTP session configuration"""
        return self.config.http

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by key (supports dot notation)

        Args:
            key: Configuration key (e.g., "backoff.max_attempts" or "http")
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        value = self.config.model_dump()
        for k in key.split("."):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value
