"""Configuration management for cloudclass.

This module handles YAML settings loading, validation, and environment
variable override support. Settings describe how the tool reaches AWS
(profile, regions, class store), not the classes themselves.
"""

import copy
import os
from pathlib import Path
from typing import Any, Dict, List, Optional
import yaml


DEFAULT_SETTINGS: Dict[str, Any] = {
    "aws": {
        "home_region": "us-east-1",
        "regions": [],
        "ignored_regions": [],
    },
    "store": {
        "domain": "cloudclass",
    },
    "fanout": {
        "max_workers": 10,
    },
    "logging": {
        "level": "WARNING",
    },
}

AUTO_DETECT_PATHS = ("cloudclass.yaml", "config/cloudclass.yaml")


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


class Configuration:
    """Configuration management with YAML loading and validation.

    This class handles loading settings from YAML files, merging them
    over built-in defaults, validating the structure, and supporting
    environment variable overrides.
    """

    def __init__(self, config_path: Optional[str] = None) -> None:
        """Initialize configuration manager.

        Args:
            config_path: Optional path to configuration file.
                        If None, auto-detects cloudclass.yaml and falls
                        back to built-in defaults when none is found.

        Raises:
            ConfigurationError: When configuration file is invalid
        """
        self._config: Dict[str, Any] = copy.deepcopy(DEFAULT_SETTINGS)
        self._config_path = self._resolve_config_path(config_path)
        if self._config_path is not None:
            self._load_configuration()
        self._apply_environment_overrides()
        self._validate_configuration()

    @property
    def path(self) -> Optional[Path]:
        """Path of the loaded settings file, None when using defaults."""
        return self._config_path

    def _resolve_config_path(self, config_path: Optional[str]) -> Optional[Path]:
        """Resolve configuration file path.

        Args:
            config_path: Optional path to configuration file

        Returns:
            Resolved Path object, or None when nothing was found

        Raises:
            ConfigurationError: When an explicit file is not found
        """
        if config_path:
            path = Path(config_path)
            if not path.exists():
                raise ConfigurationError(
                    f"Configuration file not found: {path}. "
                    "Please create a configuration file or specify a valid path."
                )
            return path

        for candidate in AUTO_DETECT_PATHS:
            path = Path(candidate)
            if path.exists():
                return path

        return None

    def _load_configuration(self) -> None:
        """Load configuration from YAML file.

        Raises:
            ConfigurationError: When YAML file is invalid
        """
        try:
            with open(self._config_path, "r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML in configuration file {self._config_path}: {e}"
            )
        except IOError as e:
            raise ConfigurationError(
                f"Unable to read configuration file {self._config_path}: {e}"
            )

        if not isinstance(loaded, dict):
            raise ConfigurationError(
                f"Configuration file {self._config_path} must contain a mapping"
            )

        self._merge(self._config, loaded)

    def _merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> None:
        """Recursively merge override into base."""
        for key, value in override.items():
            if isinstance(value, dict) and isinstance(base.get(key), dict):
                self._merge(base[key], value)
            else:
                base[key] = value

    def _validate_configuration(self) -> None:
        """Validate configuration has well-formed fields.

        Raises:
            ConfigurationError: When a field has the wrong shape
        """
        home_region = self.get("aws.home_region")
        if not isinstance(home_region, str) or not home_region:
            raise ConfigurationError("Field 'aws.home_region' must be a non-empty string")

        for key in ("aws.regions", "aws.ignored_regions"):
            value = self.get(key)
            if value is None:
                self._set_nested_value(key, [])
            elif not isinstance(value, list):
                raise ConfigurationError(f"Field '{key}' must be a list")

        domain = self.get("store.domain")
        if not isinstance(domain, str) or not domain:
            raise ConfigurationError("Field 'store.domain' must be a non-empty string")

        max_workers = self.get("fanout.max_workers")
        if not isinstance(max_workers, int) or isinstance(max_workers, bool) or max_workers < 1:
            raise ConfigurationError("Field 'fanout.max_workers' must be a positive integer")

        level = self.get("logging.level")
        if not isinstance(level, str) or level.upper() not in (
            "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"
        ):
            raise ConfigurationError(f"Field 'logging.level' has an unknown level: {level}")

    def _apply_environment_overrides(self) -> None:
        """Apply environment variable overrides to configuration."""
        # AWS region override
        if "AWS_REGION" in os.environ:
            self._set_nested_value("aws.home_region", os.environ["AWS_REGION"])

        # AWS profile override
        if "AWS_PROFILE" in os.environ:
            self._set_nested_value(
                "aws.profile_name", os.environ["AWS_PROFILE"]
            )

        if "CLOUDCLASS_STORE_DOMAIN" in os.environ:
            self._set_nested_value(
                "store.domain", os.environ["CLOUDCLASS_STORE_DOMAIN"]
            )

    def _set_nested_value(self, key_path: str, value: Any) -> None:
        """Set nested configuration value using dot notation.

        Args:
            key_path: Dot-separated key path (e.g., 'aws.home_region')
            value: Value to set
        """
        keys = key_path.split(".")
        current = self._config

        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation.

        Args:
            key_path: Dot-separated key path (e.g., 'aws.home_region')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split(".")
        current = self._config

        try:
            for key in keys:
                current = current[key]
            return current
        except (KeyError, TypeError):
            return default

    def get_home_region(self) -> str:
        """Get AWS home region."""
        return self.get("aws.home_region")

    def get_profile_name(self) -> Optional[str]:
        """Get AWS profile name, if any."""
        return self.get("aws.profile_name")

    def get_regions(self) -> List[str]:
        """Get the region allow-list (empty means every region)."""
        return list(self.get("aws.regions", []))

    def get_ignored_regions(self) -> List[str]:
        """Get regions that fan-out skips."""
        return list(self.get("aws.ignored_regions", []))

    def get_store_domain(self) -> str:
        """Get SimpleDB domain holding the classes."""
        return self.get("store.domain")

    def get_store_region(self) -> str:
        """Get region of the SimpleDB class store.

        Returns:
            Configured store region, or the home region
        """
        return self.get("store.region") or self.get_home_region()

    def get_max_workers(self) -> int:
        """Get the fan-out thread pool size."""
        return self.get("fanout.max_workers")

    def get_log_level(self) -> str:
        """Get the logging level name."""
        return self.get("logging.level").upper()

    def to_dict(self) -> Dict[str, Any]:
        """Get complete configuration as dictionary.

        Returns:
            Complete configuration dictionary
        """
        return copy.deepcopy(self._config)
