"""
Environment Management for the Strategy Matcher

Manages different environments (development, staging, production, test)
with environment-specific settings for logging, catalogs and search
parallelism.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional
import logging

import yaml

logger = logging.getLogger(__name__)


class Environment(str, Enum):
    """Available environments."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


@dataclass
class EnvironmentSettings:
    """Settings specific to an environment."""

    name: Environment

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # Catalog used when no --catalog is given (None = built-in templates)
    catalog_path: Optional[str] = None

    # Search settings
    parallel_execution: bool = False
    max_workers: int = 4
    verify_conservation: bool = True

    # Additional settings
    extra: Dict[str, Any] = field(default_factory=dict)


# Default settings for each environment
DEFAULT_SETTINGS: Dict[Environment, Dict[str, Any]] = {
    Environment.DEVELOPMENT: {
        "log_level": "DEBUG",
        "parallel_execution": False,
    },
    Environment.STAGING: {
        "log_level": "INFO",
        "parallel_execution": False,
    },
    Environment.PRODUCTION: {
        "log_level": "WARNING",
        "parallel_execution": True,
        "max_workers": 8,
    },
    Environment.TEST: {
        "log_level": "DEBUG",
        "parallel_execution": False,
    },
}


class EnvironmentManager:
    """Manages environment configuration and settings."""

    # Environment variable name for current environment
    ENV_VAR = "STRATEGY_MATCHER_ENV"

    # Config file search paths
    CONFIG_PATHS = [
        Path.cwd() / "config",
        Path.cwd() / ".config",
        Path.home() / ".strategy_matcher",
    ]

    _current_env: Optional[Environment] = None
    _settings: Optional[EnvironmentSettings] = None

    @classmethod
    def get_environment(cls) -> Environment:
        """
        Get the current environment.

        Priority:
        1. Explicitly set via set_environment()
        2. STRATEGY_MATCHER_ENV environment variable
        3. Default to DEVELOPMENT
        """
        if cls._current_env is not None:
            return cls._current_env

        env_str = os.environ.get(cls.ENV_VAR, "development").lower()

        try:
            return Environment(env_str)
        except ValueError:
            logger.warning(
                f"Unknown environment '{env_str}', defaulting to development"
            )
            return Environment.DEVELOPMENT

    @classmethod
    def set_environment(cls, env: Environment) -> None:
        """
        Set the current environment.

        Args:
            env: Environment to use
        """
        cls._current_env = env
        cls._settings = None  # Reset cached settings
        logger.info(f"Environment set to: {env.value}")

    @classmethod
    def get_settings(cls) -> EnvironmentSettings:
        """
        Get settings for the current environment.

        Loads from config file if available, otherwise uses defaults.
        """
        if cls._settings is not None:
            return cls._settings

        env = cls.get_environment()

        config_data = cls._load_config_file(env)

        # Merge with defaults
        defaults = DEFAULT_SETTINGS.get(env, {})
        merged = {**defaults, **(config_data or {})}

        cls._settings = EnvironmentSettings(
            name=env,
            log_level=merged.get("log_level", "INFO"),
            log_file=merged.get("log_file"),
            catalog_path=merged.get("catalog_path"),
            parallel_execution=merged.get("parallel_execution", False),
            max_workers=merged.get("max_workers", 4),
            verify_conservation=merged.get("verify_conservation", True),
            extra=merged.get("extra", {}),
        )

        return cls._settings

    @classmethod
    def _load_config_file(cls, env: Environment) -> Optional[Dict[str, Any]]:
        """Load environment config from file."""
        config_names = [
            f"{env.value}.yaml",
            f"{env.value}.yml",
            f"{env.value}.json",
            "config.yaml",
            "config.yml",
        ]

        for base_path in cls.CONFIG_PATHS:
            for config_name in config_names:
                config_path = base_path / config_name
                if config_path.exists():
                    try:
                        with open(config_path) as f:
                            data = yaml.safe_load(f)
                    except (OSError, yaml.YAMLError) as e:
                        logger.warning(f"Failed to load {config_path}: {e}")
                        continue

                    logger.debug(f"Loaded config from {config_path}")
                    if not isinstance(data, dict):
                        continue

                    # Handle nested environment config
                    if isinstance(data.get(env.value), dict):
                        return data[env.value]
                    return data

        return None

    @classmethod
    def reset(cls) -> None:
        """Reset environment manager state."""
        cls._current_env = None
        cls._settings = None

    @classmethod
    def is_development(cls) -> bool:
        return cls.get_environment() == Environment.DEVELOPMENT

    @classmethod
    def is_production(cls) -> bool:
        return cls.get_environment() == Environment.PRODUCTION

    @classmethod
    def is_test(cls) -> bool:
        return cls.get_environment() == Environment.TEST


def get_environment() -> Environment:
    """Get current environment."""
    return EnvironmentManager.get_environment()


def get_settings() -> EnvironmentSettings:
    """Get current environment settings."""
    return EnvironmentManager.get_settings()


def set_environment(env: Environment) -> None:
    """Set current environment."""
    EnvironmentManager.set_environment(env)


def configure_logging() -> None:
    """Configure logging based on environment settings."""
    settings = get_settings()

    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # Console handler
    if not root_logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    # File handler (if configured)
    if settings.log_file:
        file_handler = logging.FileHandler(settings.log_file)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    logger.info(f"Logging configured for {settings.name.value} environment")
