"""Configuration loader module."""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml
from dotenv import load_dotenv

from ..exceptions import ConfigurationError
from .base import Config, Environment

logger = logging.getLogger(__name__)

ENV_PREFIX = "EVENTFABRIC_"
CONFIG_BASENAME = "eventfabric"


class ConfigLoader:
    """Configuration loader class."""

    def __init__(self, config_dir: Optional[Union[str, Path]] = None):
        """Initialize configuration loader.

        Args:
            config_dir: Directory containing configuration files.
                Defaults to current directory.
        """
        self.config_dir = Path(config_dir or os.getcwd())

        env_file = self.config_dir / ".env"
        if env_file.exists():
            load_dotenv(env_file)

    def load(
        self,
        env: Optional[Environment] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> Config:
        """Load configuration.

        Args:
            env: Environment to load configuration for.
                Defaults to environment from ENVIRONMENT variable.
            environ: Mapping to read overrides from. Defaults to os.environ.

        Returns:
            Loaded configuration.

        Raises:
            ConfigurationError: If configuration loading fails.
        """
        environ = os.environ if environ is None else environ
        try:
            env = env or Environment(
                environ.get("ENVIRONMENT", Environment.DEVELOPMENT.value)
            )
        except ValueError as e:
            raise ConfigurationError(f"Unknown environment: {e}") from e

        data = self._load_config_files(env)
        _merge(data, self._load_env_overrides(environ))
        data["environment"] = env.value
        config = Config.from_dict(data)
        logger.debug(f"Loaded {env.value} configuration from {self.config_dir}")
        return config

    def _load_config_files(self, env: Environment) -> Dict[str, Any]:
        """Load base and environment-specific configuration files."""
        config: Dict[str, Any] = {}
        for stem in (CONFIG_BASENAME, f"{CONFIG_BASENAME}.{env.value}"):
            for suffix in (".yaml", ".yml", ".json"):
                _merge(config, self._load_file(f"{stem}{suffix}"))
        return config

    def _load_file(self, filename: str) -> Dict[str, Any]:
        """Load configuration file.

        Args:
            filename: Name of file to load.

        Returns:
            Configuration data, empty if the file does not exist.

        Raises:
            ConfigurationError: If file loading fails.
        """
        path = self.config_dir / filename
        if not path.exists():
            return {}

        try:
            with open(path) as f:
                if path.suffix in (".yaml", ".yml"):
                    data = yaml.safe_load(f) or {}
                else:
                    data = json.load(f)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to load {filename}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"{filename} must contain a mapping")
        return data

    @staticmethod
    def _load_env_overrides(environ: Mapping[str, str]) -> Dict[str, Any]:
        """Collect EVENTFABRIC_<SECTION>__<FIELD> overrides.

        List fields accept comma separated values.
        """
        overrides: Dict[str, Any] = {}
        for name, value in environ.items():
            if not name.startswith(ENV_PREFIX):
                continue
            section, sep, field = name[len(ENV_PREFIX):].lower().partition("__")
            if not sep or not field:
                continue
            if field in ("publishers_ips", "remote_db_hosts"):
                parsed: Any = [v.strip() for v in value.split(",") if v.strip()]
            else:
                parsed = value
            overrides.setdefault(section, {})[field] = parsed
        return overrides


def _merge(target: Dict[str, Any], source: Dict[str, Any]) -> None:
    """Recursively merge source into target."""
    for key, value in source.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _merge(target[key], value)
        else:
            target[key] = value


def get_config(
    env: Optional[Environment] = None,
    config_dir: Optional[Union[str, Path]] = None,
) -> Config:
    """Get configuration.

    This is a convenience function that creates a loader
    and loads configuration in one step.

    Args:
        env: Environment to load configuration for.
        config_dir: Directory containing configuration files.

    Returns:
        Loaded configuration.

    Raises:
        ConfigurationError: If configuration loading fails.
    """
    loader = ConfigLoader(config_dir)
    return loader.load(env)
