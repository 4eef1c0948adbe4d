"""
Configuration Package for eventfabric

Settings are pydantic models loaded from YAML/JSON files, a .env file and
EVENTFABRIC_<SECTION>__<FIELD> environment variables. There is no global
configuration instance: build one with get_config() and pass it (or its
pubsub section) to the drivers and services that need it.

Example Usage:
    from eventfabric.config import get_config

    config = get_config(config_dir="/etc/eventfabric")
    port = config.pubsub.publisher_port
"""

from .base import Config, DbConfig, Environment, LoggingConfig, PubSubConfig
from .loader import ConfigLoader, get_config

__all__ = [
    "Config",
    "ConfigLoader",
    "DbConfig",
    "Environment",
    "LoggingConfig",
    "PubSubConfig",
    "get_config",
]
