"""Shared key-value store drivers."""

from ..config.base import DbConfig
from .api import DbApi
from .memory_driver import MemoryDbDriver
from .redis_driver import RedisDbDriver


def get_db_driver(config: DbConfig) -> DbApi:
    """Create the store driver selected in configuration."""
    if config.backend == "redis":
        return RedisDbDriver.from_config(config)
    return MemoryDbDriver()


__all__ = ["DbApi", "MemoryDbDriver", "RedisDbDriver", "get_db_driver"]
