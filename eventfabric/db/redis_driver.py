"""Key-value store backed by Redis hashes, one hash per table."""

import json
import logging
from typing import Any, Callable, Dict, Optional

import redis
from redis.exceptions import RedisError

from ..config.base import DbConfig
from ..exceptions import NotFoundError, TransportError
from .api import DbApi

logger = logging.getLogger(__name__)


class RedisDbDriver(DbApi):
    """Redis-based shared store."""

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 6379,
        password: Optional[str] = None,
        db: int = 0,
        namespace: str = "eventfabric",
        client: Optional[redis.Redis] = None,
    ):
        """Initialize Redis store.

        Args:
            host: Redis host
            port: Redis port
            password: Optional password
            db: Database number
            namespace: Prefix for table hash names
            client: Pre-built client, overrides the connection arguments
        """
        self.namespace = namespace
        self.client = client or redis.Redis(
            host=host,
            port=port,
            password=password,
            db=db,
            decode_responses=False,
        )

    @classmethod
    def from_config(cls, config: DbConfig) -> "RedisDbDriver":
        return cls(
            host=config.redis_host,
            port=config.redis_port,
            password=config.redis_password,
            db=config.redis_db,
        )

    def _format_key(self, table: str) -> str:
        return f"{self.namespace}:{table}"

    def _call(self, operation: Callable[..., Any], *args: Any) -> Any:
        try:
            return operation(*args)
        except RedisError as e:
            raise TransportError(f"Redis operation failed: {e}", component="db") from e

    def create_key(self, table: str, key: str, value: Any) -> None:
        self._call(self.client.hset, self._format_key(table), key, json.dumps(value))

    def get_key(self, table: str, key: str) -> Any:
        data = self._call(self.client.hget, self._format_key(table), key)
        if data is None:
            raise NotFoundError(table, key)
        return json.loads(data)

    def set_key(self, table: str, key: str, value: Any) -> None:
        self._call(self.client.hset, self._format_key(table), key, json.dumps(value))

    def delete_key(self, table: str, key: str) -> None:
        self._call(self.client.hdel, self._format_key(table), key)

    def get_all_entries(self, table: str) -> Dict[str, Any]:
        rows = self._call(self.client.hgetall, self._format_key(table))
        entries = {}
        for key, data in rows.items():
            if isinstance(key, bytes):
                key = key.decode("utf-8")
            try:
                entries[key] = json.loads(data)
            except ValueError:
                logger.warning(f"Skipping corrupt row {key} in {table}")
        return entries

    def close(self) -> None:
        self.client.close()
