"""Base configuration classes."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .. import constants
from ..exceptions import ConfigurationError


class Environment(str, Enum):
    """Environment enumeration."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class PubSubConfig(BaseModel):
    """Pub/sub driver and aggregator configuration."""
    pub_sub_driver: str = constants.ZMQ_PUBSUB_DRIVER
    pub_sub_multiproc_driver: str = constants.ZMQ_PUBSUB_MULTIPROC_DRIVER

    # Direct-socket backend
    publisher_transport: str = constants.DEFAULT_PUBLISHER_TRANSPORT
    publisher_bind_address: str = constants.DEFAULT_PUBLISHER_BIND_ADDRESS
    publisher_port: int = Field(constants.DEFAULT_PUBLISHER_PORT, ge=1, le=65535)
    publisher_multiproc_socket: str = constants.DEFAULT_MULTIPROC_SOCKET
    publishers_ips: List[str] = Field(default_factory=list)
    local_ip: str = "127.0.0.1"

    # Broker backend
    remote_db_hosts: List[str] = Field(
        default_factory=lambda: [f"127.0.0.1:{constants.DEFAULT_REDIS_PORT}"]
    )

    # Liveness
    publisher_timeout: float = Field(constants.DEFAULT_PUBLISHER_TIMEOUT, gt=0)
    publisher_rate_limit_count: int = Field(constants.DEFAULT_RATE_LIMIT_COUNT, ge=1)
    publisher_rate_limit_timeout: float = Field(
        constants.DEFAULT_RATE_LIMIT_TIMEOUT, gt=0
    )
    monitor_interval_fraction: float = Field(0.5, gt=0, le=1)

    propagate_values: bool = False
    receive_timeout_ms: int = Field(100, ge=1)

    @field_validator("remote_db_hosts")
    @classmethod
    def validate_db_hosts(cls, value: List[str]) -> List[str]:
        """Validate broker addresses are host:port pairs."""
        for host in value:
            address, _, port = host.rpartition(":")
            if not address or not port.isdigit():
                raise ValueError(f"Invalid broker address: {host}")
        return value

    @property
    def monitor_interval(self) -> float:
        """Seconds between stale-publisher scans."""
        return self.publisher_timeout * self.monitor_interval_fraction


class DbConfig(BaseModel):
    """Shared store configuration."""
    backend: str = "memory"
    redis_host: str = "127.0.0.1"
    redis_port: int = Field(constants.DEFAULT_REDIS_PORT, ge=1, le=65535)
    redis_password: Optional[str] = None
    redis_db: int = Field(0, ge=0)

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, value: str) -> str:
        """Validate store backend name."""
        if value not in ("memory", "redis"):
            raise ValueError(f"Unsupported db backend: {value}")
        return value


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    file: Optional[str] = None

    @field_validator("level")
    @classmethod
    def validate_level(cls, value: str) -> str:
        """Validate log level."""
        value = value.upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {value}")
        return value


class Config(BaseModel):
    """Complete configuration."""
    environment: Environment = Environment.DEVELOPMENT
    pubsub: PubSubConfig = Field(default_factory=PubSubConfig)
    db: DbConfig = Field(default_factory=DbConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create configuration from dictionary.

        Raises:
            ConfigurationError: If the data does not validate.
        """
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return self.model_dump(mode="json")
