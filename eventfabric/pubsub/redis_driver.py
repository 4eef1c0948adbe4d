"""Broker-mediated pub/sub driver built on Redis PUBLISH/SUBSCRIBE.

Publishers and subscribers each pick one node of the configured Redis
deployment and use the topic as channel name. The broker only delivers
channels a subscriber asked for, so no client-side topic filtering is done.
"""

import logging
import random
from typing import Callable, Iterable, Optional, Sequence, Tuple

import redis
from redis.backoff import NoBackoff
from redis.exceptions import RedisError
from redis.retry import Retry

from ..config.base import PubSubConfig
from ..exceptions import ConfigurationError, TransportError
from ..monitoring.metrics import MetricsManager
from .api import Frame, PubSubApi, PublisherApi, SubscriberAgentBase

logger = logging.getLogger(__name__)

ClientFactory = Callable[..., redis.Redis]

# Frame types the broker sends for subscription bookkeeping
CONTROL_MESSAGE_TYPES = frozenset(
    ["subscribe", "unsubscribe", "psubscribe", "punsubscribe"]
)


def no_retry() -> Retry:
    """Retry policy that lets the first connection error surface.

    redis-py otherwise reconnects and re-subscribes a PubSub inside
    get_message, hiding the outage from the receive loop.
    """
    return Retry(NoBackoff(), 0)


def parse_host(address: str) -> Tuple[str, int]:
    """Split a host:port broker address.

    Raises:
        ConfigurationError: If the address is malformed.
    """
    host, _, port = address.rpartition(":")
    if not host or not port.isdigit():
        raise ConfigurationError(f"Invalid broker address: {address!r}")
    return host, int(port)


class RedisNodeSelector:
    """Pick a broker node from the configured Redis hosts."""

    def __init__(self, hosts: Sequence[str], rng: Optional[random.Random] = None):
        """Initialize selector.

        Args:
            hosts: host:port addresses
            rng: Random source, for deterministic selection in tests

        Raises:
            ConfigurationError: If no valid host is configured.
        """
        if not hosts:
            raise ConfigurationError("No broker hosts configured")
        self.nodes = [parse_host(host) for host in hosts]
        self._rng = rng or random.Random()

    def select(self, exclude: Iterable[Tuple[str, int]] = ()) -> Tuple[str, int]:
        """Return a node, avoiding excluded ones when possible."""
        excluded = set(exclude)
        candidates = [node for node in self.nodes if node not in excluded]
        return self._rng.choice(candidates or self.nodes)


class RedisPublisherAgent(PublisherApi):
    """Publisher issuing PUBLISH on a broker node."""

    driver_name = "redis"

    def __init__(
        self,
        node_selector: RedisNodeSelector,
        client_factory: ClientFactory = redis.Redis,
        propagate_values: bool = False,
        metrics_manager: Optional[MetricsManager] = None,
    ) -> None:
        super().__init__(propagate_values, metrics_manager)
        self.node_selector = node_selector
        self.client_factory = client_factory
        self.client: Optional[redis.Redis] = None
        self.node: Optional[Tuple[str, int]] = None

    def initialize(self) -> None:
        """Select a broker node and connect to it.

        Raises:
            TransportError: If the node cannot be reached.
        """
        host, port = self.node = self.node_selector.select()
        try:
            client = self.client_factory(host=host, port=port, db=0)
            client.ping()
        except RedisError as e:
            raise TransportError(f"Failed to connect to broker {host}:{port}: {e}") from e
        self.client = client
        logger.info(f"Publisher connected to broker {host}:{port}")

    def _send_frame(self, topic: str, payload: bytes) -> None:
        if self.client is None:
            raise TransportError("Publisher used before initialize()")
        try:
            self.client.publish(topic, payload)
        except RedisError as e:
            raise TransportError(f"Failed to publish on {topic}: {e}") from e

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
            self.client = None


class RedisSubscriberAgent(SubscriberAgentBase):
    """Subscriber reading a Redis pub/sub channel per topic."""

    driver_name = "redis"

    def __init__(
        self,
        node_selector: RedisNodeSelector,
        client_factory: ClientFactory = redis.Redis,
        receive_timeout_ms: int = 100,
        reconnect_delay: float = 1.0,
        metrics_manager: Optional[MetricsManager] = None,
    ) -> None:
        super().__init__(receive_timeout_ms, reconnect_delay, metrics_manager)
        self.node_selector = node_selector
        self.client_factory = client_factory
        self.client: Optional[redis.Redis] = None
        self.pubsub = None
        self._failed_node: Optional[Tuple[str, int]] = None

    def _connect(self) -> None:
        exclude = [self._failed_node] if self._failed_node else []
        host, port = self.node_selector.select(exclude=exclude)
        try:
            self.client = self.client_factory(
                host=host, port=port, db=0, retry=no_retry(), retry_on_error=[]
            )
            self.pubsub = self.client.pubsub()
            self.pubsub.subscribe(*self.topic_list)
        except RedisError as e:
            self._failed_node = (host, port)
            raise TransportError(f"Failed to subscribe on {host}:{port}: {e}") from e
        self._failed_node = None
        logger.info(f"Subscriber connected to broker {host}:{port}")

    def _receive(self) -> Optional[Frame]:
        if self.pubsub is None:
            raise TransportError("Subscriber channel is closed")
        try:
            message = self.pubsub.get_message(timeout=self.receive_timeout_ms / 1000.0)
        except RedisError as e:
            raise TransportError(f"Failed to receive: {e}") from e
        if message is None or message["type"] in CONTROL_MESSAGE_TYPES:
            return None
        return message["channel"], message["data"]

    def _close(self) -> None:
        try:
            if self.pubsub is not None:
                self.pubsub.close()
            if self.client is not None:
                self.client.close()
        except RedisError as e:
            logger.debug(f"Error closing broker connection: {e}")
        self.pubsub = None
        self.client = None

    def _subscribe_topic(self, topic: str) -> None:
        try:
            self.pubsub.subscribe(topic)
        except RedisError as e:
            raise TransportError(f"Failed to subscribe to {topic}: {e}") from e

    def _unsubscribe_topic(self, topic: str) -> None:
        try:
            self.pubsub.unsubscribe(topic)
        except RedisError as e:
            raise TransportError(f"Failed to unsubscribe from {topic}: {e}") from e


class RedisPubSub(PubSubApi):
    """Redis broker driver."""

    def __init__(
        self,
        config: Optional[PubSubConfig] = None,
        metrics_manager: Optional[MetricsManager] = None,
        client_factory: ClientFactory = redis.Redis,
    ) -> None:
        super().__init__(config, metrics_manager)
        self.node_selector = RedisNodeSelector(self.config.remote_db_hosts)
        self.client_factory = client_factory

    def get_publisher(self) -> RedisPublisherAgent:
        return RedisPublisherAgent(
            self.node_selector,
            client_factory=self.client_factory,
            propagate_values=self.config.propagate_values,
            metrics_manager=self.metrics,
        )

    def get_subscriber(self) -> RedisSubscriberAgent:
        return RedisSubscriberAgent(
            self.node_selector,
            client_factory=self.client_factory,
            receive_timeout_ms=self.config.receive_timeout_ms,
            metrics_manager=self.metrics,
        )
