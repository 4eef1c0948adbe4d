"""Direct-socket pub/sub drivers built on ZeroMQ.

Cross-host (ZMQPubSub):
    publisher binds a PUB socket on transport://bind_address:port,
    subscribers connect a SUB socket to every known publisher and apply
    topics as socket subscriptions.

Inter-process (ZMQPubSubMultiproc):
    every writer process connects a PUSH socket to a local ipc:// path,
    the single local reader binds a PULL socket on it.
"""

import logging
import os
from typing import Optional

import zmq

from .. import constants
from ..config.base import PubSubConfig
from ..exceptions import DecodeError, TransportError, UnsupportedTransportError
from ..monitoring.metrics import MetricsManager
from . import codec
from .api import Frame, PubSubApi, PublisherApi, SubscriberAgentBase

logger = logging.getLogger(__name__)


def ipc_endpoint(path: str) -> str:
    return f"ipc://{path}"


def _receive_frame(socket: Optional[zmq.Socket], timeout_ms: int) -> Optional[Frame]:
    """Poll one two-part frame from socket."""
    if socket is None or socket.closed:
        raise TransportError("Subscriber socket is closed")
    try:
        if not socket.poll(timeout_ms):
            return None
        frames = socket.recv_multipart()
    except zmq.ZMQError as e:
        raise TransportError(f"Failed to receive: {e}") from e
    if len(frames) != 2:
        raise DecodeError(f"Expected 2 frames, got {len(frames)}")
    return frames[0], frames[1]


def _close_socket(socket: Optional[zmq.Socket]) -> None:
    if socket is not None and not socket.closed:
        socket.close()


class ZMQPublisherAgent(PublisherApi):
    """Cross-host publisher: binds a PUB socket."""

    driver_name = "zmq"

    def __init__(
        self,
        endpoint: str,
        context: Optional[zmq.Context] = None,
        propagate_values: bool = False,
        metrics_manager: Optional[MetricsManager] = None,
    ) -> None:
        """Initialize publisher.

        Args:
            endpoint: Address to bind, e.g. tcp://*:8866
            context: ZMQ context, defaults to the process-wide instance
            propagate_values: Send update values on the wire
            metrics_manager: Metrics manager
        """
        super().__init__(propagate_values, metrics_manager)
        self.endpoint = endpoint
        self.context = context or zmq.Context.instance()
        self.socket: Optional[zmq.Socket] = None

    def initialize(self) -> None:
        """Bind the PUB socket.

        Raises:
            TransportError: If the endpoint cannot be bound.
        """
        socket = self.context.socket(zmq.PUB)
        socket.setsockopt(zmq.LINGER, 0)
        try:
            socket.bind(self.endpoint)
        except zmq.ZMQError as e:
            socket.close()
            raise TransportError(f"Failed to bind publisher on {self.endpoint}: {e}") from e
        self.socket = socket
        logger.info(f"Publisher bound to {self.endpoint}")

    def _send_frame(self, topic: str, payload: bytes) -> None:
        if self.socket is None:
            raise TransportError("Publisher used before initialize()")
        try:
            self.socket.send_multipart([codec.encode_topic(topic), payload], zmq.NOBLOCK)
        except zmq.ZMQError as e:
            raise TransportError(f"Failed to send on {self.endpoint}: {e}") from e

    def close(self) -> None:
        if self.socket is not None:
            self.socket.close()
            self.socket = None
            logger.debug(f"Publisher on {self.endpoint} closed")


class ZMQPublisherMultiprocAgent(PublisherApi):
    """Inter-process publisher: PUSH socket to the local aggregator.

    Connects lazily on first send and again whenever the socket is gone.
    """

    driver_name = "zmq_multiproc"

    def __init__(
        self,
        ipc_socket: str,
        context: Optional[zmq.Context] = None,
        propagate_values: bool = False,
        metrics_manager: Optional[MetricsManager] = None,
    ) -> None:
        super().__init__(propagate_values, metrics_manager)
        self.ipc_socket = ipc_socket
        self.endpoint = ipc_endpoint(ipc_socket)
        self.context = context or zmq.Context.instance()
        self.socket: Optional[zmq.Socket] = None

    def initialize(self) -> None:
        # Connection is made on first send
        pass

    def _connect(self) -> None:
        socket = self.context.socket(zmq.PUSH)
        socket.setsockopt(zmq.LINGER, 0)
        try:
            socket.connect(self.endpoint)
        except zmq.ZMQError as e:
            socket.close()
            raise TransportError(f"Failed to connect to {self.endpoint}: {e}") from e
        self.socket = socket
        logger.debug(f"Multiproc publisher connected to {self.endpoint}")

    def _send_frame(self, topic: str, payload: bytes) -> None:
        if self.socket is None:
            self._connect()
        try:
            self.socket.send_multipart([codec.encode_topic(topic), payload], zmq.NOBLOCK)
        except zmq.Again as e:
            # Queue full: no local reader is draining the socket
            raise TransportError(f"Send queue on {self.endpoint} is full: {e}") from e
        except zmq.ZMQError as e:
            self.close()
            raise TransportError(f"Failed to send on {self.endpoint}: {e}") from e

    def close(self) -> None:
        if self.socket is not None:
            self.socket.close()
            self.socket = None


class ZMQSubscriberAgent(SubscriberAgentBase):
    """Cross-host subscriber: SUB socket connected to every publisher."""

    driver_name = "zmq"

    def __init__(
        self,
        context: Optional[zmq.Context] = None,
        receive_timeout_ms: int = 100,
        reconnect_delay: float = 1.0,
        metrics_manager: Optional[MetricsManager] = None,
    ) -> None:
        super().__init__(receive_timeout_ms, reconnect_delay, metrics_manager)
        self.context = context or zmq.Context.instance()
        self.socket: Optional[zmq.Socket] = None

    def _connect(self) -> None:
        socket = self.context.socket(zmq.SUB)
        socket.setsockopt(zmq.LINGER, 0)
        for uri in sorted(self.uri_list):
            try:
                socket.connect(uri)
            except zmq.ZMQError as e:
                logger.warning(f"Dropping listen address {uri}: {e}")
                self.uri_list.discard(uri)
        try:
            for topic in self.topic_list:
                socket.setsockopt(zmq.SUBSCRIBE, codec.encode_topic(topic))
        except zmq.ZMQError as e:
            socket.close()
            raise TransportError(f"Failed to connect subscriber: {e}") from e
        self.socket = socket

    def _receive(self) -> Optional[Frame]:
        return _receive_frame(self.socket, self.receive_timeout_ms)

    def _close(self) -> None:
        _close_socket(self.socket)
        self.socket = None

    def _add_address(self, uri: str) -> None:
        try:
            self.socket.connect(uri)
        except zmq.ZMQError as e:
            raise TransportError(f"Failed to connect to {uri}: {e}") from e

    def _remove_address(self, uri: str) -> None:
        try:
            self.socket.disconnect(uri)
        except zmq.ZMQError as e:
            logger.warning(f"Failed to disconnect from {uri}: {e}")

    def _subscribe_topic(self, topic: str) -> None:
        self.socket.setsockopt(zmq.SUBSCRIBE, codec.encode_topic(topic))

    def _unsubscribe_topic(self, topic: str) -> None:
        self.socket.setsockopt(zmq.UNSUBSCRIBE, codec.encode_topic(topic))

    def _accepts(self, topic: Optional[str]) -> bool:
        # Socket subscriptions are prefix matches
        return topic in self.topic_list


class ZMQSubscriberMultiprocAgent(SubscriberAgentBase):
    """Inter-process subscriber: PULL socket bound on the local ipc path."""

    driver_name = "zmq_multiproc"

    def __init__(
        self,
        ipc_socket: str,
        context: Optional[zmq.Context] = None,
        receive_timeout_ms: int = 100,
        reconnect_delay: float = 1.0,
        metrics_manager: Optional[MetricsManager] = None,
    ) -> None:
        super().__init__(receive_timeout_ms, reconnect_delay, metrics_manager)
        self.ipc_socket = ipc_socket
        self.endpoint = ipc_endpoint(ipc_socket)
        self.context = context or zmq.Context.instance()
        self.socket: Optional[zmq.Socket] = None

    def _connect(self) -> None:
        directory = os.path.dirname(self.ipc_socket)
        try:
            if directory:
                os.makedirs(directory, exist_ok=True)
        except OSError as e:
            raise TransportError(f"Cannot create {directory}: {e}") from e

        socket = self.context.socket(zmq.PULL)
        socket.setsockopt(zmq.LINGER, 0)
        try:
            socket.bind(self.endpoint)
        except zmq.ZMQError as e:
            socket.close()
            raise TransportError(f"Failed to bind {self.endpoint}: {e}") from e
        self.socket = socket

    def _receive(self) -> Optional[Frame]:
        return _receive_frame(self.socket, self.receive_timeout_ms)

    def _close(self) -> None:
        _close_socket(self.socket)
        self.socket = None


class ZMQPubSub(PubSubApi):
    """Cross-host ZeroMQ driver."""

    def __init__(
        self,
        config: Optional[PubSubConfig] = None,
        metrics_manager: Optional[MetricsManager] = None,
        context: Optional[zmq.Context] = None,
    ) -> None:
        super().__init__(config, metrics_manager)
        transport = self.config.publisher_transport
        if transport not in constants.SUPPORTED_TRANSPORTS:
            raise UnsupportedTransportError(transport, constants.SUPPORTED_TRANSPORTS)
        self.context = context or zmq.Context.instance()
        self.endpoint = (
            f"{transport}://{self.config.publisher_bind_address}:"
            f"{self.config.publisher_port}"
        )

    def get_publisher(self) -> ZMQPublisherAgent:
        return ZMQPublisherAgent(
            self.endpoint,
            context=self.context,
            propagate_values=self.config.propagate_values,
            metrics_manager=self.metrics,
        )

    def get_subscriber(self) -> ZMQSubscriberAgent:
        subscriber = ZMQSubscriberAgent(
            context=self.context,
            receive_timeout_ms=self.config.receive_timeout_ms,
            metrics_manager=self.metrics,
        )
        for uri in self.config.publishers_ips:
            subscriber.register_listen_address(uri)
        return subscriber


class ZMQPubSubMultiproc(PubSubApi):
    """Inter-process ZeroMQ driver for co-located writer processes."""

    def __init__(
        self,
        config: Optional[PubSubConfig] = None,
        metrics_manager: Optional[MetricsManager] = None,
        context: Optional[zmq.Context] = None,
    ) -> None:
        super().__init__(config, metrics_manager)
        self.context = context or zmq.Context.instance()
        self.ipc_socket = self.config.publisher_multiproc_socket

    def get_publisher(self) -> ZMQPublisherMultiprocAgent:
        return ZMQPublisherMultiprocAgent(
            self.ipc_socket,
            context=self.context,
            propagate_values=self.config.propagate_values,
            metrics_manager=self.metrics,
        )

    def get_subscriber(self) -> ZMQSubscriberMultiprocAgent:
        return ZMQSubscriberMultiprocAgent(
            self.ipc_socket,
            context=self.context,
            receive_timeout_ms=self.config.receive_timeout_ms,
            metrics_manager=self.metrics,
        )
