"""
Publisher and subscriber contracts.

A pub/sub driver is a PubSubApi manager handing out one PublisherApi and one
SubscriberApi. Publishers serialize an Update with the shared codec and put
it on the wire tagged with its topic. Subscribers run a receive loop on a
background thread and hand every decoded update to a five-argument callback:

    callback(table, key, action, value, topic)

When the backend connection is lost the subscriber reconnects and calls the
callback once with action "sync" and every other argument None. Consumers
must treat that as "cached state may be stale, reload it".

Example Usage:
    from eventfabric.pubsub import get_pubsub_driver

    driver = get_pubsub_driver("zmq_pubsub_driver", config.pubsub)

    publisher = driver.get_publisher()
    publisher.initialize()
    publisher.send(Update(table="port", key="p1", action="set"))

    subscriber = driver.get_subscriber()
    subscriber.initialize(on_update)
    subscriber.register_topic("tenant-1")
    subscriber.daemonize()
"""

import enum
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, Set, Tuple

from .. import constants
from ..config.base import PubSubConfig
from ..exceptions import EventFabricException, TransportError
from ..monitoring.metrics import MetricsManager
from . import codec
from .update import Update

logger = logging.getLogger(__name__)

UpdateCallback = Callable[
    [Optional[str], Optional[str], str, Any, Optional[str]], None
]
Frame = Tuple[bytes, bytes]

RECONNECT_DELAY = 1.0
STOP_JOIN_TIMEOUT = 5.0


class PublisherApi(ABC):
    """Publisher contract."""

    driver_name = "publisher"

    def __init__(
        self,
        propagate_values: bool = False,
        metrics_manager: Optional[MetricsManager] = None,
    ) -> None:
        """Initialize publisher.

        Args:
            propagate_values: Send update values on the wire. When off,
                only the "log" action keeps its value.
            metrics_manager: Metrics manager
        """
        self.propagate_values = propagate_values
        self.metrics = metrics_manager or MetricsManager()

    @abstractmethod
    def initialize(self) -> None:
        """Open the backend: bind, connect or pick a broker node."""

    @abstractmethod
    def _send_frame(self, topic: str, payload: bytes) -> None:
        """Transmit one packed payload tagged with a topic.

        Raises:
            TransportError: On any backend failure.
        """

    def send(self, update: Update, topic: Optional[str] = None) -> None:
        """Publish an update.

        The routing topic is ``topic`` if given, else ``update.topic``.
        If neither is set the "all" topic is written into ``update.topic``.

        Args:
            update: Update to publish
            topic: Optional topic override

        Raises:
            TransportError: If the backend fails to transmit.
        """
        if topic is None:
            if not update.topic:
                update.topic = constants.SEND_ALL_TOPIC
            topic = update.topic

        message = update.to_dict()
        message["topic"] = topic
        if not self.propagate_values and update.action != constants.ACTION_LOG:
            message["value"] = None

        self._send_frame(topic, codec.pack(message))
        self.metrics.increment_counter(
            "updates_sent", labels={"driver": self.driver_name}
        )
        logger.debug(f"Sent {update} on topic {topic}")

    def close(self) -> None:
        """Release backend resources."""


class SubscriberApi(ABC):
    """Subscriber contract."""

    @abstractmethod
    def initialize(self, callback: UpdateCallback) -> None:
        """Store the callback invoked for every received update."""

    @abstractmethod
    def register_listen_address(self, uri: str) -> None:
        """Add a publisher address to receive from."""

    @abstractmethod
    def unregister_listen_address(self, uri: str) -> None:
        """Remove a publisher address."""

    @abstractmethod
    def register_topic(self, topic: str) -> None:
        """Subscribe to a topic."""

    @abstractmethod
    def unregister_topic(self, topic: str) -> None:
        """Unsubscribe from a topic."""

    @abstractmethod
    def run(self) -> None:
        """Blocking receive loop."""

    @abstractmethod
    def daemonize(self) -> None:
        """Start the receive loop on a background thread."""

    @abstractmethod
    def stop(self) -> None:
        """Ask the receive loop to terminate."""


class SubscriberState(enum.Enum):
    """Receive loop states."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    CLOSING = "closing"


class SubscriberAgentBase(SubscriberApi):
    """Bookkeeping and the reconnecting receive loop shared by all drivers.

    Drivers implement the backend hooks (_connect, _receive, _close and the
    topic/address hooks). Every hook touching the connection runs under
    ``self._lock``, so topics can be registered from other threads while
    the loop is receiving.
    """

    driver_name = "subscriber"

    def __init__(
        self,
        receive_timeout_ms: int = 100,
        reconnect_delay: float = RECONNECT_DELAY,
        metrics_manager: Optional[MetricsManager] = None,
    ) -> None:
        """Initialize subscriber.

        Args:
            receive_timeout_ms: Longest a single receive call may block.
                Bounds how long stop() waits for the loop.
            reconnect_delay: Seconds to wait between failed connect attempts
            metrics_manager: Metrics manager
        """
        self.receive_timeout_ms = receive_timeout_ms
        self.reconnect_delay = reconnect_delay
        self.metrics = metrics_manager or MetricsManager()
        self.callback: Optional[UpdateCallback] = None
        self.uri_list: Set[str] = set()
        self.topic_list: Set[str] = {constants.SEND_ALL_TOPIC}
        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.state = SubscriberState.DISCONNECTED

    def initialize(self, callback: UpdateCallback) -> None:
        self.callback = callback

    @property
    def connected(self) -> bool:
        return self.state is SubscriberState.CONNECTED

    def register_listen_address(self, uri: str) -> None:
        with self._lock:
            if uri in self.uri_list:
                return
            if self.connected:
                self._add_address(uri)
            self.uri_list.add(uri)
        logger.debug(f"Registered listen address {uri}")

    def unregister_listen_address(self, uri: str) -> None:
        with self._lock:
            if uri not in self.uri_list:
                return
            self.uri_list.discard(uri)
            if self.connected:
                self._remove_address(uri)
        logger.debug(f"Unregistered listen address {uri}")

    def register_topic(self, topic: str) -> None:
        with self._lock:
            if topic in self.topic_list:
                return
            self.topic_list.add(topic)
            if self.connected:
                self._subscribe_topic(topic)
        logger.debug(f"Registered topic {topic}")

    def unregister_topic(self, topic: str) -> None:
        with self._lock:
            if topic not in self.topic_list:
                return
            self.topic_list.discard(topic)
            if self.connected:
                self._unsubscribe_topic(topic)
        logger.debug(f"Unregistered topic {topic}")

    # Backend hooks

    @abstractmethod
    def _connect(self) -> None:
        """Open the backend connection and apply addresses and topics.

        Raises:
            TransportError: If the connection cannot be established.
        """

    @abstractmethod
    def _receive(self) -> Optional[Frame]:
        """Wait up to receive_timeout_ms for one frame.

        Returns:
            (topic, payload), or None if nothing arrived in time.

        Raises:
            TransportError: On any backend failure.
        """

    @abstractmethod
    def _close(self) -> None:
        """Close the backend connection. Must not raise."""

    def _add_address(self, uri: str) -> None:
        """Start receiving from uri on the live connection."""

    def _remove_address(self, uri: str) -> None:
        """Stop receiving from uri on the live connection."""

    def _subscribe_topic(self, topic: str) -> None:
        """Subscribe on the live connection."""

    def _unsubscribe_topic(self, topic: str) -> None:
        """Unsubscribe on the live connection."""

    def _accepts(self, topic: Optional[str]) -> bool:
        """Whether a frame tagged with topic should reach the callback."""
        return True

    # Receive loop

    def run(self) -> None:
        """Receive frames and dispatch them until stop() is called."""
        if self.callback is None:
            raise EventFabricException(
                "Subscriber used before initialize()",
                component="pubsub",
                error_code="not_initialized",
            )

        logger.info(
            f"Starting {self.driver_name} subscriber "
            f"(addresses={sorted(self.uri_list)}, topics={sorted(self.topic_list)})"
        )
        try:
            while not self._stop_event.is_set():
                if self.state is SubscriberState.DISCONNECTED:
                    if not self._try_connect():
                        self._stop_event.wait(self.reconnect_delay)
                        continue
                try:
                    with self._lock:
                        frame = self._receive()
                    if frame is not None:
                        self._dispatch(frame)
                except TransportError as e:
                    if self._stop_event.is_set():
                        break
                    logger.warning(f"{self.driver_name} subscriber lost connection: {e}")
                    self._disconnect()
                    self._resync()
        finally:
            self.state = SubscriberState.CLOSING
            with self._lock:
                self._close()
            logger.info(f"Stopped {self.driver_name} subscriber")

    def _try_connect(self) -> bool:
        try:
            with self._lock:
                self._connect()
                self.state = SubscriberState.CONNECTED
        except TransportError as e:
            logger.warning(f"{self.driver_name} subscriber failed to connect: {e}")
            with self._lock:
                self._close()
            return False
        logger.debug(f"{self.driver_name} subscriber connected")
        return True

    def _disconnect(self) -> None:
        with self._lock:
            self._close()
            if self.state is SubscriberState.CONNECTED:
                self.state = SubscriberState.DISCONNECTED

    def _dispatch(self, frame: Frame) -> None:
        topic_data, payload = frame
        topic = codec.decode_topic(topic_data)
        if not self._accepts(topic):
            return
        update = codec.decode_update(payload)
        self._invoke(update.table, update.key, update.action, update.value, update.topic)
        self.metrics.increment_counter(
            "updates_received", labels={"driver": self.driver_name}
        )

    def _resync(self) -> None:
        self.metrics.increment_counter("resyncs", labels={"driver": self.driver_name})
        self._invoke(None, None, constants.ACTION_SYNC, None, None)

    def _invoke(
        self,
        table: Optional[str],
        key: Optional[str],
        action: str,
        value: Any,
        topic: Optional[str],
    ) -> None:
        if self._stop_event.is_set():
            return
        try:
            self.callback(table, key, action, value, topic)
        except Exception as e:
            logger.error(f"Error in subscriber callback: {e}", exc_info=True)

    def daemonize(self) -> None:
        """Run the receive loop on a daemon thread."""
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self.state = SubscriberState.DISCONNECTED
        self._thread = threading.Thread(
            target=self.run, daemon=True, name=f"{self.driver_name}-subscriber"
        )
        self._thread.start()

    def stop(self) -> None:
        """Stop the receive loop and wait for the thread to exit."""
        self._stop_event.set()
        self.state = SubscriberState.CLOSING
        thread = self._thread
        if thread and thread is not threading.current_thread():
            thread.join(timeout=STOP_JOIN_TIMEOUT)
        self._thread = None


class PubSubApi(ABC):
    """A pub/sub driver: a factory for matching publishers and subscribers."""

    def __init__(
        self,
        config: Optional[PubSubConfig] = None,
        metrics_manager: Optional[MetricsManager] = None,
    ) -> None:
        """Initialize driver.

        Args:
            config: Pub/sub configuration
            metrics_manager: Metrics manager shared by created agents

        Raises:
            ConfigurationError: If the configuration is not usable by the driver.
        """
        self.config = config or PubSubConfig()
        self.metrics = metrics_manager or MetricsManager()

    @abstractmethod
    def get_publisher(self) -> PublisherApi:
        """Create a publisher."""

    @abstractmethod
    def get_subscriber(self) -> SubscriberApi:
        """Create a subscriber."""
