"""
Publisher Service (per-host aggregator)

Co-located writer processes push updates to this service over the
inter-process driver. The service queues them by priority, republishes each
on the cross-host driver and keeps this host's row in the publisher table
fresh, so that readers know where to connect and stale hosts get evicted.

Threads:
    - the inter-process subscriber's receive loop fills the queue
    - the forward loop (run) drains it
    - the StalePublisherMonitor scans the publisher table

They share nothing but the queue and the store.

Example Usage:
    from eventfabric.config import get_config
    from eventfabric.db import get_db_driver
    from eventfabric.services.publisher_service import PublisherService

    config = get_config()
    service = PublisherService(config.pubsub, get_db_driver(config.db))
    service.initialize()
    service.start()
"""

import logging
import queue
import threading
import time
from typing import Any, Callable, Optional

from .. import constants
from ..config.base import PubSubConfig
from ..db.api import DbApi
from ..exceptions import NotFoundError
from ..monitoring.metrics import MetricsManager
from ..pubsub.api import PublisherApi, SubscriberApi
from ..pubsub.registry import get_configured_driver
from ..pubsub.update import Update
from .monitor import StalePublisherMonitor
from .peers import PeerRecord, generate_publisher_id, publisher_uri
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

QUEUE_POLL_TIMEOUT = 0.5
STOP_JOIN_TIMEOUT = 5.0


class PublisherService:
    """Fan in local updates and fan them out to other hosts."""

    def __init__(
        self,
        config: PubSubConfig,
        db_driver: DbApi,
        subscriber: Optional[SubscriberApi] = None,
        publisher: Optional[PublisherApi] = None,
        publisher_id: Optional[str] = None,
        metrics_manager: Optional[MetricsManager] = None,
        clock: Callable[[], float] = time.time,
        rate_limiter: Optional[RateLimiter] = None,
    ) -> None:
        """Initialize service.

        Args:
            config: Pub/sub configuration
            db_driver: Shared store holding the publisher table
            subscriber: Inter-process subscriber, built from config if omitted
            publisher: Cross-host publisher, built from config if omitted
            publisher_id: Row id in the publisher table, derived from the
                host name if omitted
            metrics_manager: Metrics manager
            clock: Wall clock used for liveness timestamps
            rate_limiter: Limits liveness refreshes, built from config if omitted

        Raises:
            ConfigurationError: If a configured driver is unknown or invalid.
        """
        self.config = config
        self.db = db_driver
        self.metrics = metrics_manager or MetricsManager()
        self._clock = clock

        self.subscriber = subscriber or get_configured_driver(
            config, multiproc=True, metrics_manager=self.metrics
        ).get_subscriber()
        self.publisher = publisher or get_configured_driver(
            config, metrics_manager=self.metrics
        ).get_publisher()

        self.id = publisher_id or generate_publisher_id()
        self.uri = publisher_uri(config)
        self._queue: "queue.PriorityQueue[Update]" = queue.PriorityQueue()
        self._rate_limiter = rate_limiter or RateLimiter(
            config.publisher_rate_limit_count,
            config.publisher_rate_limit_timeout,
        )
        self.monitor = StalePublisherMonitor(
            db_driver,
            config.publisher_timeout,
            interval=config.monitor_interval,
            clock=clock,
            metrics_manager=self.metrics,
        )
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def initialize(self) -> None:
        """Open the publisher and register this host.

        Raises:
            TransportError: If the publisher cannot be opened.
        """
        self.subscriber.initialize(self._append_event_to_queue)
        self.publisher.initialize()
        self._register_as_publisher()

    def start(self) -> None:
        """Start the subscriber, the monitor and the forward loop threads."""
        self._stop_event.clear()
        self.subscriber.daemonize()
        self.monitor.start()
        self._thread = threading.Thread(
            target=self.run, daemon=True, name="publisher-service"
        )
        self._thread.start()
        logger.info(f"Publisher service {self.id} started on {self.uri}")

    def _append_event_to_queue(
        self,
        table: Optional[str],
        key: Optional[str],
        action: str,
        value: Any,
        topic: Optional[str],
    ) -> None:
        self._queue.put_nowait(
            Update(table=table, key=key, action=action, value=value, topic=topic)
        )

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def run(self) -> None:
        """Forward queued updates until stop() is called."""
        while not self._stop_event.is_set():
            try:
                update = self._queue.get(timeout=QUEUE_POLL_TIMEOUT)
            except queue.Empty:
                continue
            self.process_update(update)

    def process_update(self, update: Update) -> None:
        """Forward one update. Never raises."""
        try:
            self.publisher.send(update)
            if update.table != constants.PUBLISHER_TABLE:
                self._update_timestamp_in_db()
        except Exception as e:
            self.metrics.increment_counter("forward_errors")
            logger.error(f"Failed to forward {update}: {e}", exc_info=True)

    def _update_timestamp_in_db(self) -> None:
        if not self._rate_limiter.allow():
            return
        try:
            data = self.db.get_key(constants.PUBLISHER_TABLE, self.id)
        except NotFoundError:
            logger.info(f"Publisher record {self.id} missing, registering again")
            self._register_as_publisher()
            return
        data["last_activity_timestamp"] = self._clock()
        self.db.set_key(constants.PUBLISHER_TABLE, self.id, data)

    def _register_as_publisher(self) -> None:
        record = PeerRecord(
            id=self.id, uri=self.uri, last_activity_timestamp=self._clock()
        )
        self.db.create_key(constants.PUBLISHER_TABLE, self.id, record.to_dict())
        logger.debug(f"Registered publisher {self.id} at {self.uri}")

    def stop(self) -> None:
        """Stop all threads, close the publisher and remove this host's record."""
        self._stop_event.set()
        self.subscriber.stop()
        self.monitor.stop()
        thread = self._thread
        if thread and thread is not threading.current_thread():
            thread.join(timeout=STOP_JOIN_TIMEOUT)
        self._thread = None
        self.publisher.close()
        self.db.delete_key(constants.PUBLISHER_TABLE, self.id)
        logger.info(f"Publisher service {self.id} stopped")
