"""
Table monitors.

A TableMonitor polls one table of the shared store on its own thread.
The base implementation turns row changes into updates on a publisher, for
stores that cannot notify on their own. Subclasses override _poll_once:

- StalePublisherMonitor deletes publisher records whose last activity is
  older than the configured timeout. Monitors on several hosts may race to
  delete the same row; that is harmless.
- ListenAddressMonitor keeps a subscriber connected to every publisher
  listed in the peer table.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Set

from .. import constants
from ..db.api import DbApi
from ..exceptions import NotFoundError
from ..monitoring.metrics import MetricsManager
from ..pubsub.api import PublisherApi, SubscriberApi
from ..pubsub.update import Update
from .peers import PeerRecord, sync_listen_addresses

logger = logging.getLogger(__name__)

STOP_JOIN_TIMEOUT = 5.0


class TableMonitor:
    """Poll a table periodically on a background thread."""

    def __init__(
        self,
        table: str,
        interval: float,
        db_driver: DbApi,
        publisher: Optional[PublisherApi] = None,
    ) -> None:
        """Initialize monitor.

        Args:
            table: Table to poll
            interval: Seconds between polls
            db_driver: Shared store
            publisher: Publisher receiving change updates (base behaviour only)
        """
        self.table = table
        self.interval = interval
        self.db = db_driver
        self.publisher = publisher
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self.run, daemon=True, name=f"{self.table}-monitor"
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread and thread is not threading.current_thread():
            thread.join(timeout=STOP_JOIN_TIMEOUT)
        self._thread = None

    def run(self) -> None:
        """Poll until stopped. A failing poll is logged and retried next interval."""
        logger.info(f"Monitoring table {self.table} every {self.interval}s")
        cache = None
        while not self._stop_event.wait(self.interval):
            try:
                cache = self._poll_once(cache)
            except Exception as e:
                logger.error(f"Error polling table {self.table}: {e}", exc_info=True)

    def _poll_once(self, old_cache: Any) -> Any:
        """Publish create/set/delete updates for rows changed since old_cache.

        The first poll only takes a snapshot.
        """
        new_cache = self.db.get_all_entries(self.table)
        if old_cache is None or self.publisher is None:
            return new_cache

        for key, value in new_cache.items():
            if key not in old_cache:
                self._send(key, constants.ACTION_CREATE, value)
            elif old_cache[key] != value:
                self._send(key, constants.ACTION_SET, value)
        for key in old_cache.keys() - new_cache.keys():
            self._send(key, constants.ACTION_DELETE, None)
        return new_cache

    def _send(self, key: str, action: str, value: Any) -> None:
        self.publisher.send(Update(table=self.table, key=key, action=action, value=value))


class StalePublisherMonitor(TableMonitor):
    """Delete publisher records that stopped refreshing."""

    def __init__(
        self,
        db_driver: DbApi,
        timeout: float,
        interval: Optional[float] = None,
        clock: Callable[[], float] = time.time,
        metrics_manager: Optional[MetricsManager] = None,
    ) -> None:
        """Initialize monitor.

        Args:
            db_driver: Shared store
            timeout: Seconds without activity after which a record is stale
            interval: Seconds between scans, defaults to timeout
            clock: Wall clock, must match the one writing the records
            metrics_manager: Metrics manager
        """
        super().__init__(constants.PUBLISHER_TABLE, interval or timeout, db_driver)
        self.timeout = timeout
        self._clock = clock
        self.metrics = metrics_manager or MetricsManager()

    def _poll_once(self, old_cache: Any) -> None:
        self.scan_once()
        return None

    def scan_once(self) -> int:
        """Delete every stale record.

        Returns:
            Number of records deleted
        """
        now = self._clock()
        evicted = 0
        for key, data in self.db.get_all_entries(self.table).items():
            try:
                record = PeerRecord.from_dict(data)
            except (KeyError, TypeError, ValueError):
                logger.warning(f"Ignoring malformed publisher record {key}")
                continue
            if now - record.last_activity_timestamp <= self.timeout:
                continue

            logger.info(f"Removing stale publisher {record.id} ({record.uri})")
            try:
                self.db.delete_key(self.table, key)
            except NotFoundError:
                continue
            evicted += 1
            self.metrics.increment_counter("peers_evicted")
        return evicted


class ListenAddressMonitor(TableMonitor):
    """Follow the peer table with a subscriber's listen addresses."""

    def __init__(
        self,
        db_driver: DbApi,
        subscriber: SubscriberApi,
        interval: float,
        exclude: Optional[Set[str]] = None,
    ) -> None:
        super().__init__(constants.PUBLISHER_TABLE, interval, db_driver)
        self.subscriber = subscriber
        self.exclude = exclude or set()
        self.known: Set[str] = set()

    def _poll_once(self, old_cache: Any) -> Set[str]:
        self.known = sync_listen_addresses(
            self.subscriber, self.db, self.known, self.exclude
        )
        return self.known

    def run(self) -> None:
        # Connect to already registered publishers without waiting an interval
        try:
            self._poll_once(None)
        except Exception as e:
            logger.error(f"Error polling table {self.table}: {e}", exc_info=True)
        super().run()
