"""Peer liveness records."""

import logging
import socket
import uuid
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Set

from .. import constants
from ..config.base import PubSubConfig
from ..db.api import DbApi
from ..exceptions import TransportError
from ..pubsub.api import SubscriberApi

logger = logging.getLogger(__name__)


@dataclass
class PeerRecord:
    """Liveness entry of a publishing aggregator."""

    id: str
    uri: str
    last_activity_timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PeerRecord":
        return cls(
            id=data["id"],
            uri=data["uri"],
            last_activity_timestamp=float(data["last_activity_timestamp"]),
        )


def generate_publisher_id(hostname: Optional[str] = None) -> str:
    """Stable publisher id derived from the host name."""
    return str(uuid.uuid5(uuid.NAMESPACE_DNS, hostname or socket.gethostname()))


def publisher_uri(config: PubSubConfig) -> str:
    """Address other hosts use to reach this host's publisher."""
    return f"{config.publisher_transport}://{config.local_ip}:{config.publisher_port}"


def sync_listen_addresses(
    subscriber: SubscriberApi,
    db_driver: DbApi,
    known: Set[str],
    exclude: Optional[Set[str]] = None,
) -> Set[str]:
    """Point a subscriber at every publisher in the peer table.

    Args:
        subscriber: Subscriber to update
        db_driver: Shared store holding the peer table
        known: URIs registered by a previous call
        exclude: URIs never to register, e.g. the local publisher

    Returns:
        URIs now registered
    """
    current = set()
    for key, data in db_driver.get_all_entries(constants.PUBLISHER_TABLE).items():
        try:
            current.add(PeerRecord.from_dict(data).uri)
        except (KeyError, TypeError, ValueError):
            logger.warning(f"Ignoring malformed publisher record {key}")
    if exclude:
        current -= exclude

    for uri in current - known:
        logger.info(f"Adding publisher {uri}")
        try:
            subscriber.register_listen_address(uri)
        except TransportError as e:
            logger.warning(f"Cannot listen to publisher {uri}: {e}")
            current.discard(uri)
    for uri in known - current:
        logger.info(f"Removing publisher {uri}")
        subscriber.unregister_listen_address(uri)
    return current
