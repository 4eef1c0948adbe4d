"""Long-running services built on the pub/sub drivers."""

from .monitor import ListenAddressMonitor, StalePublisherMonitor, TableMonitor
from .peers import PeerRecord, generate_publisher_id, publisher_uri
from .publisher_service import PublisherService
from .rate_limiter import RateLimiter

__all__ = [
    "ListenAddressMonitor",
    "PeerRecord",
    "PublisherService",
    "RateLimiter",
    "StalePublisherMonitor",
    "TableMonitor",
    "generate_publisher_id",
    "publisher_uri",
]
