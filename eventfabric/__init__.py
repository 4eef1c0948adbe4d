"""
eventfabric - update distribution between writer and reader nodes

Writers publish small Update records (table, key, action, topic) describing
changes to a shared store; readers subscribe by topic and reload what
changed. Two transports are available behind the same contract: direct
ZeroMQ sockets and a Redis broker. A per-host aggregator service funnels the
updates of co-located writer processes into one outbound stream and keeps a
liveness record for the host in the shared store.

Version: 1.0.0
License: MIT
"""

import logging
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("eventfabric")
except PackageNotFoundError:
    __version__ = "0.0.0"

logger = logging.getLogger(__name__)

__all__ = ["__version__"]
