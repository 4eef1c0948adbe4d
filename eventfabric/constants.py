"""Well-known names shared by drivers and services."""

# Topics
SEND_ALL_TOPIC = "all"

# Actions
ACTION_CREATE = "create"
ACTION_SET = "set"
ACTION_DELETE = "delete"
ACTION_LOG = "log"
ACTION_SYNC = "sync"

DATA_ACTIONS = (ACTION_CREATE, ACTION_SET, ACTION_DELETE)
CONTROL_ACTIONS = (ACTION_LOG, ACTION_SYNC)
ALL_ACTIONS = DATA_ACTIONS + CONTROL_ACTIONS

# Priorities (lower value = higher precedence)
PRIORITY_HIGHEST = 1
PRIORITY_DEFAULT = 5
PRIORITY_LOWEST = 9

# Peer liveness table
PUBLISHER_TABLE = "publisher"

# Driver names
ZMQ_PUBSUB_DRIVER = "zmq_pubsub_driver"
ZMQ_PUBSUB_MULTIPROC_DRIVER = "zmq_pubsub_multiproc_driver"
REDIS_PUBSUB_DRIVER = "redis_db_pubsub_driver"

DRIVER_ENTRY_POINT_GROUP = "eventfabric.pubsub_drivers"

# Direct-socket defaults
DEFAULT_PUBLISHER_TRANSPORT = "tcp"
DEFAULT_PUBLISHER_BIND_ADDRESS = "*"
DEFAULT_PUBLISHER_PORT = 8866
DEFAULT_MULTIPROC_SOCKET = "/var/run/zmq_pubsub/zmq-publisher-socket"
SUPPORTED_TRANSPORTS = frozenset(["tcp", "epgm"])

# Broker defaults
DEFAULT_REDIS_PORT = 6379

# Liveness defaults (seconds)
DEFAULT_PUBLISHER_TIMEOUT = 300
DEFAULT_RATE_LIMIT_COUNT = 1
DEFAULT_RATE_LIMIT_TIMEOUT = 180
