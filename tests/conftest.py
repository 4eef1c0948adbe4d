"""Shared fixtures: an in-process Redis stand-in, scripted agents and helpers."""

import queue
import socket
import threading
import time
from typing import Any, Dict, List, Optional, Set

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from eventfabric.db.memory_driver import MemoryDbDriver
from eventfabric.exceptions import TransportError
from eventfabric.monitoring.metrics import MetricsManager
from eventfabric.pubsub import codec
from eventfabric.pubsub.api import PublisherApi, SubscriberAgentBase


class FakeRedisServer:
    """Hashes and pub/sub channels shared by every FakeRedis client."""

    def __init__(self) -> None:
        self.hashes: Dict[str, Dict[bytes, bytes]] = {}
        self.subscriptions: List["FakePubSub"] = []
        self.published: List[tuple] = []
        self.down_nodes: Set[tuple] = set()
        self.client_kwargs: List[dict] = []
        self.lock = threading.Lock()

    def client_factory(self, host="127.0.0.1", port=6379, db=0, **kwargs):
        self.client_kwargs.append(kwargs)
        return FakeRedis(self, host, port)

    def publish(self, channel: str, data: bytes) -> int:
        with self.lock:
            self.published.append((channel, data))
            receivers = [p for p in self.subscriptions if channel in p.channels]
        for pubsub in receivers:
            pubsub.deliver(channel, data)
        return len(receivers)

    def drop_connections(self) -> None:
        """Break every open subscription, like a broker restart."""
        with self.lock:
            subscriptions, self.subscriptions = self.subscriptions, []
        for pubsub in subscriptions:
            pubsub.broken = True


class FakePubSub:
    def __init__(self, server: FakeRedisServer) -> None:
        self.server = server
        self.channels: Set[str] = set()
        self.messages: "queue.Queue[dict]" = queue.Queue()
        self.broken = False
        with server.lock:
            server.subscriptions.append(self)

    def deliver(self, channel: str, data: bytes) -> None:
        self.messages.put({"type": "message", "channel": channel.encode(), "data": data})

    def subscribe(self, *channels: str) -> None:
        for channel in channels:
            self.channels.add(channel)
            self.messages.put(
                {"type": "subscribe", "channel": channel.encode(), "data": len(self.channels)}
            )

    def unsubscribe(self, *channels: str) -> None:
        for channel in channels:
            self.channels.discard(channel)
            self.messages.put(
                {"type": "unsubscribe", "channel": channel.encode(), "data": len(self.channels)}
            )

    def get_message(self, timeout: float = 0.0) -> Optional[dict]:
        if self.broken:
            raise RedisConnectionError("Connection closed by server.")
        try:
            return self.messages.get(timeout=timeout)
        except queue.Empty:
            return None

    def close(self) -> None:
        with self.server.lock:
            if self in self.server.subscriptions:
                self.server.subscriptions.remove(self)


class FakeRedis:
    """The subset of redis.Redis used by the drivers."""

    def __init__(self, server: FakeRedisServer, host: str = "127.0.0.1", port: int = 6379):
        self.server = server
        self.node = (host, port)
        self.closed = False

    def _check(self) -> None:
        if self.node in self.server.down_nodes:
            raise RedisConnectionError(f"Error connecting to {self.node[0]}:{self.node[1]}")

    def ping(self) -> bool:
        self._check()
        return True

    def publish(self, channel: str, data: bytes) -> int:
        self._check()
        return self.server.publish(channel, data)

    def pubsub(self) -> FakePubSub:
        self._check()
        return FakePubSub(self.server)

    def hset(self, name: str, key: str, value: str) -> int:
        self._check()
        table = self.server.hashes.setdefault(name, {})
        created = key.encode() not in table
        table[key.encode()] = value.encode()
        return int(created)

    def hget(self, name: str, key: str) -> Optional[bytes]:
        self._check()
        return self.server.hashes.get(name, {}).get(key.encode())

    def hdel(self, name: str, key: str) -> int:
        self._check()
        return int(self.server.hashes.get(name, {}).pop(key.encode(), None) is not None)

    def hgetall(self, name: str) -> Dict[bytes, bytes]:
        self._check()
        return dict(self.server.hashes.get(name, {}))

    def close(self) -> None:
        self.closed = True


class RecordingPublisher(PublisherApi):
    """Publisher keeping every frame it is asked to send."""

    driver_name = "recording"

    def __init__(self, fail: bool = False, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.frames: List[tuple] = []
        self.fail = fail
        self.initialized = False
        self.closed = False

    def initialize(self) -> None:
        self.initialized = True

    def _send_frame(self, topic: str, payload: bytes) -> None:
        if self.fail:
            raise TransportError("Publisher is down")
        self.frames.append((topic, codec.unpack(payload)))

    def close(self) -> None:
        self.closed = True


class ScriptedSubscriberAgent(SubscriberAgentBase):
    """Subscriber whose backend is a queue of frames and errors.

    Put (topic, payload) tuples to deliver frames and exception instances to
    make the next receive fail.
    """

    driver_name = "scripted"

    def __init__(
        self, connect_failures: int = 0, bad_addresses: Optional[Set[str]] = None, **kwargs: Any
    ) -> None:
        kwargs.setdefault("receive_timeout_ms", 10)
        kwargs.setdefault("reconnect_delay", 0.01)
        super().__init__(**kwargs)
        self.script: "queue.Queue[Any]" = queue.Queue()
        self.connect_failures = connect_failures
        self.connect_calls = 0
        self.close_calls = 0
        self.live_topics: List[str] = []
        self.bad_addresses = bad_addresses or set()

    def push(self, topic: str, message: Dict[str, Any]) -> None:
        self.script.put((codec.encode_topic(topic), codec.pack(message)))

    def fail_next_receive(self, error: Optional[Exception] = None) -> None:
        self.script.put(error or TransportError("Connection reset"))

    def _connect(self) -> None:
        self.connect_calls += 1
        if self.connect_failures > 0:
            self.connect_failures -= 1
            raise TransportError("Connection refused")

    def _receive(self):
        try:
            item = self.script.get(timeout=self.receive_timeout_ms / 1000.0)
        except queue.Empty:
            return None
        if isinstance(item, Exception):
            raise item
        return item

    def _close(self) -> None:
        self.close_calls += 1

    def _subscribe_topic(self, topic: str) -> None:
        self.live_topics.append(topic)

    def _add_address(self, uri: str) -> None:
        if uri in self.bad_addresses:
            raise TransportError(f"Failed to connect to {uri}")


class CallbackRecorder:
    """Five-argument subscriber callback collecting its calls."""

    def __init__(self) -> None:
        self.calls: List[tuple] = []
        self._lock = threading.Lock()

    def __call__(self, table, key, action, value, topic) -> None:
        with self._lock:
            self.calls.append((table, key, action, value, topic))

    @property
    def actions(self) -> List[str]:
        return [call[2] for call in self.calls]


def _wait_until(predicate, timeout: float = 5.0, interval: float = 0.01) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def redis_server():
    """In-process Redis stand-in."""
    return FakeRedisServer()


@pytest.fixture
def metrics():
    """Metrics manager with a private registry."""
    return MetricsManager()


@pytest.fixture
def db():
    """Empty in-memory store."""
    return MemoryDbDriver()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def recorder():
    return CallbackRecorder()


@pytest.fixture
def recording_publisher():
    return RecordingPublisher


@pytest.fixture
def scripted_agent():
    """Factory for scripted subscribers; running ones are stopped at teardown."""
    agents = []

    def factory(**kwargs):
        agent = ScriptedSubscriberAgent(**kwargs)
        agents.append(agent)
        return agent

    yield factory
    for agent in agents:
        agent.stop()


@pytest.fixture
def wait_until():
    return _wait_until


@pytest.fixture
def free_port():
    """A TCP port nothing is listening on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]
