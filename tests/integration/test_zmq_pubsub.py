"""Integration tests for the ZeroMQ drivers over real sockets."""

import time

import pytest

from eventfabric.config.base import PubSubConfig
from eventfabric.exceptions import ConfigurationError, TransportError, UnsupportedTransportError
from eventfabric.pubsub.registry import get_pubsub_driver
from eventfabric.pubsub.update import Update
from eventfabric.pubsub.zmq_driver import ZMQPubSub, ZMQPubSubMultiproc


@pytest.fixture
def zmq_config(free_port):
    return PubSubConfig(publisher_bind_address="127.0.0.1", publisher_port=free_port)


@pytest.fixture
def zmq_pair(zmq_config, recorder, wait_until):
    """Bound publisher and a running subscriber connected to it."""
    driver = ZMQPubSub(zmq_config)
    publisher = driver.get_publisher()
    publisher.initialize()

    subscriber = driver.get_subscriber()
    subscriber.register_listen_address(f"tcp://127.0.0.1:{zmq_config.publisher_port}")
    subscriber.initialize(recorder)
    subscriber.daemonize()
    assert wait_until(lambda: subscriber.connected)

    yield publisher, subscriber
    subscriber.stop()
    publisher.close()


def _send_until_received(publisher, recorder, wait_until, topic="all"):
    """Repeat a warm-up update until the subscriber has joined."""
    deadline = time.monotonic() + 10
    while time.monotonic() < deadline:
        publisher.send(Update(table="warmup", key="p", action="set", topic=topic))
        if wait_until(lambda: recorder.calls, timeout=0.2):
            # Drain late warm-up updates
            time.sleep(0.3)
            recorder.calls.clear()
            return
    pytest.fail("Subscriber never joined")


def test_rejects_unsupported_transport():
    with pytest.raises(UnsupportedTransportError):
        ZMQPubSub(PubSubConfig(publisher_transport="udp"))


def test_registry_reports_bad_transport_as_configuration_error():
    with pytest.raises(ConfigurationError):
        get_pubsub_driver("zmq_pubsub_driver", PubSubConfig(publisher_transport="ipc"))


def test_endpoint_from_config(zmq_config):
    driver = ZMQPubSub(zmq_config)

    assert driver.endpoint == f"tcp://127.0.0.1:{zmq_config.publisher_port}"


def test_subscriber_connects_to_configured_publishers():
    config = PubSubConfig(publishers_ips=["tcp://10.0.0.1:8866", "tcp://10.0.0.2:8866"])

    subscriber = ZMQPubSub(config).get_subscriber()

    assert subscriber.uri_list == {"tcp://10.0.0.1:8866", "tcp://10.0.0.2:8866"}


def test_update_reaches_subscriber(zmq_pair, recorder, wait_until):
    publisher, _ = zmq_pair
    _send_until_received(publisher, recorder, wait_until)

    publisher.send(Update(table="port", key="p1", action="set", topic="all", priority=5))

    assert wait_until(lambda: len(recorder.calls) == 1)
    assert recorder.calls[0] == ("port", "p1", "set", None, "all")


def test_subscriber_only_receives_its_topics(zmq_pair, recorder, wait_until):
    publisher, subscriber = zmq_pair
    subscriber.register_topic("tenant-1")
    _send_until_received(publisher, recorder, wait_until, topic="tenant-1")

    publisher.send(Update(table="port", key="other", action="set", topic="tenant-2"))
    publisher.send(Update(table="port", key="prefix", action="set", topic="tenant-10"))
    publisher.send(Update(table="port", key="mine", action="set", topic="tenant-1"))

    assert wait_until(lambda: len(recorder.calls) >= 1)
    time.sleep(0.2)
    assert [call[1] for call in recorder.calls] == ["mine"]


def test_unregistered_topic_stops_delivery(zmq_pair, recorder, wait_until):
    publisher, subscriber = zmq_pair
    subscriber.register_topic("tenant-1")
    _send_until_received(publisher, recorder, wait_until, topic="tenant-1")

    subscriber.unregister_topic("tenant-1")
    publisher.send(Update(table="port", key="gone", action="set", topic="tenant-1"))
    publisher.send(Update(table="port", key="still", action="set", topic="all"))

    assert wait_until(lambda: len(recorder.calls) >= 1)
    time.sleep(0.2)
    assert [call[1] for call in recorder.calls] == ["still"]


def test_multiproc_delivery(tmp_path, recorder, wait_until):
    config = PubSubConfig(publisher_multiproc_socket=str(tmp_path / "ipc" / "pub"))
    driver = ZMQPubSubMultiproc(config)

    subscriber = driver.get_subscriber()
    subscriber.initialize(recorder)
    subscriber.daemonize()
    assert wait_until(lambda: subscriber.connected)

    publisher = driver.get_publisher()
    publisher.initialize()
    try:
        publisher.send(Update(table="port", key="p1", action="create", topic="tenant-1"))
        publisher.send(Update(table="port", key="p2", action="delete"))

        assert wait_until(lambda: len(recorder.calls) == 2)
        assert recorder.calls[0] == ("port", "p1", "create", None, "tenant-1")
        assert recorder.calls[1] == ("port", "p2", "delete", None, "all")
    finally:
        publisher.close()
        subscriber.stop()

    assert (tmp_path / "ipc").is_dir()


def test_multiproc_send_without_reader_fails_fast(tmp_path):
    config = PubSubConfig(publisher_multiproc_socket=str(tmp_path / "nobody"))
    publisher = ZMQPubSubMultiproc(config).get_publisher()
    publisher.initialize()

    started = time.monotonic()
    try:
        with pytest.raises(TransportError):
            # Outgrows the socket's high-water mark
            for i in range(5000):
                publisher.send(Update(table="port", key=f"p{i}", action="set"))
    finally:
        publisher.close()

    assert time.monotonic() - started < 5


def test_bad_listen_address_rejected_while_connected(zmq_pair):
    _, subscriber = zmq_pair
    before = set(subscriber.uri_list)

    with pytest.raises(TransportError):
        subscriber.register_listen_address("bogus://127.0.0.1:1")

    assert subscriber.uri_list == before
    assert subscriber.connected


def test_bad_listen_address_dropped_on_connect(zmq_config, recorder, wait_until):
    good = f"tcp://127.0.0.1:{zmq_config.publisher_port}"
    subscriber = ZMQPubSub(zmq_config).get_subscriber()
    subscriber.register_listen_address("bogus://127.0.0.1:1")
    subscriber.register_listen_address(good)
    subscriber.initialize(recorder)
    subscriber.daemonize()
    try:
        assert wait_until(lambda: subscriber.connected)
        assert subscriber.uri_list == {good}
    finally:
        subscriber.stop()
