"""Tests for the Redis broker driver against an in-process broker."""

import random
import time

import pytest
from redis.retry import Retry

from eventfabric.config.base import PubSubConfig
from eventfabric.exceptions import ConfigurationError, TransportError
from eventfabric.pubsub import codec
from eventfabric.pubsub.redis_driver import RedisNodeSelector, RedisPubSub, parse_host
from eventfabric.pubsub.update import Update


@pytest.fixture
def driver(redis_server, metrics):
    config = PubSubConfig(remote_db_hosts=["10.0.0.1:6379"])
    return RedisPubSub(config, metrics_manager=metrics, client_factory=redis_server.client_factory)


@pytest.fixture
def subscriber(driver, recorder, wait_until):
    subscriber = driver.get_subscriber()
    subscriber.initialize(recorder)
    yield subscriber
    subscriber.stop()


def test_parse_host():
    assert parse_host("10.0.0.1:6379") == ("10.0.0.1", 6379)
    with pytest.raises(ConfigurationError):
        parse_host("10.0.0.1")
    with pytest.raises(ConfigurationError):
        parse_host(":6379")


def test_selector_requires_hosts():
    with pytest.raises(ConfigurationError):
        RedisNodeSelector([])


def test_selector_avoids_excluded_nodes():
    selector = RedisNodeSelector(["a:1", "b:2"], rng=random.Random(0))

    for _ in range(10):
        assert selector.select(exclude=[("a", 1)]) == ("b", 2)


def test_selector_falls_back_when_everything_is_excluded():
    selector = RedisNodeSelector(["a:1"])

    assert selector.select(exclude=[("a", 1)]) == ("a", 1)


def test_publish_uses_topic_as_channel(driver, redis_server):
    publisher = driver.get_publisher()
    publisher.initialize()

    publisher.send(Update(table="port", key="p1", action="set", topic="tenant-1"))
    publisher.send(Update(table="port", key="p2", action="set"))

    channels = [channel for channel, _ in redis_server.published]
    assert channels == ["tenant-1", "all"]
    assert codec.unpack(redis_server.published[0][1])["key"] == "p1"


def test_publisher_reports_unreachable_broker(driver, redis_server):
    redis_server.down_nodes.add(("10.0.0.1", 6379))
    publisher = driver.get_publisher()

    with pytest.raises(TransportError):
        publisher.initialize()


def test_publisher_requires_initialize(driver):
    with pytest.raises(TransportError):
        driver.get_publisher().send(Update(table="port", key="p1", action="set"))


def test_subscriber_receives_registered_topics(driver, subscriber, recorder, wait_until):
    subscriber.register_topic("tenant-1")
    subscriber.daemonize()
    assert wait_until(lambda: subscriber.connected)

    publisher = driver.get_publisher()
    publisher.initialize()
    publisher.send(Update(table="port", key="other", action="set", topic="tenant-2"))
    publisher.send(Update(table="port", key="mine", action="set", topic="tenant-1"))
    publisher.send(Update(table="port", key="everyone", action="delete"))

    assert wait_until(lambda: len(recorder.calls) == 2)
    assert recorder.calls == [
        ("port", "mine", "set", None, "tenant-1"),
        ("port", "everyone", "delete", None, "all"),
    ]


def test_topic_registered_while_running(driver, subscriber, recorder, wait_until):
    subscriber.daemonize()
    assert wait_until(lambda: subscriber.connected)

    subscriber.register_topic("late")
    publisher = driver.get_publisher()
    publisher.initialize()
    publisher.send(Update(table="port", key="p1", action="set", topic="late"))

    assert wait_until(lambda: len(recorder.calls) == 1)


def test_broker_failure_resyncs_and_recovers(driver, subscriber, redis_server, recorder, wait_until):
    subscriber.daemonize()
    assert wait_until(lambda: subscriber.connected)

    redis_server.drop_connections()

    assert wait_until(lambda: recorder.actions == ["sync"])
    assert wait_until(lambda: subscriber.connected and redis_server.subscriptions)

    publisher = driver.get_publisher()
    publisher.initialize()
    publisher.send(Update(table="port", key="p1", action="set"))

    assert wait_until(lambda: recorder.actions == ["sync", "set"])


def test_subscriber_retries_unreachable_broker(driver, subscriber, redis_server, recorder, wait_until):
    subscriber.reconnect_delay = 0.01
    redis_server.down_nodes.add(("10.0.0.1", 6379))
    subscriber.daemonize()

    time.sleep(0.1)
    assert not subscriber.connected
    redis_server.down_nodes.clear()

    assert wait_until(lambda: subscriber.connected)
    assert recorder.calls == []


def test_subscriber_client_does_not_retry(driver, subscriber, redis_server, wait_until):
    subscriber.daemonize()
    assert wait_until(lambda: subscriber.connected)

    kwargs = redis_server.client_kwargs[-1]
    assert isinstance(kwargs["retry"], Retry)
    assert kwargs["retry"]._retries == 0
    assert kwargs["retry_on_error"] == []
