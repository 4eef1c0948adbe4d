"""Pub/sub driver registry.

Drivers are looked up by name: first among the built-in drivers and those
registered at runtime, then among the ``eventfabric.pubsub_drivers`` entry
points of installed distributions.
"""

import logging
from importlib.metadata import entry_points
from typing import Callable, Dict, Optional

from .. import constants
from ..config.base import PubSubConfig
from ..exceptions import ConfigurationError, UnknownDriverError
from ..monitoring.metrics import MetricsManager
from .api import PubSubApi
from .redis_driver import RedisPubSub
from .zmq_driver import ZMQPubSub, ZMQPubSubMultiproc

logger = logging.getLogger(__name__)

DriverFactory = Callable[..., PubSubApi]

BUILTIN_DRIVERS: Dict[str, DriverFactory] = {
    constants.ZMQ_PUBSUB_DRIVER: ZMQPubSub,
    constants.ZMQ_PUBSUB_MULTIPROC_DRIVER: ZMQPubSubMultiproc,
    constants.REDIS_PUBSUB_DRIVER: RedisPubSub,
}


class DriverRegistry:
    """Resolve driver names to factories."""

    def __init__(
        self,
        drivers: Optional[Dict[str, DriverFactory]] = None,
        entry_point_group: Optional[str] = constants.DRIVER_ENTRY_POINT_GROUP,
    ) -> None:
        """Initialize registry.

        Args:
            drivers: Initial name to factory mapping, defaults to the built-ins
            entry_point_group: Entry point group searched for unknown names,
                None to disable plugin lookup
        """
        self._drivers = dict(BUILTIN_DRIVERS if drivers is None else drivers)
        self.entry_point_group = entry_point_group

    def register(self, name: str, factory: DriverFactory) -> None:
        self._drivers[name] = factory

    def names(self):
        return sorted(self._drivers)

    def resolve(self, name: str) -> DriverFactory:
        """Find the factory for a driver name.

        Raises:
            UnknownDriverError: If no driver is registered under name.
        """
        if not isinstance(name, str) or not name.strip():
            raise UnknownDriverError(name)

        factory = self._drivers.get(name)
        if factory is not None:
            return factory

        if self.entry_point_group:
            for entry_point in entry_points(group=self.entry_point_group):
                if entry_point.name == name:
                    try:
                        factory = entry_point.load()
                    except (ImportError, AttributeError) as e:
                        raise ConfigurationError(
                            f"Failed to load pub/sub driver {name!r}: {e}",
                            component="pubsub",
                        ) from e
                    self._drivers[name] = factory
                    logger.debug(f"Loaded pub/sub driver {name} from {entry_point.value}")
                    return factory

        raise UnknownDriverError(name)

    def create(
        self,
        name: str,
        config: Optional[PubSubConfig] = None,
        metrics_manager: Optional[MetricsManager] = None,
        **kwargs,
    ) -> PubSubApi:
        """Instantiate a driver.

        Raises:
            ConfigurationError: If the name is unknown or the driver rejects
                the configuration.
        """
        factory = self.resolve(name)
        driver = factory(config=config, metrics_manager=metrics_manager, **kwargs)
        logger.info(f"Using pub/sub driver {name}")
        return driver


default_registry = DriverRegistry()


def get_pubsub_driver(
    name: str,
    config: Optional[PubSubConfig] = None,
    metrics_manager: Optional[MetricsManager] = None,
    **kwargs,
) -> PubSubApi:
    """Instantiate a driver from the default registry."""
    return default_registry.create(name, config, metrics_manager, **kwargs)


def get_configured_driver(
    config: PubSubConfig,
    multiproc: bool = False,
    metrics_manager: Optional[MetricsManager] = None,
) -> PubSubApi:
    """Instantiate the cross-host or inter-process driver named in config."""
    name = config.pub_sub_multiproc_driver if multiproc else config.pub_sub_driver
    return get_pubsub_driver(name, config, metrics_manager)
