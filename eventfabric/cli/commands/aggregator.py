"""Aggregator command."""

import logging
import signal
import threading

import click

from ...config import Config
from ...db import get_db_driver
from ...monitoring.metrics import MetricsManager
from ...services.publisher_service import PublisherService

logger = logging.getLogger(__name__)


@click.command()
@click.option("--metrics-port", type=int, default=None, help="Expose Prometheus metrics")
@click.pass_obj
def aggregator(config: Config, metrics_port: int) -> None:
    """Run this host's publisher service until interrupted."""
    metrics = MetricsManager()
    if metrics_port:
        metrics.start_server(metrics_port)

    service = PublisherService(
        config.pubsub, get_db_driver(config.db), metrics_manager=metrics
    )
    service.initialize()
    service.start()

    stopped = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: stopped.set())
    try:
        stopped.wait()
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        service.stop()
