"""Listen command: print updates as they arrive."""

from typing import Tuple

import click
from rich.console import Console

from ...config import Config
from ...db import get_db_driver
from ...pubsub.registry import get_configured_driver
from ...services.monitor import ListenAddressMonitor

console = Console()


@click.command()
@click.option("--topic", "topics", multiple=True, help="Extra topic to subscribe to")
@click.option(
    "--multiproc",
    is_flag=True,
    help="Bind the local inter-process socket instead of subscribing cross-host",
)
@click.option(
    "--follow-peers/--no-follow-peers",
    default=True,
    help="Connect to publishers listed in the peer table",
)
@click.pass_obj
def listen(
    config: Config, topics: Tuple[str, ...], multiproc: bool, follow_peers: bool
) -> None:
    """Subscribe and print every received update."""

    def show(table, key, action, value, topic):
        style = "bold yellow" if action == "sync" else "green"
        console.print(
            f"[{style}]{action}[/{style}] table={table} key={key} "
            f"topic={topic} value={value}"
        )

    subscriber = get_configured_driver(config.pubsub, multiproc=multiproc).get_subscriber()
    subscriber.initialize(show)
    for topic in topics:
        subscriber.register_topic(topic)

    monitor = None
    if follow_peers and not multiproc:
        monitor = ListenAddressMonitor(
            get_db_driver(config.db),
            subscriber,
            interval=config.pubsub.monitor_interval,
        )
        monitor.start()

    try:
        subscriber.run()
    except KeyboardInterrupt:
        pass
    finally:
        subscriber.stop()
        if monitor:
            monitor.stop()
