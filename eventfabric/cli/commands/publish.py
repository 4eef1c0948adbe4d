"""Publish command."""

import json
import sys
import time
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape

from ... import constants
from ...config import Config
from ...exceptions import EventFabricException
from ...pubsub.registry import get_configured_driver
from ...pubsub.update import Update

console = Console()

# PUB sockets drop messages sent before subscribers finish connecting
SLOW_JOINER_DELAY = 0.5


@click.command()
@click.argument("table")
@click.argument("key")
@click.argument("action", type=click.Choice(constants.ALL_ACTIONS))
@click.option("--value", default=None, help="JSON encoded value")
@click.option("--topic", default=None, help="Routing topic")
@click.option("--priority", type=int, default=constants.PRIORITY_DEFAULT)
@click.option(
    "--multiproc",
    is_flag=True,
    help="Send through the local aggregator instead of publishing directly",
)
@click.pass_obj
def publish(
    config: Config,
    table: str,
    key: str,
    action: str,
    value: Optional[str],
    topic: Optional[str],
    priority: int,
    multiproc: bool,
) -> None:
    """Send a single update."""
    try:
        update = Update(
            table=table,
            key=key,
            action=action,
            value=json.loads(value) if value else None,
            topic=topic,
            priority=priority,
        )
        publisher = get_configured_driver(config.pubsub, multiproc=multiproc).get_publisher()
        publisher.initialize()
        if not multiproc:
            time.sleep(SLOW_JOINER_DELAY)
        publisher.send(update)
        # Let the socket flush before closing
        time.sleep(0.1)
        publisher.close()
    except (EventFabricException, ValueError) as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        sys.exit(1)

    console.print(f"Sent {update}")
