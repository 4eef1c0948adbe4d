"""Peers command."""

import time

import click
from rich.console import Console
from rich.table import Table

from ... import constants
from ...config import Config
from ...db import get_db_driver

console = Console()


@click.command()
@click.pass_obj
def peers(config: Config) -> None:
    """Show the publisher liveness table."""
    entries = get_db_driver(config.db).get_all_entries(constants.PUBLISHER_TABLE)
    now = time.time()

    table = Table(title="Publishers")
    table.add_column("ID")
    table.add_column("URI")
    table.add_column("Idle (s)", justify="right")
    table.add_column("Status")

    for key, data in sorted(entries.items()):
        idle = now - float(data.get("last_activity_timestamp", 0))
        stale = idle > config.pubsub.publisher_timeout
        table.add_row(
            key,
            data.get("uri", "?"),
            f"{idle:.0f}",
            "[red]stale[/red]" if stale else "[green]alive[/green]",
        )
    console.print(table)
