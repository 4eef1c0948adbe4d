"""Command line interface package."""

from typing import Optional

import click
from dotenv import load_dotenv

from ..config import get_config
from ..logging import init_logging
from .commands.aggregator import aggregator
from .commands.listen import listen
from .commands.peers import peers
from .commands.publish import publish

# Load environment variables
load_dotenv()


@click.group()
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory containing eventfabric.yaml",
)
@click.option("--log-level", default=None, help="Override the configured log level")
@click.pass_context
def cli(ctx: click.Context, config_dir: Optional[str], log_level: Optional[str]) -> None:
    """eventfabric update distribution"""
    config = get_config(config_dir=config_dir)
    init_logging(level=log_level or config.logging.level, log_file=config.logging.file)
    ctx.obj = config


# Register commands
cli.add_command(aggregator)
cli.add_command(listen)
cli.add_command(peers)
cli.add_command(publish)

__all__ = ["cli"]
