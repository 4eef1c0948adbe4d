"""
Main Entry Point for eventfabric

Example Usage:
    $ python -m eventfabric aggregator
    $ python -m eventfabric listen --topic tenant-1
    $ python -m eventfabric publish port p1 set --priority 3
    $ python -m eventfabric peers
"""

import sys
from typing import Optional, Sequence

import click

from .cli import cli


def main(args: Optional[Sequence[str]] = None) -> int:
    """Main entry point.

    Args:
        args: Command line arguments.
            Defaults to sys.argv[1:].

    Returns:
        Exit code.
    """
    try:
        cli(args=args, standalone_mode=False)
        return 0

    except click.exceptions.Abort:
        return 1
    except click.ClickException as e:
        e.show()
        return e.exit_code
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
