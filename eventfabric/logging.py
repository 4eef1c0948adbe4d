"""
Logging Configuration for eventfabric

Library modules only create loggers with ``logging.getLogger(__name__)``;
handlers are installed once by the process entry point through
``init_logging``.

Example Usage:
    from eventfabric.logging import init_logging

    init_logging(level="INFO")
    logger = logging.getLogger(__name__)
    logger.info("Aggregator started")
"""

import logging
import os
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def init_logging(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    rich_console: bool = True,
) -> None:
    """Initialize logging configuration.

    Args:
        level: Optional logging level (default: INFO)
        log_file: Optional path to a log file
        rich_console: Use rich formatting for console output
    """
    level = (level or "INFO").upper()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = []

    if rich_console:
        console_handler: logging.Handler = RichHandler(
            console=Console(stderr=True), show_time=True, show_path=False
        )
        console_handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(file_handler)

    # Set log level for noisy libraries
    logging.getLogger("redis").setLevel(logging.WARNING)
