"""Console logging for query-cache."""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(level: str = "INFO", console: Optional[Console] = None):
    """
    Attach a rich console handler to the ``query_cache`` logger.

    Safe to call more than once; earlier handlers are replaced.

    Args:
        level: Log level name
        console: Console to write to. Defaults to stderr.
    """
    logger = logging.getLogger("query_cache")
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers.clear()

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_time=True,
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setLevel(getattr(logging, level.upper()))
    logger.addHandler(handler)
    logger.propagate = False

    # requests' connection pool is noisy at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)
