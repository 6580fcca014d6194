import logging

import pytest


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo setup_logging() so caplog sees package records."""
    yield
    logger = logging.getLogger("query_cache")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
