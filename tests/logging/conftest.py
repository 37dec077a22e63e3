import logging

import pytest


@pytest.fixture(autouse=True)
def _restore_root_logger():
    logger = logging.getLogger()
    level = logger.level
    handlers = list(logger.handlers)
    try:
        yield
    finally:
        logger.handlers[:] = handlers
        logger.setLevel(level)
