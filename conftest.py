"""Global conftest.py

This conftest is used for unit tests in ``tests/unittests/``.
"""
import logging

import pytest

from clusternet import log


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Drop handlers the code under test attached to the root logger."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)


@pytest.fixture
def reset_logging():
    log.reset_logging()
    yield
    log.reset_logging()
