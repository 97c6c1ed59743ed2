"""Shared pytest fixtures."""

import logging
from pathlib import Path

import pytest

from spotfield.utils import logging_config

PROJECT_ROOT = Path(__file__).resolve().parents[1]


@pytest.fixture(scope="session")
def project_root():
    return PROJECT_ROOT


@pytest.fixture
def clean_logging():
    """Restore root logger handlers, level and context after a test."""
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    logging_config._configured = False
    logging_config.pop_context()

    yield

    for handler in list(root.handlers):
        if handler not in saved_handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in saved_handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(saved_level)
    logging.captureWarnings(False)
    logging_config._configured = False
    logging_config.pop_context()
