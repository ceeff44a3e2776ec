"""Shared pytest fixtures."""

import logging

import pytest

from rnd_matcher.app_logging import ROOT_LOGGER_NAME
from rnd_matcher.cache_gate import reset_default_gate
from rnd_matcher.config import reset_config


@pytest.fixture(autouse=True)
def _isolate_global_state(monkeypatch):
    """Give every test default config, a fresh shared gate and quiet logging."""
    monkeypatch.delenv("RND_MATCHER_CONFIG", raising=False)
    reset_config()
    reset_default_gate()
    yield
    reset_default_gate()
    reset_config()
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.handlers = [logging.NullHandler()]
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
