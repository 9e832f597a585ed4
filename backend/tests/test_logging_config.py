import logging

import pytest

from app.core.logging_config import configure_logging


@pytest.fixture()
def app_logger(monkeypatch):
    logger = logging.getLogger("app")
    previous_level = logger.level
    monkeypatch.setattr(logger, "handlers", [])
    yield logger
    logger.setLevel(previous_level)


def test_handler_added_when_nothing_is_configured(app_logger):
    root = logging.getLogger()
    saved = root.handlers[:]
    root.handlers.clear()
    try:
        configure_logging("DEBUG")
        configure_logging("DEBUG")
    finally:
        root.handlers[:] = saved

    assert app_logger.level == logging.DEBUG
    [handler] = app_logger.handlers
    assert isinstance(handler, logging.StreamHandler)


def test_existing_root_handler_is_reused(app_logger):
    root = logging.getLogger()
    handler = logging.NullHandler()
    root.addHandler(handler)
    try:
        configure_logging("WARNING")
    finally:
        root.removeHandler(handler)

    assert app_logger.level == logging.WARNING
    assert app_logger.handlers == []
