import logging

from utils.logger import LOG_LEVEL_ENV_VAR, get_logger


def test_level_from_environment(monkeypatch):
    monkeypatch.setenv(LOG_LEVEL_ENV_VAR, "debug")
    logger = get_logger("tests.logger.debug")
    assert logger.level == logging.DEBUG


def test_unknown_level_falls_back_to_info(monkeypatch):
    monkeypatch.setenv(LOG_LEVEL_ENV_VAR, "chatty")
    assert get_logger("tests.logger.unknown").level == logging.INFO


def test_handler_added_once(monkeypatch):
    monkeypatch.delenv(LOG_LEVEL_ENV_VAR, raising=False)
    first = get_logger("tests.logger.once")
    second = get_logger("tests.logger.once")
    assert first is second
    assert len(second.handlers) == 1
