import logging

import pytest

from utils.logger import _resolve_level, setup_logger


@pytest.mark.parametrize(
    "env, expected",
    [
        ("debug", logging.DEBUG),
        ("WARNING", logging.WARNING),
        ("chatty", logging.INFO),
        ("BASIC_FORMAT", logging.INFO),
    ],
)
def test_level_comes_from_environment(monkeypatch, env, expected):
    monkeypatch.setenv("LOG_LEVEL", env)

    assert _resolve_level(None) == expected


def test_explicit_level_wins(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")

    assert _resolve_level(logging.ERROR) == logging.ERROR
    assert setup_logger("TEST_LOGGER_EXPLICIT", level=logging.ERROR).level == logging.ERROR
