"""
Shared helper tests.
"""

import logging

import pytest

from shared import format_elapsed, setup_logger


@pytest.mark.parametrize("seconds, text", [
    (0, "0:00"),
    (9, "0:09"),
    (61, "1:01"),
    (600, "10:00"),
    (-5, "0:00"),
])
def test_format_elapsed(seconds, text):
    assert format_elapsed(seconds) == text


def test_setup_logger_is_idempotent():
    logger = setup_logger("physiotrack.test", level=logging.DEBUG)
    handlers = list(logger.handlers)
    again = setup_logger("physiotrack.test", level=logging.DEBUG)

    assert again is logger
    assert again.handlers == handlers
    assert logger.level == logging.DEBUG
