from __future__ import annotations

import logging

from prelutest._logging import get_logger, set_log_level


def test_loggers_live_under_package_namespace() -> None:
    logger = get_logger("prelutest.graph.builder")
    assert logger.name == "prelutest.graph.builder"
    assert logging.getLogger("prelutest").handlers


def test_set_log_level_round_trip(monkeypatch) -> None:
    monkeypatch.setenv("PRELUTEST_LOG_LEVEL", "error")
    set_log_level("DEBUG")
    assert logging.getLogger("prelutest").level == logging.DEBUG
    set_log_level()
    assert logging.getLogger("prelutest").level == logging.ERROR
    monkeypatch.delenv("PRELUTEST_LOG_LEVEL")
    set_log_level()
    assert logging.getLogger("prelutest").level == logging.WARNING
