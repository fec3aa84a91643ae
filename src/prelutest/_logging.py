"""Logging setup for prelutest.

Every module obtains its logger through :func:`get_logger` so all output flows
through a single ``prelutest`` logger with one stderr handler.

Usage:
    from prelutest._logging import get_logger
    logger = get_logger(__name__)
    logger.debug("appended tensor %d", index)
"""
from __future__ import annotations

import logging
import os
import sys
from typing import Optional

_ROOT_NAME = "prelutest"

_LOG_FORMAT = "[prelutest] %(levelname)s %(name)s: %(message)s"
_LOG_FORMAT_VERBOSE = (
    "[prelutest %(asctime)s] %(levelname)s %(name)s (%(filename)s:%(lineno)d): %(message)s"
)

# DEBUG, INFO, WARNING, ERROR, CRITICAL (case-insensitive)
_ENV_LOG_LEVEL = "PRELUTEST_LOG_LEVEL"

# "1" selects the verbose format with timestamps and line numbers.
_ENV_LOG_VERBOSE = "PRELUTEST_LOG_VERBOSE"

_root_logger_configured = False


def _resolve_log_level() -> int:
    env_val = os.environ.get(_ENV_LOG_LEVEL, "").strip().upper()
    level = getattr(logging, env_val, logging.WARNING)
    return level if isinstance(level, int) else logging.WARNING


def _configure_root_logger() -> None:
    global _root_logger_configured
    if _root_logger_configured:
        return

    root = logging.getLogger(_ROOT_NAME)
    root.setLevel(_resolve_log_level())

    # Leave handlers installed by tests or the host application alone.
    if not root.handlers:
        verbose = os.environ.get(_ENV_LOG_VERBOSE, "0").strip() == "1"
        fmt = _LOG_FORMAT_VERBOSE if verbose else _LOG_FORMAT
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(fmt))
        root.addHandler(handler)

    _root_logger_configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the ``prelutest`` namespace.

    Args:
        name: Typically ``__name__`` of the calling module.
    """
    _configure_root_logger()
    return logging.getLogger(name)


def set_log_level(level: Optional[str] = None) -> None:
    """Change the package log level at runtime.

    Args:
        level: One of ``"DEBUG"``, ``"INFO"``, ``"WARNING"``, ``"ERROR"``,
            ``"CRITICAL"``. ``None`` resets to the environment default.
    """
    _configure_root_logger()
    root = logging.getLogger(_ROOT_NAME)
    if level is None:
        root.setLevel(_resolve_log_level())
    else:
        root.setLevel(getattr(logging, level.upper(), logging.WARNING))
