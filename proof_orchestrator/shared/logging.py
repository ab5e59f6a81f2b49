"""
Logging for the proof orchestrator.

One console handler lives on the package logger ("proof_orchestrator");
module loggers are its children and propagate to it, so each record is
written once. The level comes from PO_LOG_LEVEL and can be overridden at
runtime with set_log_level (the CLI's --log-level).
"""

import logging
import os
from typing import Optional, Union

ROOT_LOGGER_NAME = "proof_orchestrator"

_DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _resolve_level(level: Union[str, int, None]) -> int:
    if isinstance(level, int):
        return level
    name = (level or "INFO").upper()
    return getattr(logging, name, logging.INFO)


def _root_logger() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_DEFAULT_FORMAT))
        root.addHandler(handler)
        root.setLevel(_resolve_level(os.getenv("PO_LOG_LEVEL")))
    return root


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get the package logger, or a child of it for module names.

    Names outside the package are nested under it so they share the handler.
    """
    root = _root_logger()
    if not name or name == ROOT_LOGGER_NAME:
        return root
    if not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def set_log_level(level: Union[str, int]) -> None:
    """Override the package log level (e.g. "DEBUG" or logging.WARNING)."""
    _root_logger().setLevel(_resolve_level(level))
