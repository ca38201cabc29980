"""Logging for slipscan.

Every module logs through ``get_logger(__name__)``; records go to stderr
under the ``slipscan`` logger namespace.

Environment variables:
    SLIPSCAN_LOG_LEVEL: DEBUG, INFO, WARNING or ERROR. Default: INFO
"""

import logging
import os
import sys

DEFAULT_LOG_LEVEL = logging.INFO

LOG_NAMESPACE = "slipscan"
LOG_FORMAT = "%(levelname)s [%(name)s] %(message)s"
# Debug output also names the source line.
LOG_FORMAT_DEBUG = "%(levelname)s [%(name)s:%(lineno)d] %(message)s"

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}

_logging_configured = False


def _level_from_env() -> int:
    env_level = os.environ.get("SLIPSCAN_LOG_LEVEL", "").upper()
    return _LEVELS.get(env_level, DEFAULT_LOG_LEVEL)


def _formatter_for(level: int) -> logging.Formatter:
    return logging.Formatter(LOG_FORMAT_DEBUG if level == logging.DEBUG else LOG_FORMAT)


def configure_logging(level: int | None = None) -> None:
    """Attach a stderr handler to the slipscan namespace. Later calls are no-ops.

    Args:
        level: Log level; None reads SLIPSCAN_LOG_LEVEL.
    """
    global _logging_configured

    if _logging_configured:
        return

    if level is None:
        level = _level_from_env()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_formatter_for(level))

    namespace_logger = logging.getLogger(LOG_NAMESPACE)
    namespace_logger.setLevel(level)
    namespace_logger.addHandler(handler)
    namespace_logger.propagate = False

    _logging_configured = True


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a module name, nested under the slipscan namespace.

    ``__name__`` of a slipscan module is already namespaced and is used as-is.
    """
    configure_logging()

    if name == LOG_NAMESPACE or name.startswith(f"{LOG_NAMESPACE}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOG_NAMESPACE}.{name}")


def set_log_level(level: int) -> None:
    """Switch the namespace level (and handler format) at runtime, e.g. for ``-v``."""
    namespace_logger = logging.getLogger(LOG_NAMESPACE)
    namespace_logger.setLevel(level)

    for handler in namespace_logger.handlers:
        handler.setFormatter(_formatter_for(level))
