import logging
import os
from typing import Any, Dict, MutableMapping, Optional, Tuple

import colorlog

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL
}

DEFAULT_COLOR_LOG_FORMAT = "%(log_color)s%(asctime)s [%(name)s] %(levelname)s: %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_COLORS = {
    'DEBUG': 'cyan',
    'INFO': 'green',
    'WARNING': 'yellow',
    'ERROR': 'red',
    'CRITICAL': 'red,bg_white',
}

# Loggers that already carry our console handler
CONFIGURED_LOGGERS: Dict[str, logging.Logger] = {}


def setup_logger(name: str, log_level: str = "INFO") -> logging.Logger:
    """
    Set up a logger with colorful console output.

    Calling this again for the same name only adjusts the level; the handler
    is installed once.

    Args:
        name: The name of the logger
        log_level: The log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        A configured logger instance
    """
    level = LOG_LEVELS.get((log_level or "INFO").upper(), logging.INFO)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    if name in CONFIGURED_LOGGERS:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(colorlog.ColoredFormatter(
        DEFAULT_COLOR_LOG_FORMAT,
        datefmt=DEFAULT_DATE_FORMAT,
        log_colors=LOG_COLORS
    ))
    logger.addHandler(console_handler)
    logger.propagate = False

    CONFIGURED_LOGGERS[name] = logger
    return logger


def get_log_level() -> str:
    """Get the log level from environment variable or use default."""
    return os.environ.get("LOG_LEVEL", "INFO").upper()


def get_logger(name: str, log_level: Optional[str] = None) -> logging.Logger:
    """
    Get a logger under the ``vubly`` namespace.

    Args:
        name: Short component name, e.g. ``"pipeline"``
        log_level: Overrides ``LOG_LEVEL`` when given

    Returns:
        A configured logger instance
    """
    full_name = name if name.startswith("vubly") else f"vubly.{name}"
    return setup_logger(full_name, log_level or get_log_level())


class JobLoggerAdapter(logging.LoggerAdapter):
    """Prefixes every record with the job's session id."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        return f"[{self.extra['session_id']}] {msg}", kwargs


def get_job_logger(logger: logging.Logger, session_id: str) -> JobLoggerAdapter:
    return JobLoggerAdapter(logger, {"session_id": session_id})
