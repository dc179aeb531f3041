"""
Logging setup for the CLI and embedding applications.

Library modules only call ``logging.getLogger(__name__)``; handlers are
attached once by whoever owns the process.
"""

import logging
import sys
from pathlib import Path

from wellness_log.utils.exceptions import ConfigurationError
from wellness_log.utils.parameters import LoggingConfig


def _resolve_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    if not isinstance(level, int):
        raise ConfigurationError(f"Unknown logging level: {name}")
    return level


def _attach(logger: logging.Logger, handler: logging.Handler, level: int, fmt: str) -> None:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt))
    logger.addHandler(handler)


def setup_logging(config: LoggingConfig, logger_name: str | None = None) -> logging.Logger:
    """
    Configure a logger from the logging section of the configuration.

    Existing handlers are replaced, so calling this again (once per CLI
    command) never duplicates output. Console output goes to stderr, leaving
    stdout to command results.

    Args:
        config: Logging configuration.
        logger_name: Logger to configure; None configures the root logger.

    Returns:
        The configured logger.

    Raises:
        ConfigurationError: If the configured level is not a logging level name.
    """
    level = _resolve_level(config.level)

    logger = logging.getLogger(logger_name)
    logger.setLevel(level)
    logger.handlers.clear()

    if config.console:
        _attach(logger, logging.StreamHandler(sys.stderr), level, config.format)

    if config.file:
        log_file = Path(config.file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        _attach(logger, logging.FileHandler(log_file, encoding="utf-8"), level, config.format)

    return logger
