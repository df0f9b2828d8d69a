"""Logging utilities for the WeChat Official Account client.

Library modules only ask for named loggers; handlers are installed by
:func:`setup_logging`, which applications (and the CLI) call explicitly.
"""

from __future__ import annotations

import logging
from contextlib import suppress
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from .config import LoggingConfig

LOGGER_NAMESPACE = "weixin_mp"

# Named loggers handed out by get_logger
_loggers: dict[str, logging.Logger] = {}

# Log output goes to stderr so command output on stdout stays clean
console = Console(stderr=True)


def _detach_handlers(target: logging.Logger) -> None:
    for handler in list(target.handlers):
        with suppress(Exception):
            handler.flush()
            handler.close()
        target.removeHandler(handler)


def _rich_handler(level: int) -> logging.Handler:
    handler = RichHandler(
        console=console,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    handler.setLevel(level)
    return handler


def _rotating_file_handler(config: LoggingConfig, level: int) -> logging.Handler:
    path = Path(config.log_file or "")
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        path,
        maxBytes=config.max_bytes,
        backupCount=config.backup_count,
        encoding="utf-8",
        delay=True,
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(config.format))
    return handler


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Install console (and optional file) handlers on the ``weixin_mp`` logger.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        config: LoggingConfig instance. If None, uses defaults.
    """
    config = config or LoggingConfig()
    level = logging.getLevelName(config.level)

    package_logger = logging.getLogger(LOGGER_NAMESPACE)
    _detach_handlers(package_logger)
    package_logger.setLevel(level)
    package_logger.addHandler(_rich_handler(level))
    if config.log_file:
        package_logger.addHandler(_rotating_file_handler(config, level))

    get_logger("setup").debug(
        "Logging configured: level=%s, file=%s", config.level, config.log_file or "-"
    )


def get_logger(name: str) -> logging.Logger:
    """Get or create a logger below the ``weixin_mp`` namespace.

    Args:
        name: Logger name (typically the module's role, e.g. ``"api.auth"``)

    Returns:
        Logger instance
    """
    logger = _loggers.get(name)
    if logger is None:
        logger = _loggers[name] = logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")
    return logger
