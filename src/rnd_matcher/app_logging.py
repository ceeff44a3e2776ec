"""
Application logging utilities for the R&D matcher.

Library modules log through ``logging.getLogger(__name__)`` under the
``rnd_matcher`` root logger, which carries a NullHandler until an
application (or the CLI) calls ``setup_logging``.
"""

import logging
import sys
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme


# Custom theme for log levels
_LOG_THEME = Theme({
    "logging.level.debug": "dim cyan",
    "logging.level.info": "green",
    "logging.level.warning": "yellow",
    "logging.level.error": "bold red",
    "logging.level.critical": "bold white on red",
    "log.time": "dim",
    "log.message": "default",
    "log.path": "dim",
})

# Logs go to stderr so CLI JSON output on stdout stays clean
_console = Console(theme=_LOG_THEME, stderr=True)

ROOT_LOGGER_NAME = 'rnd_matcher'

_loggers: dict[str, logging.Logger] = {}


def setup_logging(
    level: str = 'INFO',
    log_format: Optional[str] = None,
    rich_tracebacks: bool = True,
    show_path: bool = False,
    show_time: bool = True,
    dev_mode: bool = False,
) -> None:
    """
    Attach a console handler to the ``rnd_matcher`` logger.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Format string for the plain handler. If None, uses default format.
        rich_tracebacks: Whether to use rich for exception tracebacks (dev mode only)
        show_path: Whether to show file path in console logs (dev mode only)
        show_time: Whether to show timestamp in console logs (dev mode only)
        dev_mode: Use a rich console handler instead of a plain stream handler

    Raises:
        ValueError: If ``level`` is not a logging level name
    """
    if log_format is None:
        log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    level_value = logging.getLevelName(level.upper())
    if not isinstance(level_value, int):
        raise ValueError(f"Unknown log level: {level}")

    if dev_mode:
        handler: logging.Handler = RichHandler(
            console=_console,
            level=level_value,
            show_time=show_time,
            show_path=show_path,
            rich_tracebacks=rich_tracebacks,
            markup=False,
        )
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(log_format))
    handler.setLevel(level_value)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level_value)
    logger.handlers.clear()
    logger.addHandler(handler)
    # Prevent propagation to root logger
    logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger under the ``rnd_matcher`` root.

    Args:
        name: Component name (e.g. 'cli'); prefixed with 'rnd_matcher.'
              unless it already is.

    Returns:
        A logging.Logger instance
    """
    if not name:
        full_name = ROOT_LOGGER_NAME
    elif name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + '.'):
        full_name = name
    else:
        full_name = f"{ROOT_LOGGER_NAME}.{name}"

    if full_name not in _loggers:
        _loggers[full_name] = logging.getLogger(full_name)

    return _loggers[full_name]


# Create root logger on module import with NullHandler
_root_logger = logging.getLogger(ROOT_LOGGER_NAME)
_root_logger.addHandler(logging.NullHandler())
