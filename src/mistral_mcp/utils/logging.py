"""
Logging utilities for the Mistral MCP package.
"""

import logging
from typing import Dict, Optional, Union

from rich.console import Console
from rich.logging import RichHandler


# Global logger configuration
_loggers: Dict[str, logging.Logger] = {}
_console = Console(stderr=True)
_log_level = logging.INFO
_log_handlers = [RichHandler(console=_console, rich_tracebacks=True)]


def configure_logging(
    level: Union[int, str] = logging.INFO, add_file_handler: Optional[str] = None
) -> None:
    """
    Configure the logging system.

    Args:
        level: Logging level, either numeric or a name such as "debug".
        add_file_handler: If provided, also log to this file.
    """
    global _log_level, _log_handlers

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    _log_level = level
    _log_handlers = [RichHandler(console=_console, rich_tracebacks=True)]

    if add_file_handler:
        file_handler = logging.FileHandler(add_file_handler)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
        ))
        _log_handlers.append(file_handler)

    # Update existing loggers
    for logger in _loggers.values():
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)

        for handler in _log_handlers:
            logger.addHandler(handler)

        logger.setLevel(_log_level)


class PatchedLogger(logging.Logger):
    """
    A logger that supports the 'data' parameter for structured context.
    """

    def _log(self, level, msg, args, exc_info=None, extra=None, stack_info=False,
             stacklevel=1, data=None, **kwargs):
        if data is not None:
            msg = f"{msg} {data}"

        super()._log(level, msg, args, exc_info, extra, stack_info, stacklevel)


# Register our custom logger class
logging.setLoggerClass(PatchedLogger)


class DataLoggerAdapter(logging.LoggerAdapter):
    """
    Gives a plain logging.Logger the 'data' keyword of PatchedLogger.
    """

    def process(self, msg, kwargs):
        data = kwargs.pop("data", None)
        if data is not None:
            msg = f"{msg} {data}"
        return super().process(msg, kwargs)


def with_data_support(
    logger: Union[logging.Logger, logging.LoggerAdapter],
) -> Union[logging.Logger, logging.LoggerAdapter]:
    """Return a logger whose methods accept 'data=', wrapping it if needed."""
    if isinstance(logger, (PatchedLogger, DataLoggerAdapter)):
        return logger
    return DataLoggerAdapter(logger, {})


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the specified name.

    Args:
        name: Name of the logger.

    Returns:
        Logger instance.
    """
    if name in _loggers:
        return _loggers[name]

    logger = logging.getLogger(name)
    if not isinstance(logger, PatchedLogger):
        # Created before this module was imported; rebuild it with our class.
        logger = PatchedLogger(name)
    logger.setLevel(_log_level)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    for handler in _log_handlers:
        logger.addHandler(handler)

    _loggers[name] = logger
    return logger


def get_null_logger(name: str = "mistral_mcp.null") -> logging.Logger:
    """Return a logger that accepts every call, including 'data=', and emits nothing."""
    logger = PatchedLogger(name)
    logger.addHandler(logging.NullHandler())
    logger.propagate = False
    return logger
