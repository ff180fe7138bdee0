"""
Logging for Devotional Studio.

setup_logger() hands out a Logfire-backed logger once configure_logfire()
has succeeded, and a plain logging.Logger wrapper otherwise. Both accept
the same call shape, including `extra={...}` for structured fields.
"""
import logging
import os
from typing import Any, Dict, Optional

import logfire

from studio.utils.logfire_config import is_configured


def _format(message: str, args: tuple) -> str:
    return message % args if args else message


class LogfireLogger:
    """Wrapper to make Logfire work like standard Python logging."""

    def __init__(self, name: str):
        self.name = name

    def _emit(self, level: str, message: str, args: tuple, kwargs: Dict[str, Any], prefix: str = ""):
        text = f"[{self.name}] {prefix}{_format(message, args)}"
        attributes = dict(kwargs.get("extra") or {})
        # Logfire treats the message as a template; keep literal braces intact
        template = text.replace("{", "{{").replace("}", "}}")
        logfire.log(level, template, attributes=attributes, exc_info=bool(kwargs.get("exc_info")))

    def debug(self, message, *args, **kwargs):
        self._emit("debug", message, args, kwargs)

    def info(self, message, *args, **kwargs):
        self._emit("info", message, args, kwargs)

    def warning(self, message, *args, **kwargs):
        self._emit("warn", message, args, kwargs)

    warn = warning

    def error(self, message, *args, **kwargs):
        self._emit("error", message, args, kwargs)

    def critical(self, message, *args, **kwargs):
        self._emit("fatal", message, args, kwargs, prefix="CRITICAL: ")

    def exception(self, message, *args, **kwargs):
        kwargs.setdefault("exc_info", True)
        self._emit("error", message, args, kwargs, prefix="EXCEPTION: ")

    def setLevel(self, level):
        # Level filtering happens in Logfire
        pass


class StandardLogger:
    """Standard Python logger when Logfire is not configured."""

    def __init__(self, name: str, level: Optional[str] = None):
        self.logger = logging.getLogger(name)

        level_name = (level or os.getenv('LOG_LEVEL', 'INFO')).upper()
        log_level = getattr(logging, level_name, logging.INFO)
        self.logger.setLevel(log_level)

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setLevel(log_level)
            handler.setFormatter(logging.Formatter('[%(levelname)s %(name)s] %(message)s'))
            self.logger.addHandler(handler)

    def debug(self, message, *args, **kwargs):
        self.logger.debug(message, *args, **kwargs)

    def info(self, message, *args, **kwargs):
        self.logger.info(message, *args, **kwargs)

    def warning(self, message, *args, **kwargs):
        self.logger.warning(message, *args, **kwargs)

    warn = warning

    def error(self, message, *args, **kwargs):
        self.logger.error(message, *args, **kwargs)

    def critical(self, message, *args, **kwargs):
        self.logger.critical(message, *args, **kwargs)

    def exception(self, message, *args, **kwargs):
        self.logger.exception(message, *args, **kwargs)

    def setLevel(self, level):
        self.logger.setLevel(level)


def setup_logger(name: str, level: Optional[str] = None):
    """
    Set up a logger using Logfire or standard Python logging if not configured.

    Args:
        name: Logger name (usually __name__)
        level: Logging level (used for standard logger)

    Returns:
        LogfireLogger or StandardLogger instance
    """
    if is_configured():
        return LogfireLogger(name)
    return StandardLogger(name, level)
