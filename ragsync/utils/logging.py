# -*- coding: utf-8 -*-
"""
SimpleLogger: tiny logging facade for ragsync.

Goal:
- Keep the call sites trivial: SimpleLogger.info/debug/warning/error.
- Route everything through Python's 'logging' under the "ragsync" logger so
  host applications can attach their own handlers or silence us.
- Install one stdout handler with the project line format the first time a
  message is emitted, unless the application configured the logger already.
"""

from __future__ import annotations

import logging
import sys
from typing import ClassVar, Optional


class _PrefixFormatter(logging.Formatter):
    """Formats records as '<prefix> | LEVEL | HH:MM:SS | message'."""

    _LEVELS = {"WARNING": "WARN", "CRITICAL": "CRIT"}

    def format(self, record: logging.LogRecord) -> str:
        level = self._LEVELS.get(record.levelname, record.levelname)
        now = self.formatTime(record, "%H:%M:%S")
        return f"{SimpleLogger._prefix} | {level:5s} | {now} | {record.getMessage()}"


class SimpleLogger:
    """
    Very small logging helper.

    Usage:
        SimpleLogger.info("message")
        SimpleLogger.debug("details")
    """

    _enabled: ClassVar[bool] = True
    _prefix: ClassVar[str] = "ragsync"
    _logger: ClassVar[logging.Logger] = logging.getLogger("ragsync")
    _configured: ClassVar[bool] = False

    @classmethod
    def _ensure_handler(cls) -> None:
        if cls._configured:
            return
        cls._configured = True
        if cls._logger.handlers:
            return
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(_PrefixFormatter())
        cls._logger.addHandler(handler)
        cls._logger.setLevel(logging.INFO)
        cls._logger.propagate = True

    @classmethod
    def _log(cls, level: int, msg: str, exc: Optional[BaseException] = None) -> None:
        if not cls._enabled:
            return
        cls._ensure_handler()
        cls._logger.log(level, msg, exc_info=exc)

    @classmethod
    def debug(cls, msg: str) -> None:
        cls._log(logging.DEBUG, msg)

    @classmethod
    def info(cls, msg: str) -> None:
        cls._log(logging.INFO, msg)

    @classmethod
    def warning(cls, msg: str) -> None:
        cls._log(logging.WARNING, msg)

    @classmethod
    def error(cls, msg: str, exc: Optional[BaseException] = None) -> None:
        cls._log(logging.ERROR, msg, exc)

    @classmethod
    def set_enabled(cls, enabled: bool) -> None:
        cls._enabled = enabled

    @classmethod
    def set_prefix(cls, prefix: str) -> None:
        cls._prefix = prefix

    @classmethod
    def set_level(cls, level: int | str) -> None:
        cls._ensure_handler()
        cls._logger.setLevel(level)
