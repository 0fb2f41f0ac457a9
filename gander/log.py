"""Package-wide logger used for progress output."""

from __future__ import annotations

import sys
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, NoReturn, Optional, TextIO

__all__ = ["Logger", "NopLogger", "StdLogger", "get_logger", "nop_logger", "set_logger"]


def _render(format: str, args: tuple[Any, ...]) -> str:
    return format % args if args else format


class Logger(ABC):
    """Interface for package output."""

    @abstractmethod
    def fatalf(self, format: str, *args: Any) -> None:
        """Log a message and stop the program."""

    @abstractmethod
    def printf(self, format: str, *args: Any) -> None:
        """Log a message."""


class StdLogger(Logger):
    """Writes timestamped lines to a stream, standard error by default."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self._stream = stream

    def _write(self, message: str) -> None:
        stream = self._stream if self._stream is not None else sys.stderr
        stamp = datetime.now().strftime("%Y/%m/%d %H:%M:%S")
        if not message.endswith("\n"):
            message += "\n"
        stream.write(f"{stamp} {message}")
        stream.flush()

    def printf(self, format: str, *args: Any) -> None:
        self._write(_render(format, args))

    def fatalf(self, format: str, *args: Any) -> NoReturn:
        self._write(_render(format, args))
        raise SystemExit(1)


class NopLogger(Logger):
    """Discards everything."""

    def printf(self, format: str, *args: Any) -> None:
        return None

    def fatalf(self, format: str, *args: Any) -> None:
        return None


class _LoggerHolder:
    """Holds the logger currently used for package output."""

    def __init__(self, logger: Logger) -> None:
        self.logger = logger


_holder = _LoggerHolder(StdLogger())


def set_logger(logger: Logger) -> None:
    """Replace the logger used for package output."""
    if not isinstance(logger, Logger):
        raise TypeError(f"expected a Logger, got {type(logger).__name__}")
    _holder.logger = logger


def get_logger() -> Logger:
    """Return the logger used for package output."""
    return _holder.logger


def nop_logger() -> Logger:
    """Return a logger that discards all output."""
    return NopLogger()