"""
Logger capability accepted by every component.

Components never write to a global sink chosen at import time: the host
passes a logger at construction, and each component falls back to its
standard library module logger when none is given. Any object with the
leveled methods below qualifies, ``logging.Logger`` and
``logging.LoggerAdapter`` included.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol


class LoggerLike(Protocol):
    """Protocol for leveled, %-style log sinks."""

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None: ...

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None: ...

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None: ...

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None: ...

    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None: ...


def resolve_logger(logger: LoggerLike | None, name: str) -> LoggerLike:
    """
    Pick the injected logger, or the module logger for ``name``.

    Args:
        logger: Logger supplied by the host, if any.
        name: Module name used for the fallback logger.
    """
    if logger is not None:
        return logger
    return logging.getLogger(name)
