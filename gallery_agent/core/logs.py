# gallery_agent/core/logs.py
"""
Logging setup for the CLI and long-running sessions.

Modules log through `logging.getLogger(__name__)`; only the composition root calls
`configure_logging`. File logging is best-effort: a read-only working directory
must never break the app.
"""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

_ROOT_LOGGER = "gallery_agent"
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_DATEFMT = "(%Y-%m-%d %H:%M:%S)"


def debug_enabled() -> bool:
    return os.getenv("GALLERY_AGENT_DEBUG", "").strip().lower() in {"1", "true", "yes", "on"}


def configure_logging(level: str = "INFO", log_file: str | None = "logs/gallery_agent.log") -> logging.Logger:
    """
    Attach a stderr handler and (optionally) a rotating file handler to the package logger.

    Safe to call repeatedly: handlers installed by a previous call are replaced, not stacked.
    """
    logger = logging.getLogger(_ROOT_LOGGER)
    resolved = logging.DEBUG if debug_enabled() else logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO
    logger.setLevel(resolved)

    for h in list(logger.handlers):
        if getattr(h, "_gallery_agent", False):
            logger.removeHandler(h)
            h.close()

    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    console._gallery_agent = True  # type: ignore[attr-defined]
    logger.addHandler(console)

    if log_file:
        try:
            os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
            handler = RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
            handler.setFormatter(formatter)
            handler._gallery_agent = True  # type: ignore[attr-defined]
            logger.addHandler(handler)
        except Exception:
            # never break the app from logging issues
            logger.warning("File logging disabled; could not open %s", log_file)

    return logger


__all__ = ["configure_logging", "debug_enabled"]
