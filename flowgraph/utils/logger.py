# utils/logger.py
from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler

ROOT_LOGGER = "flowgraph"

_FMT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d - %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"

# ANSI color per minimum level, checked from the most severe down
_COLORS = (
    (logging.ERROR, "\033[91m"),    # red
    (logging.WARNING, "\033[93m"),  # yellow
    (logging.INFO, "\033[92m"),     # green
)


def _env_level(default: str = "INFO") -> int:
    """FLOWGRAPH_LOG_LEVEL wins over LOG_LEVEL; unknown names fall back to INFO."""
    name = os.getenv("FLOWGRAPH_LOG_LEVEL") or os.getenv("LOG_LEVEL") or default
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else logging.INFO


def _use_color() -> bool:
    return sys.stdout.isatty() and not os.getenv("NO_COLOR")


class _ColorFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        if not _use_color():
            return base
        for threshold, color in _COLORS:
            if record.levelno >= threshold:
                return f"{color}{base}\033[0m"
        return base


def init_logger(
    level: int | None = None,
    log_dir: str | Path | None = None,
    file_name: str = "flowgraph.log",
    file_max_mb: int = 5,
    file_backup: int = 3,
) -> logging.Logger:
    """
    Configure the ``flowgraph`` logger.

    Always attaches a stdout handler (colored on a tty). A rotating file
    handler is added when ``log_dir`` or FLOWGRAPH_LOG_DIR is set.
    Calling it again replaces the handlers, so the CLI can re-init with a
    new level.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.handlers.clear()
    logger.propagate = False
    logger.setLevel(level if level is not None else _env_level())

    sh = logging.StreamHandler(sys.stdout)
    sh.setFormatter(_ColorFormatter(fmt=_FMT, datefmt=_DATEFMT))
    logger.addHandler(sh)

    log_dir = log_dir or os.getenv("FLOWGRAPH_LOG_DIR")
    if log_dir:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        fh = RotatingFileHandler(
            filename=str(log_dir / file_name),
            maxBytes=file_max_mb * 1024 * 1024,
            backupCount=file_backup,
            encoding="utf-8",
        )
        fh.setFormatter(logging.Formatter(fmt=_FMT, datefmt=_DATEFMT))
        logger.addHandler(fh)

    return logger


def set_verbosity(verbose: bool) -> None:
    """Switch the project logger between DEBUG and the env-configured level."""
    logging.getLogger(ROOT_LOGGER).setLevel(logging.DEBUG if verbose else _env_level())


# Convenience default logger
log = init_logger()


def get_logger(child: str) -> logging.Logger:
    """Create/get a child logger under the project logger."""
    return logging.getLogger(ROOT_LOGGER).getChild(child)
