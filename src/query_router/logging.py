"""Logging configuration using loguru.

Sinks are installed once per process, on the first ``get_logger`` call.
Modules receive the shared logger bound to their own name.
"""

import sys
import threading
from pathlib import Path

from loguru import logger
from loguru._logger import Logger as LoguruLogger

from query_router.config import settings

_configured = False
_configure_lock = threading.Lock()

_FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[name]}:{function}:{line} - {message}"
)


def configure_logging(force: bool = False) -> None:
    """Install the console and file sinks.

    Args:
        force: Replace sinks that are already installed, e.g. after the
            log level or directory changed at runtime.
    """
    global _configured
    with _configure_lock:
        if _configured and not force:
            return

        # Drop loguru's default stderr sink so records are not printed twice
        logger.remove()
        logger.configure(extra={"name": "query_router"})

        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        logger.add(
            sys.stderr,
            format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{extra[name]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>",
            level=settings.log_level,
            colorize=True,
        )

        # Routing trace (every classification and fired rule)
        logger.add(
            log_dir / "app.log",
            format=_FILE_FORMAT,
            level="DEBUG",
            rotation="10 MB",
            retention="7 days",
            compression="zip",
        )

        logger.add(
            log_dir / "errors.log",
            format=_FILE_FORMAT,
            level="ERROR",
            rotation="10 MB",
            retention="30 days",
            compression="zip",
        )
        _configured = True


def get_logger(name: str) -> LoguruLogger:
    """Return the process logger bound to ``name`` (usually ``__name__``)."""
    configure_logging()
    return logger.bind(name=name)  # type: ignore[return-value]
