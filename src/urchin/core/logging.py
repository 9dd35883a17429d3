"""
Logging configuration.

Everything logs under the ``urchin`` logger; hosts call ``setup_logging``
once (``urchin.app.Urchin.start`` does it for them).
"""

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Chatty dependencies; kept at WARNING unless the package itself runs at DEBUG
NOISY_LOGGERS = ("LiteLLM", "litellm", "httpx", "httpcore", "aiosqlite")


def setup_logging(
    level: int | str = logging.INFO,
    log_file: Path | None = None,
) -> logging.Logger:
    """Configure the package logger with console and optional file output.

    Calling it again replaces the handlers from the previous call.
    """
    logger = logging.getLogger("urchin")
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    dependency_level = logging.DEBUG if logger.level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(dependency_level)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a child logger, e.g. ``get_logger("agents.loop")``."""
    return logging.getLogger(f"urchin.{name}")
