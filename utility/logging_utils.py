# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2025-11-07
# Updated: 2026-02-16
# Description: logging_utils.py
# -----------------------------------------------------------------------------

# logging_utils.py
import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

import colorlog

BASE_LOGGER_NAME = "offline_rag"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(message)s"
CONSOLE_FORMAT = (
    "%(log_color)s%(asctime)s [%(levelname)s] "
    "%(name)s:%(lineno)d:%(reset)s %(message_log_color)s%(message)s"
)

_TRUTHY = ("1", "true", "yes", "y")


def _level_from_env() -> int:
    """RAG_LOG_LEVEL as a level name ("DEBUG") or number ("10"); unknown -> INFO."""
    raw = os.getenv("RAG_LOG_LEVEL", "INFO").strip().upper()
    if raw.isdigit():
        return int(raw)
    level = logging.getLevelName(raw)
    return level if isinstance(level, int) else logging.INFO


def _console_handler() -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setFormatter(
        colorlog.ColoredFormatter(
            fmt=CONSOLE_FORMAT,
            datefmt=DATE_FORMAT,
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "bold_red",
            },
            secondary_log_colors={
                "message": {
                    "INFO": "white",
                    "WARNING": "yellow",
                    "ERROR": "light_red",
                    "CRITICAL": "red",
                }
            },
            style="%",
        )
    )
    return handler


def _file_handler() -> logging.Handler | None:
    """Rotating file output, only when RAG_LOG_TO_FILE is set."""
    if os.getenv("RAG_LOG_TO_FILE", "0").strip().lower() not in _TRUTHY:
        return None

    log_path = Path(os.getenv("RAG_LOG_FILE", "./logs/offline_rag.log"))
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(
        filename=str(log_path),
        maxBytes=int(os.getenv("RAG_LOG_MAX_BYTES", str(5 * 1024 * 1024))),
        backupCount=int(os.getenv("RAG_LOG_BACKUP_COUNT", "5")),
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(fmt=FILE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def _create_logger(full_name: str) -> logging.Logger:
    logger = logging.getLogger(full_name)

    # configured once per name; later calls return the same logger untouched
    if not logger.handlers:
        logger.addHandler(_console_handler())
        file_handler = _file_handler()
        if file_handler is not None:
            logger.addHandler(file_handler)
        logger.setLevel(_level_from_env())
        logger.propagate = False

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """
    Logger under the `offline_rag` namespace, for module-level functions.
    """
    full_name = f"{BASE_LOGGER_NAME}.{name}" if name else BASE_LOGGER_NAME
    return _create_logger(full_name)


def get_class_logger(cls: type) -> logging.Logger:
    """
    Returns a logger whose name includes module + class, e.g.:

      offline_rag.vectorstore.VectorIndex.VectorIndex
      offline_rag.embedding.EmbeddingProvider.EmbeddingProvider
    """
    module = getattr(cls, "__module__", "unknown_module")
    classname = getattr(cls, "__name__", "UnknownClass")
    return _create_logger(f"{BASE_LOGGER_NAME}.{module}.{classname}")
