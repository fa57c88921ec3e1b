"""
Logging for the rotation engine.

Levels:
    DEBUG: no-op decisions (auto-advance skipped, status unchanged)
    INFO: placements created, status changes, extensions
    WARNING: configuration problems, swallowed audit failures
    ERROR: per-intern failures during bulk advancement
"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

ROOT_LOGGER = "rotation_engine"


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = "logs/rotation_engine.log",
    max_bytes: int = 5 * 1024 * 1024,  # 5 MB
    backup_count: int = 3,
) -> logging.Logger:
    """
    Configure the `rotation_engine` logger.

    Args:
        level: Minimum level for both handlers
        log_file: Path to log file (None = console only)
        max_bytes: Max size before rotation
        backup_count: Number of rotated files to keep

    Returns:
        The package root logger
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Clear existing handlers
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(
        "[%(asctime)s] %(levelname)-7s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    ))
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        logger.addHandler(file_handler)

    logger.info("Logging initialized: level=%s, file=%s", level.upper(), log_file or "disabled")
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a module (e.g. "rotation_engine.auto_advance")."""
    return logging.getLogger(name)
