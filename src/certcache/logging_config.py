"""Logging configuration for certcache.

Library modules only create loggers under the ``certcache`` namespace; this
module is what an embedding process (or the CLI) calls to send them somewhere.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-24s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _rotate_log_if_needed(log_file: Path, max_bytes: int = 10 * 1024 * 1024, backup_count: int = 5) -> None:
    """Rotate log file on startup if it exceeds max size.

    Args:
        log_file: Path to the log file
        max_bytes: Maximum file size before rotation (default: 10MB)
        backup_count: Number of backup files to keep (default: 5)
    """
    if not log_file.exists():
        return

    if log_file.stat().st_size < max_bytes:
        return

    # Shift backups up by one, dropping the oldest
    for i in range(backup_count - 1, 0, -1):
        source = log_file.parent / f"{log_file.name}.{i}"
        dest = log_file.parent / f"{log_file.name}.{i + 1}"

        if i == backup_count - 1 and dest.exists():
            dest.unlink()

        if source.exists():
            source.rename(dest)

    log_file.rename(log_file.parent / f"{log_file.name}.1")


def setup_logging(
    log_dir: Optional[Path] = None,
    level: Union[int, str] = logging.INFO,
    console: bool = False,
) -> logging.Logger:
    """Configure the ``certcache`` logger.

    Args:
        log_dir: Directory for ``certcache.log`` (None disables the file handler)
        level: Log level name or number
        console: Also log to stderr

    Returns:
        The configured ``certcache`` logger
    """
    logger = logging.getLogger("certcache")
    logger.setLevel(level)
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / "certcache.log"
        _rotate_log_if_needed(log_file)

        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if console:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)

    return logger
