"""
Logging setup for the CLI and the API.

Modules log through ``logging.getLogger(__name__)``; this module only wires
handlers: a log file (uploader.log by default) plus stderr.
"""
import logging
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_PACKAGE_LOGGER = "csv_uploader"


def configure_logging(
    level: str = "INFO",
    log_dir: Optional[Path] = None,
    filename: Optional[str] = None,
    console_level: Optional[str] = None,
) -> logging.Logger:
    """
    Configure the package logger.

    Args:
        level: Level for the log file (and console when console_level is None)
        log_dir: Directory of the log file; no file handler when None
        filename: Log file name inside log_dir
        console_level: Separate level for stderr output

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(_PACKAGE_LOGGER)
    logger.setLevel(logging.DEBUG)

    # Reconfiguring replaces previous handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel((console_level or level).upper())
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_dir is not None and filename:
        log_path = Path(log_dir) / filename
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(level.upper())
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
