"""
Diagnostic file logging enabled by --log-path.
"""

import logging
from datetime import datetime
from pathlib import Path


LOGGER_NAME = "polyrepl"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_file_logging(log_dir: Path, level: int = logging.INFO) -> Path:
    """
    Write polyrepl logs to a new file in log_dir.

    Args:
        log_dir: Directory for log files; created if missing
        level: Level for the polyrepl logger

    Returns:
        Path of the log file
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"polyrepl-{datetime.now().strftime('%Y%m%d-%H%M%S')}.log"

    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.addHandler(handler)
    logger.info("Logging to %s", log_file)
    return log_file
