"""Logging configuration for the DCF valuation engine."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from config import LOG_DIR, LOG_LEVEL


def setup_logging(log_dir: Optional[Path] = None, level: str = LOG_LEVEL):
    """Configure logging to write to both console and a dated file in ``log_dir``."""

    log_dir = Path(log_dir or LOG_DIR) / "app"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"app_{datetime.now().strftime('%Y%m%d')}.log"

    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    file_handler = logging.FileHandler(log_file, encoding='utf-8')
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return log_file
