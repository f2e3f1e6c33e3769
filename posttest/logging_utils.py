from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(level: int = logging.INFO, log_dir: Optional[str] = None, name: str = "posttest",
                  console: Optional[Console] = None) -> logging.Logger:
    """Configure the ``posttest`` logger: rich console output, optional rotating file."""
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers.clear()

    console_handler = RichHandler(console=console or Console(stderr=True), rich_tracebacks=False,
                                  markup=False, show_path=level <= logging.DEBUG)
    console_handler.setLevel(level)
    logger.addHandler(console_handler)

    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(Path(log_dir) / "posttest.log", maxBytes=5_000_000, backupCount=5)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        logger.addHandler(file_handler)

    logger.propagate = False
    if level <= logging.DEBUG:
        logger.debug("Debug mode is enabled.")
    return logger
