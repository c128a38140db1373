import logging
import os
import sys
from datetime import datetime
from typing import Optional

from app.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def setup_logger(name: Optional[str] = None, level: Optional[str] = None) -> logging.Logger:
    """
    Configure a logger (the root logger by default) with a console handler and,
    when LOG_TO_FILE is set, a dated file handler under LOG_DIR.
    Safe to call more than once.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level or settings.LOG_LEVEL)

    if getattr(logger, "_supply_chain_configured", False):
        return logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if settings.LOG_TO_FILE:
        os.makedirs(settings.LOG_DIR, exist_ok=True)
        file_handler = logging.FileHandler(
            os.path.join(settings.LOG_DIR, f"supply_chain_{datetime.now().strftime('%Y%m%d')}.log")
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger._supply_chain_configured = True
    return logger
