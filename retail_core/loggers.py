from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
ROOT_LOGGER = "retail_core"


def get_logger(name: str = ROOT_LOGGER, level: str = "INFO") -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(ch)
    return logger


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach the package handler once and apply `level` to every retail_core.* logger."""
    logger = get_logger(ROOT_LOGGER, level)
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    return logger
