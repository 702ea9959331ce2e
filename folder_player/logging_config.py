"""Logging configuration for the session engine."""

from __future__ import annotations

import logging

from .config import AppConfig

APP_LOGGER_NAME = "folder_player"


def setup_logging(config: AppConfig) -> logging.Logger:
    logger = logging.getLogger(APP_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(config.log_level)
    console_handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(message)s"))

    file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
    file_handler.setLevel(config.file_log_level)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s | %(levelname)s | %(name)s | %(module)s:%(lineno)d | "
            "%(funcName)s | %(threadName)s | %(message)s"
        )
    )

    logger.addHandler(console_handler)
    logger.addHandler(file_handler)

    logging.captureWarnings(True)
    # Third-party chatter goes to the file only.
    for name in ("py.warnings", "mutagen", "vlc"):
        library_logger = logging.getLogger(name)
        library_logger.setLevel(logging.DEBUG)
        library_logger.propagate = False
        for handler in list(library_logger.handlers):
            library_logger.removeHandler(handler)
        library_logger.addHandler(file_handler)
    return logger
