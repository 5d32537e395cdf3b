"""Process-wide logging setup for the API and the realtime client."""

from __future__ import annotations

import logging
import logging.config
from typing import Optional

from inbox.config import get_settings

LOGGER_ROOT = "inbox"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class LoggingConfig:
    """Apply the configured log level and a single console handler."""

    def __init__(self, level: Optional[str] = None) -> None:
        self.level = (level or get_settings().log_level or "INFO").upper()
        logging.config.dictConfig(self.as_dict())

    def as_dict(self) -> dict:
        return {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": {"format": LOG_FORMAT}},
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "stream": "ext://sys.stdout",
                }
            },
            "loggers": {
                LOGGER_ROOT: {
                    "handlers": ["console"],
                    "level": self.level,
                    "propagate": True,
                }
            },
        }


def get_logger(name: str) -> logging.Logger:
    """Return a logger namespaced under ``inbox``."""
    return logging.getLogger(f"{LOGGER_ROOT}.{name}")
