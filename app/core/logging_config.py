"""
Logging setup shared by the API process and background import jobs.

Import jobs keep running after the upload request has returned, so every
diagnostic (parse warnings, chunk summaries, fatal errors) has to end up on
the same stdout stream as the request logs.
"""
from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Optional


_is_configured = False

# Loggers that are too chatty at INFO while large dumps are imported.
_NOISY_LOGGERS = ("sqlalchemy.engine", "multipart")


def configure_logging(level: Optional[str] = None) -> None:
    """
    Install the console handler once per process.

    Args:
        level: Optional log level override (e.g., "DEBUG", "INFO").
    """
    global _is_configured

    if _is_configured:
        return

    log_level = (level or "INFO").upper()

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {
                    "format": "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "standard",
                    "level": log_level,
                }
            },
            "root": {
                "handlers": ["console"],
                "level": log_level,
            },
        }
    )

    logging.getLogger("app").setLevel(log_level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _is_configured = True
