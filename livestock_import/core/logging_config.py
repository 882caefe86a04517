"""
Application-wide logging configuration helpers.

Every module logs through ``logging.getLogger(__name__)``; this module wires
those loggers to a single console handler so import runs produce one
readable stream of diagnostics.
"""
from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Optional


_is_configured = False


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure root and package loggers if they have not been configured yet.

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

    # Chatty HTTP clients stay at WARNING unless we are debugging.
    if log_level != "DEBUG":
        for noisy in ("httpx", "anthropic", "urllib3"):
            logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.getLogger("livestock_import").setLevel(log_level)

    _is_configured = True
