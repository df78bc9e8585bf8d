from __future__ import annotations

import logging
from logging.config import dictConfig

from pos_backend.app.core.config import LOG_LEVEL


def configure_logging(level: str = LOG_LEVEL) -> None:
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "loggers": {
                "pos_backend": {"level": level, "handlers": ["console"], "propagate": False},
                "sqlalchemy.engine": {"level": logging.WARNING},
            },
        }
    )
