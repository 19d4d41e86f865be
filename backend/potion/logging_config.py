"""Logging configuration for the access core."""

import logging
import logging.config

from potion.config import get_settings

settings = get_settings()


def get_logging_config() -> dict:
    """Build the dictConfig used at application startup."""
    level = "DEBUG" if settings.DEBUG else settings.LOG_LEVEL.upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "verbose": {
                "format": "{levelname} {asctime} {name} {message}",
                "style": "{",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "verbose",
                "level": level,
            },
        },
        "loggers": {
            "potion": {
                "handlers": ["console"],
                "level": level,
                "propagate": False,
            },
            # Authorization decisions (denials, invalid tokens)
            "potion.security": {
                "handlers": ["console"],
                "level": "INFO",
                "propagate": False,
            },
        },
    }


def configure_logging() -> None:
    """Apply the logging configuration."""
    logging.config.dictConfig(get_logging_config())
    logging.getLogger("potion").debug("Logging configured")
