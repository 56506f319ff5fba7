"""
Logging bootstrap.

Modules log through ``logging.getLogger(__name__)``; this module only
installs the root handler once at startup so every ``app.*`` logger
shares one format and level.
"""
import logging
import logging.config

from app.config import settings

_configured = False


def configure_logging(level: str | None = None) -> None:
    """Install the root console handler.  Safe to call more than once."""
    global _configured
    if _configured:
        return

    logging.config.dictConfig(
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
            "root": {
                "handlers": ["console"],
                "level": (level or settings.LOG_LEVEL).upper(),
            },
        }
    )
    _configured = True
