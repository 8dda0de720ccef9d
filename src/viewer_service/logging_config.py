"""Logging configuration for the viewer service.

Console logging for the API process; `LOG_FORMAT=json` switches to
python-json-logger records for log collectors.
"""

import logging
import logging.config
import os


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Apply logging configuration from arguments or LOG_LEVEL / LOG_FORMAT."""
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    fmt = (fmt or os.getenv("LOG_FORMAT", "text")).lower()

    if fmt == "json":
        formatter_class = "pythonjsonlogger.json.JsonFormatter"
        format_string = "%(asctime)s %(name)s %(levelname)s %(message)s"
    else:
        formatter_class = "logging.Formatter"
        format_string = "%(asctime)s | %(levelname)-8s | %(name)-28s | %(message)s"

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {"class": formatter_class, "format": format_string},
            },
            "handlers": {
                "default": {
                    "formatter": "default",
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stdout",
                },
            },
            "loggers": {
                "": {"level": level, "handlers": ["default"]},
                "uvicorn.error": {"level": "INFO", "handlers": ["default"], "propagate": False},
                "uvicorn.access": {"level": "INFO", "handlers": ["default"], "propagate": False},
                # request lines from httpx would include signed upload URLs
                "httpx": {"level": "WARNING", "handlers": ["default"], "propagate": False},
                "httpcore": {"level": "WARNING", "handlers": ["default"], "propagate": False},
            },
        }
    )
    logging.getLogger(__name__).debug("Logging configured (level=%s, format=%s)", level, fmt)
