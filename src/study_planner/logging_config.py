"""Console logging setup for the planner."""
import logging
from logging.config import dictConfig

from study_planner.config import get_settings

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure console logging for the planner."""
    level = (level or get_settings().log_level).upper()

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": DEFAULT_LOG_FORMAT,
                },
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "root": {
                "handlers": ["default"],
                "level": "WARNING",
            },
            "loggers": {
                "study_planner": {
                    "level": level,
                },
            },
        }
    )
    logging.getLogger("study_planner").debug("Logging configured at %s", level)
