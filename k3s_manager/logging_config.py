"""
Logging setup for the CLI. Library modules only call logging.getLogger.
"""

import logging.config
from typing import Any


def get_logging_config(verbose: bool = False) -> dict[str, Any]:
    level = "DEBUG" if verbose else "WARNING"
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            },
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": {
            "k3s_manager": {
                "handlers": ["default"],
                "level": level,
                "propagate": False,
            },
            # The kubernetes client logs every request at DEBUG
            "kubernetes": {"level": "WARNING"},
            "urllib3": {"level": "WARNING"},
        },
        "root": {
            "level": "WARNING",
            "handlers": ["default"],
        },
    }


def configure_logging(verbose: bool = False) -> None:
    logging.config.dictConfig(get_logging_config(verbose))
