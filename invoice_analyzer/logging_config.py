"""Logging configuration for invoice analysis."""
import logging
import logging.config
from pathlib import Path
from typing import Any, Dict

DEFAULT_LOG_FILENAME = "invoice_analyzer.log"
PACKAGE_LOGGER = "invoice_analyzer"

CONSOLE_FORMAT = "%(asctime)s %(levelname)-8s %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s:%(lineno)d %(message)s"


def get_logging_config(
    logs_folder: Path,
    log_filename: str = DEFAULT_LOG_FILENAME,
    level: str = "INFO"
) -> Dict[str, Any]:
    """Build the ``dictConfig`` mapping; creates ``logs_folder`` if needed.

    The console gets ``level`` and above, the log file keeps everything the
    package emits.
    """
    logs_folder = Path(logs_folder)
    logs_folder.mkdir(parents=True, exist_ok=True)
    handler_names = ["console", "file"]

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {"format": CONSOLE_FORMAT},
            "file": {"format": FILE_FORMAT},
        },
        "handlers": {
            # stdout carries the JSON results
            "console": {
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stderr",
                "formatter": "console",
                "level": level,
            },
            "file": {
                "class": "logging.FileHandler",
                "filename": str(logs_folder / log_filename),
                "mode": "a",
                "encoding": "utf-8",
                "formatter": "file",
                "level": logging.DEBUG,
            },
        },
        "loggers": {
            PACKAGE_LOGGER: {"level": logging.DEBUG, "handlers": handler_names, "propagate": False},
        },
        "root": {"level": logging.WARNING, "handlers": handler_names},
    }


def setup_logging(logs_folder: Path, log_filename: str = DEFAULT_LOG_FILENAME, level: str = "INFO") -> None:
    """Install console and file logging, replacing handlers from earlier runs."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    logging.config.dictConfig(get_logging_config(logs_folder, log_filename, level))
