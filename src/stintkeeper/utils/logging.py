"""
Custom logging configs
"""

import logging.config
import logging.handlers
from pathlib import Path, PurePath

DEFAULT_LOG_DIRECTORY = "logs"


class AutoQueueListener(logging.handlers.QueueListener):
    """
    Queue listener that starts on creation so handlers configured
    through `dictConfig` receive records right away
    """

    def __init__(self, queue, *handlers, respect_handler_level=True):
        super().__init__(queue, *handlers, respect_handler_level=respect_handler_level)
        self.start()


def _rotating_file(filename: str, level: str) -> dict:
    return {
        "level": level,
        "formatter": "detailed",
        "class": "logging.handlers.TimedRotatingFileHandler",
        "filename": filename,
        "when": "midnight",
        "backupCount": 10,
        "encoding": "utf-8",
    }


def generate_default_config(log_directory: str = DEFAULT_LOG_DIRECTORY) -> dict:
    """
    Generates the default logging config for the application. Application
    records go to stdout and the application log; race session records
    are also kept in a separate race timeline log.

    :param log_directory: The directory holding the log files
    :return: The default dict config
    """
    directory = PurePath(log_directory)

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {"format": "%(asctime)s [%(levelname)s]: %(message)s"},
            "detailed": {
                "format": "%(asctime)s [%(levelname)s|%(name)s|L%(lineno)d]: %(message)s",
                "datefmt": "%Y-%m-%dT%H:%M:%S%z",
            },
        },
        "handlers": {
            "stdout": {
                "level": "WARNING",
                "formatter": "standard",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
            },
            "application": _rotating_file(str(directory / "stintkeeper.log"), "INFO"),
            "race": _rotating_file(str(directory / "race.log"), "INFO"),
            "queue_handler": {
                "class": "logging.handlers.QueueHandler",
                "listener": "stintkeeper.utils.logging.AutoQueueListener",
                "handlers": ["stdout", "application"],
                "respect_handler_level": True,
            },
            "race_queue_handler": {
                "class": "logging.handlers.QueueHandler",
                "listener": "stintkeeper.utils.logging.AutoQueueListener",
                "handlers": ["race"],
                "respect_handler_level": True,
            },
        },
        "loggers": {
            "root": {
                "handlers": ["queue_handler"],
                "level": "WARNING",
            },
            "stintkeeper": {
                "handlers": ["queue_handler"],
                "level": "INFO",
                "propagate": False,
            },
            "stintkeeper.race": {
                "handlers": ["race_queue_handler"],
                "level": "INFO",
            },
        },
    }


def configure_logging(logging_conf: dict) -> None:
    """
    Apply a logging dict config, creating the directories of its file
    handlers first

    :param logging_conf: The dict config to apply
    """
    if not logging_conf:
        return

    for handler in logging_conf.get("handlers", {}).values():
        if "filename" in handler:
            Path(handler["filename"]).parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(logging_conf)
