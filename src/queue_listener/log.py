"""Console logging for the listener process."""

from __future__ import annotations

import logging
import sys

from queue_listener.listener.sinks import WORKER_LOGGER_PREFIX

LOG_FORMAT = "%(asctime)s - %(levelname)-8s - [%(name)s] - %(message)s"


class ListenerFormatter(logging.Formatter):
    """Formats listener records normally and forwarded worker lines raw."""

    def __init__(self) -> None:
        super().__init__(LOG_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        if _is_worker_record(record):
            return record.getMessage()
        return super().format(record)


def _is_worker_record(record: logging.LogRecord) -> bool:
    return record.name == WORKER_LOGGER_PREFIX or record.name.startswith(
        f"{WORKER_LOGGER_PREFIX}.",
    )


def setup_logging(level: int | str = logging.INFO) -> None:
    """Configure the root logger with a single stdout handler.

    Previously installed root handlers are removed so repeated calls do not
    duplicate output.
    """

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ListenerFormatter())
    root_logger.addHandler(console_handler)
