"""Destinations for worker output lines."""

from __future__ import annotations

import logging
from typing import Protocol

import click

from queue_listener.listener.models import StreamKind

WORKER_LOGGER_PREFIX = "worker"


class OutputSink(Protocol):
    """Receives every line the worker writes, in emission order per stream."""

    def receive(self, stream: StreamKind, line: str) -> None:
        """Handle one output line."""


class LoggingSink:
    """Forward worker lines to the ``worker.<name>`` logger."""

    def __init__(self, name: str) -> None:
        self.logger = logging.getLogger(f"{WORKER_LOGGER_PREFIX}.{name}")

    def receive(self, stream: StreamKind, line: str) -> None:
        level = logging.ERROR if stream is StreamKind.STDERR else logging.INFO
        self.logger.log(level, line)


class ConsoleSink:
    """Echo worker lines to the terminal, stderr lines to stderr."""

    def receive(self, stream: StreamKind, line: str) -> None:
        click.echo(line, err=stream is StreamKind.STDERR)
