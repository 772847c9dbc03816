"""Controllers for queue-listener CLI commands."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from queue_listener.config import Settings
from queue_listener.listener import (
    CommandBuilder,
    ConsoleSink,
    ListenSummary,
    Listener,
    LoggingSink,
    OutputSink,
    RunOptions,
)
from queue_listener.log import setup_logging


@dataclass(slots=True)
class ListenCommand:
    """CLI input for the listen loop. ``None`` fields fall back to settings."""

    connection: str | None = None
    queue: str | None = None
    environment: str | None = None
    delay: int | None = None
    memory: int | None = None
    sleep: int | None = None
    max_tries: int | None = None
    timeout: int | None = None
    command_path: Path | None = None
    worker_binary: str | None = None
    subcommand: str | None = None
    max_runs: int | None = None
    quiet: bool = False
    verbose: bool = False


class ListenerCliController:
    def listen(self, command: ListenCommand) -> list[str]:
        settings = _apply_overrides(Settings.from_env(), command)
        settings.validate()
        setup_logging("DEBUG" if command.verbose else settings.log_level)

        options = _run_options(settings, command)
        connection = command.connection or settings.listen.connection
        queue = command.queue or settings.listen.queue
        sink: OutputSink = LoggingSink(queue) if command.quiet else ConsoleSink()

        listener = Listener(
            CommandBuilder(
                settings.worker.resolved_binary(),
                subcommand=settings.worker.subcommand,
                working_directory=settings.worker.command_path,
                environment=settings.worker.environment,
            ),
            graceful_shutdown_seconds=settings.listen.graceful_shutdown_seconds,
        )
        listener.set_output_handler(sink)
        summary = listener.listen(connection, queue, options, max_runs=command.max_runs)
        return [_render_summary(summary)]


def _apply_overrides(settings: Settings, command: ListenCommand) -> Settings:
    if command.command_path is not None:
        settings.worker.command_path = command.command_path
    if command.worker_binary is not None:
        settings.worker.binary = command.worker_binary
    if command.subcommand is not None:
        settings.worker.subcommand = command.subcommand
    return settings


def _run_options(settings: Settings, command: ListenCommand) -> RunOptions:
    defaults = settings.listen
    environment = command.environment if command.environment is not None else defaults.environment
    return RunOptions(
        environment=environment,
        delay=command.delay if command.delay is not None else defaults.delay,
        memory=command.memory if command.memory is not None else defaults.memory,
        sleep=command.sleep if command.sleep is not None else defaults.sleep,
        max_tries=command.max_tries if command.max_tries is not None else defaults.max_tries,
        timeout=_resolve_timeout(command.timeout, defaults.timeout),
    )


def _resolve_timeout(override: int | None, default: int | None) -> int | None:
    if override is None:
        return default
    # 0 on the command line disables the timeout.
    return override or None


def _render_summary(summary: ListenSummary) -> str:
    reason = summary.stop_reason.value if summary.stop_reason else "-"
    memory = (
        f"{summary.last_memory_usage_mb:.1f}MB"
        if summary.last_memory_usage_mb is not None
        else "-"
    )
    return (
        "Listener summary: "
        f"runs={summary.runs} failed={summary.failed_runs} "
        f"timeouts={summary.timeouts} stop_reason={reason} memory={memory}"
    )
