"""Listen loop that restarts a single-job worker until the memory ceiling is hit."""

from __future__ import annotations

import logging
import os
import signal
import sys
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from queue_listener.listener.command import CommandBuilder
from queue_listener.listener.memory import memory_exceeded, memory_usage_mb
from queue_listener.listener.models import (
    ListenSummary,
    ProcessSpec,
    RunOptions,
    RunOutcome,
    StopReason,
    WorkerRunResult,
)
from queue_listener.listener.process import run_worker_process
from queue_listener.listener.sinks import OutputSink

logger = logging.getLogger(__name__)

WorkerRunner = Callable[..., WorkerRunResult]


def exit_process(code: int = 0) -> None:
    """Terminate the interpreter immediately, skipping cleanup handlers."""

    for stream in (sys.stdout, sys.stderr):
        try:
            stream.flush()
        except (OSError, ValueError):
            pass
    os._exit(code)


class Listener:
    """Run the worker one job at a time and restart it after every run.

    After each run the listener measures its own resident memory. Once it
    reaches the configured ceiling the whole process exits with status 0 so
    the surrounding process manager starts a fresh one.
    """

    def __init__(  # noqa: PLR0913
        self,
        builder: CommandBuilder,
        *,
        output_handler: OutputSink | None = None,
        runner: WorkerRunner = run_worker_process,
        memory_probe: Callable[[], float] = memory_usage_mb,
        terminate: Callable[[int], None] = exit_process,
        graceful_shutdown_seconds: int = 10,
    ) -> None:
        self.builder = builder
        self.output_handler = output_handler
        self.runner = runner
        self.memory_probe = memory_probe
        self.terminate = terminate
        self.graceful_shutdown_seconds = graceful_shutdown_seconds
        self.should_stop = False
        self._stop_reason: StopReason | None = None

    def set_output_handler(self, handler: OutputSink | None) -> None:
        """Replace the sink that receives worker output lines."""

        self.output_handler = handler

    def make_process(self, connection: str, queue: str, options: RunOptions) -> ProcessSpec:
        return self.builder.build(connection, queue, options)

    def listen(
        self,
        connection: str,
        queue: str,
        options: RunOptions,
        *,
        max_runs: int | None = None,
    ) -> ListenSummary:
        """Run the worker for ``connection``/``queue`` until told to stop.

        Args:
            connection: Queue connection name passed to the worker.
            queue: Queue the worker should drain.
            options: Worker options; ``options.memory`` is also the ceiling
                for this process.
            max_runs: Stop after this many runs (None = forever).

        Raises:
            WorkerLaunchError: The worker could not be started.
        """

        spec = self.make_process(connection, queue, options)
        summary = ListenSummary()
        self.should_stop = False
        self._stop_reason = None
        logger.info(
            "Listening on connection=%s queue=%s memory_limit=%sMB timeout=%s",
            connection,
            queue,
            options.memory,
            options.timeout,
        )

        with self._signal_handlers():
            while not self.should_stop:
                outcome = self.run_once(spec, options.memory)
                summary.runs += 1
                summary.last_memory_usage_mb = outcome.memory_usage_mb
                if outcome.result.timed_out:
                    summary.timeouts += 1
                elif outcome.result.exit_code != 0 and not outcome.result.interrupted:
                    summary.failed_runs += 1

                if outcome.should_stop:
                    self._request_stop(StopReason.MEMORY_LIMIT)
                elif max_runs is not None and summary.runs >= max_runs:
                    self._request_stop(StopReason.MAX_RUNS)

        summary.stop_reason = self._stop_reason
        logger.info(
            "Listener stopped: reason=%s runs=%d",
            summary.stop_reason.value if summary.stop_reason else "-",
            summary.runs,
        )
        return summary

    def run_once(self, spec: ProcessSpec, memory_limit_mb: int) -> RunOutcome:
        """Run the worker once, then exit the process if memory reached the limit."""

        result = self.runner(
            spec,
            sink=self.output_handler,
            shutdown_requested=lambda: self.should_stop,
            graceful_shutdown_seconds=self.graceful_shutdown_seconds,
        )
        self._log_run_result(result)

        usage_mb = self.memory_probe()
        exceeded = memory_exceeded(memory_limit_mb, usage_mb)
        outcome = RunOutcome(result=result, memory_usage_mb=usage_mb, memory_exceeded=exceeded)
        if exceeded:
            logger.warning(
                "Memory limit reached (%.1fMB >= %sMB); exiting so the process manager "
                "can restart the listener.",
                usage_mb,
                memory_limit_mb,
            )
            self.stop()
        return outcome

    def stop(self) -> None:
        """Terminate the whole process; code after ``listen`` does not run."""

        self.terminate(0)

    def _log_run_result(self, result: WorkerRunResult) -> None:
        if result.timed_out:
            logger.warning(
                "Worker timed out after %.2fs; continuing.",
                result.duration_seconds,
            )
        elif result.interrupted:
            logger.info("Worker terminated for shutdown after %.2fs.", result.duration_seconds)
        elif result.exit_code != 0:
            logger.warning(
                "Worker exited with code %s after %.2fs; continuing.",
                result.exit_code,
                result.duration_seconds,
            )
        else:
            logger.debug(
                "Worker run finished in %.2fs (%d lines).",
                result.duration_seconds,
                result.lines_emitted,
            )

    @contextmanager
    def _signal_handlers(self) -> Iterator[None]:
        if not hasattr(signal, "SIGTERM"):
            yield
            return

        def _handler(signum: int, _: object | None) -> None:
            try:
                name = signal.Signals(signum).name
            except ValueError:
                name = str(signum)
            logger.info("Received %s; stopping after the current run.", name)
            self._request_stop(StopReason.SIGNAL)

        try:
            original_sigint = signal.signal(signal.SIGINT, _handler)
            original_sigterm = signal.signal(signal.SIGTERM, _handler)
        except ValueError:
            # Signal handlers can only be installed in main thread.
            yield
            return

        try:
            yield
        finally:
            signal.signal(signal.SIGINT, original_sigint)
            signal.signal(signal.SIGTERM, original_sigterm)

    def _request_stop(self, reason: StopReason) -> None:
        self.should_stop = True
        if self._stop_reason is None:
            self._stop_reason = reason
