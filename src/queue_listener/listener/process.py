"""Run one worker invocation to completion while streaming its output."""

from __future__ import annotations

import logging
import os
import queue
import shutil
import signal
import subprocess
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import IO

from queue_listener.listener.models import (
    TIMEOUT_EXIT_CODE,
    OutputEvent,
    ProcessSpec,
    StreamKind,
    WorkerRunResult,
)
from queue_listener.listener.sinks import OutputSink

logger = logging.getLogger(__name__)

_POLL_SECONDS = 0.1
_KILL_WAIT_SECONDS = 2.0
# A grandchild that inherited the pipes can keep them open after the worker exits.
_DRAIN_AFTER_EXIT_SECONDS = 2.0
_EOF = object()


class WorkerLaunchError(RuntimeError):
    """The worker process could not be started."""


def run_worker_process(
    spec: ProcessSpec,
    *,
    sink: OutputSink | None = None,
    shutdown_requested: Callable[[], bool] | None = None,
    graceful_shutdown_seconds: int = 10,
) -> WorkerRunResult:
    """Launch ``spec``, deliver its output lines to ``sink`` and wait for it to end.

    Timeouts and non-zero exits are reported in the result. Only a failure to
    start the worker raises (``WorkerLaunchError``).
    """

    env = os.environ.copy()
    env.update(spec.environment)
    _check_launchable(spec, env)

    popen_kwargs: dict[str, object] = {}
    if os.name != "nt":
        popen_kwargs["start_new_session"] = True

    try:
        process = subprocess.Popen(  # noqa: S602
            spec.command_line,
            shell=True,
            cwd=str(spec.working_directory),
            env=env,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
            **popen_kwargs,
        )
    except OSError as error:
        raise WorkerLaunchError(f"Worker failed to start: {error}") from error

    logger.debug("Started worker pid=%s: %s", process.pid, spec.command_line)
    events: queue.Queue[object] = queue.Queue()
    readers = [
        _start_reader(process.stdout, StreamKind.STDOUT, events),
        _start_reader(process.stderr, StreamKind.STDERR, events),
    ]

    start_monotonic = time.monotonic()
    deadline = start_monotonic + spec.timeout_seconds if spec.timeout_seconds else None
    graceful_seconds = max(0, graceful_shutdown_seconds)
    shutdown_deadline: float | None = None
    ended_at: float | None = None
    timed_out = False
    interrupted = False
    lines_emitted = 0
    open_streams = 2

    try:
        while open_streams or process.poll() is None:
            try:
                item = events.get(timeout=_POLL_SECONDS)
            except queue.Empty:
                item = None

            if item is _EOF:
                open_streams -= 1
                continue
            if isinstance(item, OutputEvent):
                lines_emitted += 1
                if sink is not None:
                    sink.receive(item.stream, item.line)

            now = time.monotonic()
            if ended_at is not None:
                if not open_streams:
                    break
                if item is None and now - ended_at >= _DRAIN_AFTER_EXIT_SECONDS:
                    logger.debug("Worker output still open after exit; detaching readers.")
                    break
                continue

            if process.poll() is not None:
                ended_at = now
            elif deadline is not None and now >= deadline:
                logger.warning(
                    "Worker exceeded timeout of %ss; terminating pid=%s.",
                    spec.timeout_seconds,
                    process.pid,
                )
                _terminate_process(process)
                timed_out = True
                ended_at = time.monotonic()
            elif shutdown_requested is not None and shutdown_requested():
                if shutdown_deadline is None:
                    shutdown_deadline = now + graceful_seconds
                if now >= shutdown_deadline:
                    logger.info("Shutdown requested; terminating worker pid=%s.", process.pid)
                    _terminate_process(process)
                    interrupted = True
                    ended_at = time.monotonic()
    finally:
        if process.poll() is None:
            _terminate_process(process)
        elif open_streams:
            _kill_leftover_group(process)
        _join_readers(readers)

    returncode = process.wait()
    return WorkerRunResult(
        exit_code=TIMEOUT_EXIT_CODE if timed_out else returncode,
        timed_out=timed_out,
        interrupted=interrupted,
        duration_seconds=time.monotonic() - start_monotonic,
        lines_emitted=lines_emitted,
    )


def _check_launchable(spec: ProcessSpec, env: dict[str, str]) -> None:
    if not spec.working_directory.is_dir():
        raise WorkerLaunchError(
            f"Worker working directory does not exist: {spec.working_directory}",
        )
    if _resolve_executable(spec.executable, spec.working_directory, env.get("PATH")) is None:
        raise WorkerLaunchError(f"Worker executable not found: {spec.executable}")


def _resolve_executable(
    executable: str,
    working_directory: Path,
    search_path: str | None = None,
) -> str | None:
    path = Path(executable)
    if path.is_absolute() or len(path.parts) > 1:
        candidate = path if path.is_absolute() else working_directory / path
        if candidate.is_file() and os.access(candidate, os.X_OK):
            return str(candidate)
        return None
    # Bare names are looked up on the PATH the worker will run with.
    return shutil.which(executable, path=search_path)


def _start_reader(
    pipe: IO[str] | None,
    stream: StreamKind,
    events: queue.Queue[object],
) -> threading.Thread | None:
    if pipe is None:
        events.put(_EOF)
        return None
    reader = threading.Thread(
        target=_read_pipe,
        args=(pipe, stream, events),
        daemon=True,
        name=f"worker-{stream.value}-reader",
    )
    reader.start()
    return reader


def _join_readers(readers: list[threading.Thread | None]) -> None:
    for reader in readers:
        if reader is None:
            continue
        reader.join(timeout=_KILL_WAIT_SECONDS)
        if reader.is_alive():
            logger.warning(
                "%s is still blocked; a process outside the worker group holds the pipe.",
                reader.name,
            )


def _read_pipe(pipe: IO[str], stream: StreamKind, events: queue.Queue[object]) -> None:
    try:
        for line in iter(pipe.readline, ""):
            events.put(OutputEvent(stream=stream, line=line.rstrip("\r\n")))
    except (OSError, ValueError) as error:
        logger.debug("Worker %s reader exited: %s", stream.value, error)
    finally:
        events.put(_EOF)
        pipe.close()


def _kill_leftover_group(process: subprocess.Popen[str]) -> None:
    # The worker exited but processes it started still hold its output pipes.
    logger.debug("Killing processes left behind by worker pid=%s.", process.pid)
    try:
        _signal_process(process, force=True)
    except OSError as error:
        logger.debug("No leftover worker processes to kill: %s", error)


def _terminate_process(process: subprocess.Popen[str]) -> None:
    try:
        _signal_process(process, force=False)
    except OSError:
        return
    try:
        process.wait(timeout=_KILL_WAIT_SECONDS)
    except subprocess.TimeoutExpired:
        try:
            _signal_process(process, force=True)
        except OSError:
            return
        process.wait(timeout=_KILL_WAIT_SECONDS)


def _signal_process(process: subprocess.Popen[str], *, force: bool) -> None:
    if os.name == "nt":
        if force:
            process.kill()
        else:
            process.terminate()
        return
    # The worker leads its own session, so the shell and its children share the group.
    os.killpg(process.pid, signal.SIGKILL if force else signal.SIGTERM)
