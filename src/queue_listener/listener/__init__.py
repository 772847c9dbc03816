"""Worker supervision: command building, process runs and the listen loop."""

from queue_listener.listener.command import CommandBuilder
from queue_listener.listener.escaping import escape_native_shell, escape_posix, select_escaper
from queue_listener.listener.models import (
    ListenSummary,
    OutputEvent,
    ProcessSpec,
    RunOptions,
    RunOutcome,
    StopReason,
    StreamKind,
    WorkerRunResult,
)
from queue_listener.listener.process import WorkerLaunchError, run_worker_process
from queue_listener.listener.sinks import ConsoleSink, LoggingSink, OutputSink
from queue_listener.listener.supervisor import Listener

__all__ = [
    "CommandBuilder",
    "ConsoleSink",
    "ListenSummary",
    "Listener",
    "LoggingSink",
    "OutputEvent",
    "OutputSink",
    "ProcessSpec",
    "RunOptions",
    "RunOutcome",
    "StopReason",
    "StreamKind",
    "WorkerLaunchError",
    "WorkerRunResult",
    "escape_native_shell",
    "escape_posix",
    "run_worker_process",
    "select_escaper",
]
