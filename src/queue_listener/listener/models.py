"""Value objects shared by the command builder, the process runner and the listener."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

TIMEOUT_EXIT_CODE = 124


class StreamKind(str, Enum):
    """Worker output stream a line was read from."""

    STDOUT = "out"
    STDERR = "err"


class StopReason(str, Enum):
    """Why the listen loop ended."""

    MEMORY_LIMIT = "memory_limit"
    SIGNAL = "signal"
    MAX_RUNS = "max_runs"


@dataclass(frozen=True, slots=True)
class RunOptions:
    """Worker options for one listen call."""

    environment: str | None = None
    delay: int = 0
    memory: int = 128
    sleep: int = 3
    max_tries: int = 0
    timeout: int | None = 60

    def __post_init__(self) -> None:
        if self.environment is not None and not isinstance(self.environment, str):
            raise ValueError(f"environment must be a string, got {self.environment!r}.")
        _require_int("delay", self.delay, minimum=0)
        _require_int("memory", self.memory, minimum=1)
        _require_int("sleep", self.sleep, minimum=0)
        _require_int("max_tries", self.max_tries, minimum=0)
        if self.timeout is not None:
            _require_int("timeout", self.timeout, minimum=1)


def _require_int(name: str, value: object, *, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}.")
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}.")


@dataclass(frozen=True, slots=True)
class ProcessSpec:
    """Ready-to-launch worker invocation, reused unchanged across runs."""

    executable: str
    arguments: tuple[str, ...]
    working_directory: Path
    environment: Mapping[str, str] = field(default_factory=dict)
    timeout_seconds: int | None = None

    @property
    def command_line(self) -> str:
        """Escaped tokens joined for the platform shell."""

        return " ".join(self.arguments)


@dataclass(frozen=True, slots=True)
class OutputEvent:
    """One line written by the worker."""

    stream: StreamKind
    line: str


@dataclass(slots=True)
class WorkerRunResult:
    """Outcome of one launch-to-exit worker lifecycle."""

    exit_code: int
    timed_out: bool = False
    interrupted: bool = False
    duration_seconds: float = 0.0
    lines_emitted: int = 0

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0 and not self.timed_out and not self.interrupted


@dataclass(slots=True)
class RunOutcome:
    """What `Listener.run_once` observed after one run."""

    result: WorkerRunResult
    memory_usage_mb: float
    memory_exceeded: bool

    @property
    def should_stop(self) -> bool:
        return self.memory_exceeded


@dataclass(slots=True)
class ListenSummary:
    """Aggregate listener counters for CLI reporting."""

    runs: int = 0
    failed_runs: int = 0
    timeouts: int = 0
    stop_reason: StopReason | None = None
    last_memory_usage_mb: float | None = None
