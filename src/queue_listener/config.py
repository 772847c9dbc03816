"""Runtime configuration for the queue listener."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from queue_listener.listener.command import DEFAULT_SUBCOMMAND
from queue_listener.listener.models import RunOptions


@dataclass(slots=True)
class WorkerSettings:
    """Where and how the worker executable is launched."""

    command_path: Path = Path(".")
    binary: str = "bin/console"
    subcommand: str = DEFAULT_SUBCOMMAND
    environment: dict[str, str] = field(default_factory=dict)

    def resolved_binary(self) -> str:
        """Resolve a relative binary path with a directory part against the command path."""

        path = Path(self.binary)
        if path.is_absolute() or len(path.parts) == 1:
            return self.binary
        return str((self.command_path / path).resolve())


@dataclass(slots=True)
class ListenDefaults:
    """Defaults for listen arguments not given on the command line."""

    connection: str = "default"
    queue: str = "default"
    environment: str | None = None
    delay: int = 0
    memory: int = 128
    sleep: int = 3
    max_tries: int = 0
    timeout: int | None = 60
    graceful_shutdown_seconds: int = 10


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    worker: WorkerSettings = field(default_factory=WorkerSettings)
    listen: ListenDefaults = field(default_factory=ListenDefaults)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from ``QUEUE_LISTENER_*`` environment variables."""

        return cls(
            worker=WorkerSettings(
                command_path=Path(os.getenv("QUEUE_LISTENER_COMMAND_PATH", ".")),
                binary=os.getenv("QUEUE_LISTENER_WORKER_BINARY", "bin/console"),
                subcommand=os.getenv("QUEUE_LISTENER_WORKER_SUBCOMMAND", DEFAULT_SUBCOMMAND),
                environment=_collect_worker_environment(),
            ),
            listen=ListenDefaults(
                connection=os.getenv("QUEUE_LISTENER_CONNECTION", "default"),
                queue=os.getenv("QUEUE_LISTENER_QUEUE", "default"),
                environment=os.getenv("QUEUE_LISTENER_ENV") or None,
                delay=_env_int("QUEUE_LISTENER_DELAY", 0),
                memory=_env_int("QUEUE_LISTENER_MEMORY", 128),
                sleep=_env_int("QUEUE_LISTENER_SLEEP", 3),
                max_tries=_env_int("QUEUE_LISTENER_TRIES", 0),
                timeout=_env_timeout("QUEUE_LISTENER_TIMEOUT", 60),
                graceful_shutdown_seconds=_env_int(
                    "QUEUE_LISTENER_GRACEFUL_SHUTDOWN_SECONDS",
                    10,
                ),
            ),
            log_level=os.getenv("QUEUE_LISTENER_LOG_LEVEL", "INFO").strip().upper(),
        )

    def validate(self) -> None:
        """Raise configuration error if settings cannot drive a listener."""

        if not self.worker.binary.strip():
            raise ValueError("QUEUE_LISTENER_WORKER_BINARY must not be empty.")
        if not self.worker.subcommand.strip():
            raise ValueError("QUEUE_LISTENER_WORKER_SUBCOMMAND must not be empty.")
        if self.listen.graceful_shutdown_seconds < 0:
            raise ValueError("QUEUE_LISTENER_GRACEFUL_SHUTDOWN_SECONDS must be >= 0.")
        if not isinstance(logging.getLevelName(self.log_level), int):
            raise ValueError(f"Invalid QUEUE_LISTENER_LOG_LEVEL: {self.log_level!r}")
        self.default_run_options()

    def default_run_options(self) -> RunOptions:
        """Build ``RunOptions`` from the configured defaults."""

        return RunOptions(
            environment=self.listen.environment,
            delay=self.listen.delay,
            memory=self.listen.memory,
            sleep=self.listen.sleep,
            max_tries=self.listen.max_tries,
            timeout=self.listen.timeout,
        )


def _collect_worker_environment() -> dict[str, str]:
    raw = os.getenv("QUEUE_LISTENER_WORKER_ENV", "").strip()
    if not raw:
        return {}

    overlay: dict[str, str] = {}
    for part in raw.split(","):
        token = part.strip()
        if not token:
            continue
        if "=" not in token:
            raise ValueError(
                "Invalid QUEUE_LISTENER_WORKER_ENV entry: "
                f"{token!r}. Expected format 'KEY=VALUE'.",
            )
        key, value = token.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError(f"Invalid QUEUE_LISTENER_WORKER_ENV entry: {token!r} (empty key)")
        overlay[key] = value.strip()
    return overlay


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {value!r}") from error


def _env_timeout(name: str, default: int) -> int | None:
    value = os.getenv(name)
    if value is None:
        return default
    if not value.strip():
        return None
    timeout = _env_int(name, default)
    return timeout if timeout > 0 else None
