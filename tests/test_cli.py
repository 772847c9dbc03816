from __future__ import annotations

import os
import sys
from pathlib import Path

import allure
import pytest
from click.testing import CliRunner

from queue_listener import __version__, main
from queue_listener.controllers import ListenCommand
from queue_listener.listener import WorkerLaunchError
from queue_listener.main import queue_listener

pytestmark = [
    allure.epic("Console"),
    allure.feature("Listen Command"),
]


class _RecordingController:
    def __init__(self, error: Exception | None = None) -> None:
        self.commands: list[ListenCommand] = []
        self.error = error

    def listen(self, command: ListenCommand) -> list[str]:
        self.commands.append(command)
        if self.error is not None:
            raise self.error
        return ["Listener summary: runs=1"]


def test_version():
    assert __version__


def test_version_option():
    runner = CliRunner()
    result = runner.invoke(queue_listener, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_listen_passes_options_to_controller(monkeypatch) -> None:
    controller = _RecordingController()
    monkeypatch.setattr(main, "LISTENER_CONTROLLER", controller)

    result = CliRunner().invoke(
        queue_listener,
        [
            "listen",
            "redis",
            "--queue",
            "emails",
            "--env",
            "staging",
            "--delay",
            "5",
            "--memory",
            "256",
            "--sleep",
            "1",
            "--tries",
            "3",
            "--timeout",
            "0",
            "--max-runs",
            "2",
            "--quiet",
        ],
    )

    assert result.exit_code == 0, result.output
    assert "Listener summary: runs=1" in result.output
    [command] = controller.commands
    assert command.connection == "redis"
    assert command.queue == "emails"
    assert command.environment == "staging"
    assert (command.delay, command.memory, command.sleep, command.max_tries) == (5, 256, 1, 3)
    assert command.timeout == 0
    assert command.max_runs == 2
    assert command.quiet is True


def test_listen_without_arguments_defers_to_settings(monkeypatch) -> None:
    controller = _RecordingController()
    monkeypatch.setattr(main, "LISTENER_CONTROLLER", controller)

    result = CliRunner().invoke(queue_listener, ["listen"])

    assert result.exit_code == 0, result.output
    [command] = controller.commands
    assert command.connection is None
    assert command.queue is None
    assert command.memory is None


def test_listen_rejects_zero_memory() -> None:
    result = CliRunner().invoke(queue_listener, ["listen", "--memory", "0"])

    assert result.exit_code == 2


def test_listen_reports_launch_failure(monkeypatch) -> None:
    controller = _RecordingController(
        error=WorkerLaunchError("Worker executable not found: /srv/app/bin/console"),
    )
    monkeypatch.setattr(main, "LISTENER_CONTROLLER", controller)

    result = CliRunner().invoke(queue_listener, ["listen", "redis"])

    assert result.exit_code == 1
    assert "Worker executable not found" in result.output


@pytest.mark.skipif(os.name == "nt", reason="fake worker is launched through a POSIX shell")
def test_listen_runs_real_worker_until_max_runs(
    monkeypatch,
    tmp_path: Path,
    fake_worker_script: Path,
) -> None:
    monkeypatch.setenv("QUEUE_LISTENER_WORKER_ENV", "FAKE_WORKER_MODE=lines")
    monkeypatch.delenv("QUEUE_LISTENER_LOG_LEVEL", raising=False)

    result = CliRunner().invoke(
        queue_listener,
        [
            "listen",
            "redis",
            "--queue",
            "emails",
            "--memory",
            "1000000",
            "--timeout",
            "30",
            "--command-path",
            str(tmp_path),
            "--worker-binary",
            sys.executable,
            "--subcommand",
            str(fake_worker_script),
            "--max-runs",
            "2",
        ],
    )

    assert result.exit_code == 0, result.output
    assert result.output.count("a\nb\nc\n") == 2
    assert "runs=2 failed=0 timeouts=0 stop_reason=max_runs" in result.output


def test_listen_reports_missing_worker_binary(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.delenv("QUEUE_LISTENER_LOG_LEVEL", raising=False)

    result = CliRunner().invoke(
        queue_listener,
        [
            "listen",
            "--command-path",
            str(tmp_path),
            "--worker-binary",
            "bin/console",
            "--max-runs",
            "1",
        ],
    )

    assert result.exit_code == 1
    assert "Worker executable not found" in result.output
