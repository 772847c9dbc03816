"""Shared test fixtures."""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

from queue_listener.listener import CommandBuilder, StreamKind, escape_posix

_FAKE_WORKER_SOURCE = """\
import os
import subprocess
import sys
import time

mode = os.environ.get("FAKE_WORKER_MODE", "lines")
if mode == "lines":
    for line in ("a", "b", "c"):
        print(line, flush=True)
elif mode == "args":
    for arg in sys.argv[1:]:
        print(arg, flush=True)
elif mode == "stderr":
    print("out", flush=True)
    print("boom", file=sys.stderr, flush=True)
    sys.exit(3)
elif mode == "blank":
    print("x", flush=True)
    print("", flush=True)
    print("y", flush=True)
elif mode == "cwd":
    print(os.getcwd(), flush=True)
elif mode == "sleep":
    print("started", flush=True)
    time.sleep(30)
elif mode == "orphan":
    subprocess.Popen([sys.executable, "-c", "import time; time.sleep(20)"])
    print("parent done", flush=True)
"""


class RecordingSink:
    """Collects worker output as (stream, line) tuples."""

    def __init__(self) -> None:
        self.events: list[tuple[StreamKind, str]] = []

    def receive(self, stream: StreamKind, line: str) -> None:
        self.events.append((stream, line))

    def lines(self, stream: StreamKind) -> list[str]:
        return [line for kind, line in self.events if kind is stream]


@pytest.fixture()
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture()
def fake_worker_script(tmp_path: Path) -> Path:
    script = tmp_path / "fake_worker.py"
    script.write_text(_FAKE_WORKER_SOURCE, "utf-8")
    return script


@pytest.fixture()
def make_builder(tmp_path: Path, fake_worker_script: Path) -> Callable[[str], CommandBuilder]:
    """Builder that runs the fake worker script with the interpreter running the tests."""

    def _make(mode: str = "lines") -> CommandBuilder:
        return CommandBuilder(
            sys.executable,
            subcommand=str(fake_worker_script),
            working_directory=tmp_path,
            environment={"FAKE_WORKER_MODE": mode},
            escape=escape_posix,
        )

    return _make


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level
    yield
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)
