from __future__ import annotations

import shlex
from pathlib import Path

import allure

from queue_listener.listener.command import CommandBuilder
from queue_listener.listener.escaping import escape_native_shell, escape_posix
from queue_listener.listener.models import RunOptions

pytestmark = [
    allure.epic("Worker Invocation"),
    allure.feature("Command Building"),
]


def _posix_builder(**kwargs) -> CommandBuilder:
    return CommandBuilder(
        "/srv/app/bin/console",
        subcommand="queue:work",
        working_directory=Path("/srv/app"),
        escape=escape_posix,
        **kwargs,
    )


def test_build_without_environment_omits_env_flag() -> None:
    spec = _posix_builder().build(
        "redis",
        "emails",
        RunOptions(memory=128, sleep=3, delay=0, max_tries=3, environment=None),
    )

    assert spec.arguments == (
        "'/srv/app/bin/console'",
        "'queue:work'",
        "--once",
        "--queue='emails'",
        "--delay=0",
        "--memory=128",
        "--sleep=3",
        "--tries=3",
        "'redis'",
    )
    assert not any(argument.startswith("--env") for argument in spec.arguments)


def test_build_places_env_right_after_subcommand() -> None:
    spec = _posix_builder().build("redis", "emails", RunOptions(environment="staging"))

    assert spec.arguments[2] == "--env='staging'"
    assert spec.arguments[3] == "--once"
    assert spec.arguments[-1] == "'redis'"


def test_build_copies_timeout_working_directory_and_environment() -> None:
    builder = _posix_builder(environment={"APP_DEBUG": "0"})
    spec = builder.build("redis", "emails", RunOptions(timeout=90))

    assert spec.timeout_seconds == 90
    assert spec.working_directory == Path("/srv/app")
    assert dict(spec.environment) == {"APP_DEBUG": "0"}
    assert spec.executable == "/srv/app/bin/console"


def test_build_without_timeout_leaves_spec_unbounded() -> None:
    spec = _posix_builder().build("redis", "emails", RunOptions(timeout=None))

    assert spec.timeout_seconds is None


def test_command_line_keeps_hostile_values_inside_their_arguments() -> None:
    spec = _posix_builder().build(
        "redis; touch /tmp/pwned",
        "emails' && echo 'x",
        RunOptions(environment="prod $(id)"),
    )

    assert shlex.split(spec.command_line) == [
        "/srv/app/bin/console",
        "queue:work",
        "--env=prod $(id)",
        "--once",
        "--queue=emails' && echo 'x",
        "--delay=0",
        "--memory=128",
        "--sleep=3",
        "--tries=0",
        "redis; touch /tmp/pwned",
    ]


def test_build_uses_native_shell_escaping_when_selected() -> None:
    builder = CommandBuilder(
        "C:\\app\\bin\\console",
        subcommand="queue:work",
        working_directory=Path("C:\\app"),
        escape=escape_native_shell,
    )

    spec = builder.build("redis", "%QUEUE%", RunOptions(environment="local"))

    assert spec.arguments[:3] == ('"C:\\app\\bin\\console"', '"queue:work"', '--env="local"')
    assert "--queue=^%\"QUEUE\"^%" in spec.arguments
    assert spec.arguments[-1] == '"redis"'


def test_build_is_deterministic() -> None:
    builder = _posix_builder()
    options = RunOptions(environment="prod", max_tries=5)

    assert builder.build("redis", "emails", options) == builder.build("redis", "emails", options)
