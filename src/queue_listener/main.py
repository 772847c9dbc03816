"""CLI entrypoint for queue-listener."""

from pathlib import Path

import rich_click as click

from queue_listener import __version__
from queue_listener.controllers import ListenCommand, ListenerCliController
from queue_listener.listener import WorkerLaunchError

click.rich_click.USE_MARKDOWN = True
LISTENER_CONTROLLER = ListenerCliController()


@click.group()
@click.version_option(version=__version__, prog_name="queue-listener")
def queue_listener() -> None:
    """Queue listener CLI."""


@queue_listener.command("listen")
@click.argument("connection", required=False)
@click.option("--queue", default=None, help="Queue to listen on.")
@click.option("--env", "environment", default=None, help="Environment the worker runs under.")
@click.option(
    "--delay",
    type=click.IntRange(min=0),
    default=None,
    help="Seconds to delay a failed job before it is retried.",
)
@click.option(
    "--memory",
    type=click.IntRange(min=1),
    default=None,
    help="Memory limit in megabytes; the listener exits once it is reached.",
)
@click.option(
    "--sleep",
    type=click.IntRange(min=0),
    default=None,
    help="Seconds the worker waits when no job is available.",
)
@click.option(
    "--tries",
    "max_tries",
    type=click.IntRange(min=0),
    default=None,
    help="Attempts before a job is marked failed (0 = unlimited).",
)
@click.option(
    "--timeout",
    type=click.IntRange(min=0),
    default=None,
    help="Seconds a single worker run may take (0 = no limit).",
)
@click.option(
    "--command-path",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Working directory for the worker.",
)
@click.option("--worker-binary", default=None, help="Worker executable.")
@click.option("--subcommand", default=None, help="Worker subcommand.")
@click.option(
    "--max-runs",
    type=click.IntRange(min=1),
    default=None,
    help="Stop after this many worker runs instead of looping forever.",
)
@click.option(
    "--quiet/--no-quiet",
    default=False,
    show_default=True,
    help="Send worker output to the log instead of the terminal.",
)
@click.option("--verbose", is_flag=True, default=False, help="Enable debug logging.")
def listen(  # noqa: PLR0913
    connection: str | None,
    queue: str | None,
    environment: str | None,
    delay: int | None,
    memory: int | None,
    sleep: int | None,
    max_tries: int | None,
    timeout: int | None,
    command_path: Path | None,
    worker_binary: str | None,
    subcommand: str | None,
    max_runs: int | None,
    quiet: bool,
    verbose: bool,
) -> None:
    """Run the queue worker one job at a time, restarting it after every job.

    The listener exits with status 0 once its own memory reaches `--memory`,
    so a process manager can start it again with a clean slate.
    """

    try:
        lines = LISTENER_CONTROLLER.listen(
            ListenCommand(
                connection=connection,
                queue=queue,
                environment=environment,
                delay=delay,
                memory=memory,
                sleep=sleep,
                max_tries=max_tries,
                timeout=timeout,
                command_path=command_path,
                worker_binary=worker_binary,
                subcommand=subcommand,
                max_runs=max_runs,
                quiet=quiet,
                verbose=verbose,
            ),
        )
    except (WorkerLaunchError, ValueError) as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    queue_listener()
