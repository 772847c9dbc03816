"""Build the escaped worker invocation for one listen call."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

from queue_listener.listener.escaping import Escaper, select_escaper
from queue_listener.listener.models import ProcessSpec, RunOptions

DEFAULT_SUBCOMMAND = "queue:work"


class CommandBuilder:
    """Render worker command lines that process a single job per run."""

    def __init__(
        self,
        executable: str | Path,
        *,
        subcommand: str = DEFAULT_SUBCOMMAND,
        working_directory: str | Path = ".",
        environment: Mapping[str, str] | None = None,
        escape: Escaper | None = None,
    ) -> None:
        self.executable = str(executable)
        self.subcommand = subcommand
        self.working_directory = Path(working_directory)
        self.environment = dict(environment or {})
        self.escape = escape or select_escaper()

    def build(self, connection: str, queue: str, options: RunOptions) -> ProcessSpec:
        """Resolve the worker invocation for ``connection``/``queue``."""

        escape = self.escape
        arguments = [escape(self.executable), escape(self.subcommand)]

        # Without --env the worker falls back to its own default environment.
        if options.environment is not None:
            arguments.append(f"--env={escape(options.environment)}")

        arguments.extend(
            [
                "--once",
                f"--queue={escape(queue)}",
                f"--delay={options.delay}",
                f"--memory={options.memory}",
                f"--sleep={options.sleep}",
                f"--tries={options.max_tries}",
                escape(connection),
            ],
        )
        return ProcessSpec(
            executable=self.executable,
            arguments=tuple(arguments),
            working_directory=self.working_directory,
            environment=dict(self.environment),
            timeout_seconds=options.timeout,
        )
