"""Shell argument escaping for POSIX shells and the Windows command interpreter."""

from __future__ import annotations

import os
import re
from collections.abc import Callable

Escaper = Callable[[str], str]

_QUOTE_SPLIT = re.compile(r'(")')


def escape_posix(value: str) -> str:
    """Single-quote ``value`` for sh/bash, closing and reopening around embedded quotes."""

    return "'" + value.replace("'", "'\\''") + "'"


def escape_native_shell(value: str) -> str:
    """Double-quote ``value`` for cmd.exe.

    Embedded double quotes are backslash-escaped and a trailing backslash is
    doubled so it cannot escape the closing quote. A ``%NAME%`` piece is
    emitted as ``^%"NAME"^%`` so cmd.exe does not expand it.
    """

    if value == "":
        return '""'

    escaped: list[str] = []
    quote = False
    for part in _QUOTE_SPLIT.split(value):
        if not part:
            continue
        if part == '"':
            escaped.append('\\"')
        elif _is_surrounded_by(part, "%"):
            escaped.append('^%"' + part[1:-1] + '"^%')
        else:
            if part.endswith("\\"):
                part += "\\"
            quote = True
            escaped.append(part)

    result = "".join(escaped)
    if quote:
        return f'"{result}"'
    return result


def select_escaper(os_name: str | None = None) -> Escaper:
    """Return the escaping strategy for the platform shell."""

    current_os_name = os_name or os.name
    if current_os_name == "nt":
        return escape_native_shell
    return escape_posix


def _is_surrounded_by(value: str, char: str) -> bool:
    return len(value) > 2 and value[0] == char and value[-1] == char
