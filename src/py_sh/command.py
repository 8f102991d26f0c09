"""Command records — what the shell hands to the process launcher.

A line like ``sort < names.txt > sorted.txt &`` is reduced to a
``Command``: executable ``sort``, no arguments, stdin from
``names.txt``, stdout to ``sorted.txt``, background state, and the
verbatim text for ``jobs`` to display.

Parsing is deliberately small: whitespace splitting, one ``<``, one
``>``, and a trailing ``&``.  There is no quoting, no pipes and no
``>>``.
"""

import re
from dataclasses import dataclass

from py_sh.jobs import JobState

_INPUT_REDIRECT = re.compile(r"<\s*([^\s<>]+)")
_OUTPUT_REDIRECT = re.compile(r">\s*([^\s<>]+)")
_STRAY_OPERATOR = re.compile(r"[<>]")


class CommandSyntaxError(Exception):
    """Raised when a command line cannot be parsed."""


@dataclass(frozen=True)
class Command:
    """A parsed command line.

    Attributes:
        executable: Program name (resolved via PATH) or built-in name.
        args: Arguments after the executable.
        state: Foreground unless the line ended with ``&``.
        stdin_path: File for ``< file``, if given.
        stdout_path: File for ``> file``, if given.
        command_line: The original line, stripped of surrounding space.

    """

    executable: str
    args: tuple[str, ...] = ()
    state: JobState = JobState.FOREGROUND
    stdin_path: str | None = None
    stdout_path: str | None = None
    command_line: str = ""

    @property
    def argv(self) -> list[str]:
        """Return the executable followed by its arguments."""
        return [self.executable, *self.args]


def parse_command(line: str) -> Command | None:
    """Parse one input line into a ``Command``.

    Args:
        line: Raw text as typed at the prompt.

    Returns:
        The parsed command, or None for a blank line.

    Raises:
        CommandSyntaxError: On a bare ``&``, a redirect operator
            without a target, or a repeated redirect.

    """
    stripped = line.strip()
    if not stripped:
        return None

    body = stripped
    state = JobState.FOREGROUND
    if body.endswith("&"):
        body = body[:-1].rstrip()
        if not body:
            msg = "syntax error near unexpected token '&'"
            raise CommandSyntaxError(msg)
        state = JobState.BACKGROUND

    body, stdout_path = _extract(body, _OUTPUT_REDIRECT)
    body, stdin_path = _extract(body, _INPUT_REDIRECT)
    if stray := _STRAY_OPERATOR.search(body):
        msg = f"syntax error near unexpected token '{stray.group()}'"
        raise CommandSyntaxError(msg)

    words = body.split()
    if not words:
        msg = "missing command"
        raise CommandSyntaxError(msg)

    return Command(
        executable=words[0],
        args=tuple(words[1:]),
        state=state,
        stdin_path=stdin_path,
        stdout_path=stdout_path,
        command_line=stripped,
    )


def _extract(body: str, pattern: re.Pattern[str]) -> tuple[str, str | None]:
    """Remove the first redirect matching *pattern* and return its target."""
    match = pattern.search(body)
    if match is None:
        return body, None
    remaining = body[: match.start()] + " " + body[match.end() :]
    return remaining, match.group(1)
