"""Context-aware tab completer for the PySh shell.

The completer separates **what to complete** (pure logic, fully
testable) from **how to wire it** (readline integration in the REPL).

The ``complete(text, state)`` method is the readline callback.  It
delegates to ``completions(text, line)`` which analyses the input
context and returns a list of candidate strings.
"""

from __future__ import annotations

import os
import readline
from typing import TYPE_CHECKING

from py_sh.logging import LogLevel

if TYPE_CHECKING:
    from py_sh.shell import Shell


class Completer:
    """Context-aware tab completer for the PySh shell."""

    def __init__(self, shell: Shell, *, search_path: str | None = None) -> None:
        """Create a completer attached to a shell instance.

        Args:
            shell: The shell whose built-in names are offered.
            search_path: ``PATH``-style directory list for program
                names.  Defaults to the ``PATH`` environment variable.

        """
        self._shell = shell
        self._search_path = search_path

    def complete(self, text: str, state: int) -> str | None:
        """Readline callback — return the *state*-th candidate for *text*.

        Args:
            text: The partial word being completed.
            state: Index into the candidate list (0, 1, 2, …).

        Returns:
            The candidate at *state*, or ``None`` when exhausted.

        """
        line = readline.get_line_buffer()
        candidates = self.completions(text, line)
        if state < len(candidates):
            return candidates[state]
        return None

    def completions(self, text: str, line: str) -> list[str]:
        """Return completion candidates based on context.

        Args:
            text: The partial word under the cursor.
            line: The full input line so far.

        Returns:
            Sorted list of matching candidates.

        """
        words = line.lstrip().split()

        # No words yet, or still typing the first word → command completion
        if not words or (len(words) == 1 and not line.endswith(" ")):
            return self._complete_commands(text)

        if words[0] == "log":
            return sorted(level.name for level in LogLevel if level.name.startswith(text.upper()))

        return self._complete_paths(text)

    # -- private completers ------------------------------------------------

    def _complete_commands(self, text: str) -> list[str]:
        """Complete built-in names and executables found on the search path."""
        names = {cmd for cmd in self._shell.command_names if cmd.startswith(text)}
        names.update(self._executables(text))
        return sorted(names)

    def _executables(self, prefix: str) -> set[str]:
        """Return executable file names on the search path starting with *prefix*."""
        search_path = self._search_path
        if search_path is None:
            search_path = os.environ.get("PATH", "")
        found: set[str] = set()
        for directory in filter(None, search_path.split(os.pathsep)):
            try:
                entries = list(os.scandir(directory))
            except OSError:
                continue
            found.update(
                entry.name
                for entry in entries
                if entry.name.startswith(prefix)
                and entry.is_file()
                and os.access(entry.path, os.X_OK)
            )
        return found

    @staticmethod
    def _complete_paths(text: str) -> list[str]:
        """Complete local filesystem paths.

        Split the partial path into a directory and a name prefix, list
        the directory, and filter by prefix.  Directories get a
        trailing ``/`` suffix.  Dotfiles are only offered when the
        prefix itself starts with a dot.
        """
        last_slash = text.rfind("/")
        directory = text[: last_slash + 1]
        prefix = text[last_slash + 1 :]

        try:
            entries = list(os.scandir(directory or "."))
        except OSError:
            return []

        candidates: list[str] = []
        for entry in entries:
            if not entry.name.startswith(prefix):
                continue
            if entry.name.startswith(".") and not prefix.startswith("."):
                continue
            full = directory + entry.name
            if entry.is_dir():
                full += "/"
            candidates.append(full)

        return sorted(candidates)
