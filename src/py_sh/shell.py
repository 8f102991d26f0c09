"""The shell — dispatch parsed command lines to built-ins or child processes.

The shell reads one line at a time, parses it into a ``Command``, and
either runs a built-in or launches an external program.

Foreground programs are waited on right here: ``execute`` does not
return until the child has exited and its job row is gone.  Background
programs are handed to a monitor task and ``execute`` returns their
``[id] (pid) command`` notice immediately.

Design choices:
    - **Returns strings, not prints.**  ``execute`` returns the text to
      show.  Only background termination notices, which happen at
      arbitrary moments, go through the ``notify`` callback.
    - **Command dispatch via a dict.**  Built-ins are looked up by name
      before anything is spawned.
    - **One failing command never ends the session.**  Launch and table
      errors come back as messages.  Only a failure to reap a child
      escapes, because that means the job table can no longer be
      trusted.
"""

import asyncio
import io
from typing import TypeAlias
from collections.abc import Awaitable, Callable

from py_sh.command import Command, CommandSyntaxError, parse_command
from py_sh.config import ShellConfig
from py_sh.jobs import JobState, JobTable, JobTableError
from py_sh.launcher import LaunchError, Launcher
from py_sh.logging import Logger, LogLevel
from py_sh.monitor import NotifySink

# Type alias for a built-in handler: takes the parsed command, returns output.
_Handler: TypeAlias = Callable[[Command], Awaitable[str]]


class Shell:
    """Command dispatcher owning the job table and background monitors."""

    EXIT_SENTINEL = "__EXIT__"

    def __init__(
        self,
        *,
        config: ShellConfig | None = None,
        table: JobTable | None = None,
        logger: Logger | None = None,
        notify: NotifySink = print,
    ) -> None:
        """Create a shell.

        Args:
            config: Session settings (defaults if omitted).
            table: Job table to use; a fresh one is created if omitted.
            logger: Event log to use; a fresh one is created if omitted.
            notify: Receives background termination notices.

        """
        self._config = config if config is not None else ShellConfig()
        self._table = table if table is not None else JobTable()
        self._logger = logger if logger is not None else Logger(capacity=self._config.log_capacity)
        self._notify = notify
        self._launcher = Launcher(table=self._table, logger=self._logger, notify=notify)
        self._background: set[asyncio.Task[int]] = set()

        self._commands: dict[str, _Handler] = {
            "help": self._cmd_help,
            "jobs": self._cmd_jobs,
            "wait": self._cmd_wait,
            "log": self._cmd_log,
            "exit": self._cmd_exit,
        }

    @property
    def table(self) -> JobTable:
        """Return the shared job table."""
        return self._table

    @property
    def logger(self) -> Logger:
        """Return the event log."""
        return self._logger

    @property
    def config(self) -> ShellConfig:
        """Return the session configuration."""
        return self._config

    @property
    def command_names(self) -> list[str]:
        """Return the sorted names of all built-in commands."""
        return sorted(self._commands)

    @property
    def background_count(self) -> int:
        """Return how many background monitors have not finished."""
        return len(self._background)

    async def execute(self, line: str) -> str:
        """Parse and execute one command line.

        Args:
            line: The raw line (e.g. ``"sleep 5 &"``).

        Returns:
            Text to display (possibly empty), or ``EXIT_SENTINEL``.

        Raises:
            ReapError: If a foreground child cannot be waited on.

        """
        try:
            command = parse_command(line)
        except CommandSyntaxError as e:
            return f"pysh: {e}"
        if command is None:
            return ""

        handler = self._commands.get(command.executable)
        if handler is not None:
            return await handler(command)
        return await self._run_external(command)

    async def join(self) -> None:
        """Wait until every background monitor has finished.

        Raises:
            ReapError: If any background child could not be reaped.

        """
        if self._background:
            await asyncio.gather(*list(self._background))

    async def _run_external(self, command: Command) -> str:
        """Launch a program and wait on it or detach its monitor."""
        try:
            monitor = await self._launcher.launch(command)
        except (LaunchError, JobTableError) as e:
            return str(e)

        if monitor.state is JobState.FOREGROUND:
            await monitor.wait()
            return ""

        task = asyncio.create_task(monitor.wait(), name=f"job-{monitor.job_id}")
        self._background.add(task)
        task.add_done_callback(self._on_background_done)
        return monitor.start_notice()

    def _on_background_done(self, task: asyncio.Task[int]) -> None:
        """Forget a finished monitor; keep failed ones for ``join``."""
        if task.cancelled():
            self._background.discard(task)
            return
        exc = task.exception()
        if exc is None:
            self._background.discard(task)
            return
        self._notify(f"pysh: {exc}")

    # -- Command handlers ------------------------------------------------

    async def _cmd_help(self, _command: Command) -> str:
        """List available built-in commands."""
        return "Available commands: " + ", ".join(self.command_names)

    async def _cmd_jobs(self, command: Command) -> str:
        """List tracked jobs, or write them to ``> file``."""
        buffer = io.StringIO()
        self._table.list_jobs(buffer)
        listing = buffer.getvalue()
        if command.stdout_path is None:
            return listing.rstrip("\n")
        try:
            await asyncio.to_thread(_write_text, command.stdout_path, listing)
        except OSError as e:
            return f"{command.stdout_path}: {e.strerror or e}"
        return ""

    async def _cmd_wait(self, _command: Command) -> str:
        """Block until all background jobs have terminated."""
        await self.join()
        return ""

    async def _cmd_log(self, command: Command) -> str:
        """Show event log entries at or above a level."""
        min_level = self._config.log_level
        if command.args:
            try:
                min_level = LogLevel[command.args[0].upper()]
            except KeyError:
                return "Usage: log [DEBUG|INFO|WARNING|ERROR]"
        entries = self._logger.filter(min_level=min_level)
        return "\n".join(str(e) for e in entries) if entries else "No log entries."

    async def _cmd_exit(self, _command: Command) -> str:
        """Signal the REPL to stop."""
        return self.EXIT_SENTINEL


def _write_text(path: str, text: str) -> None:
    """Create or truncate *path* and write *text* to it."""
    with open(path, "w") as f:  # noqa: PTH123
        f.write(text)
