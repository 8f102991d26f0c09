"""Process launcher — turn a ``Command`` into a registered child process.

Launching happens in three steps, and the order matters:

1. **Resolve streams.**  ``< file`` and ``> file`` are opened first.
   If either fails, nothing is spawned.  Without a redirect, a
   foreground job shares the terminal and a background job gets
   ``/dev/null`` so it can neither steal input nor scribble over the
   prompt.
2. **Spawn.**  Only a successfully started child reaches the table, so
   there are never phantom job entries.
3. **Register.**  If the table refuses the job (a second foreground
   job), the child is already running.  It is killed and reaped here,
   before the error propagates, so it never becomes an untracked
   zombie.
"""

import asyncio
import contextlib
from typing import IO, Any

from py_sh.command import Command
from py_sh.jobs import JobState, JobTable, JobTableError
from py_sh.logging import Logger, LogLevel
from py_sh.monitor import JobMonitor, NotifySink


class LaunchError(Exception):
    """Base class for failures that stop a command from starting."""


class SpawnError(LaunchError):
    """Raised when the OS refuses to start the process."""


class RedirectOpenError(LaunchError):
    """Raised when a redirect file cannot be opened."""


class Launcher:
    """Spawn child processes and register them in the job table."""

    def __init__(self, *, table: JobTable, logger: Logger, notify: NotifySink) -> None:
        """Create a launcher bound to a job table.

        Args:
            table: Where spawned children are registered.
            logger: Event log for spawn and registration records.
            notify: Handed to each monitor for termination notices.

        """
        self._table = table
        self._logger = logger
        self._notify = notify

    async def launch(self, command: Command) -> JobMonitor:
        """Start *command* and return the monitor that owns its process.

        Raises:
            RedirectOpenError: If a redirect file cannot be opened.
            SpawnError: If the process cannot be started.
            JobTableError: If registration fails.  The child has been
                killed and reaped by the time this propagates.

        """
        default = None if command.state is JobState.FOREGROUND else asyncio.subprocess.DEVNULL
        with contextlib.ExitStack() as stack:
            stdin = await self._open_redirect(stack, command.stdin_path, "rb", default)
            stdout = await self._open_redirect(stack, command.stdout_path, "wb", default)
            process = await self._spawn(command, stdin=stdin, stdout=stdout)
        return await self._register(command, process)

    async def _open_redirect(
        self,
        stack: contextlib.ExitStack,
        path: str | None,
        mode: str,
        default: int | None,
    ) -> IO[Any] | int | None:
        """Open a redirect target, or return the default stream."""
        if path is None:
            return default
        try:
            handle: IO[Any] = await asyncio.to_thread(open, path, mode)
        except (OSError, ValueError) as exc:
            # ValueError: the path holds a NUL byte.
            self._logger.log(LogLevel.WARNING, f"cannot open {path!r}: {exc}", source="launcher")
            msg = f"{path}: {_reason(exc)}"
            raise RedirectOpenError(msg) from exc
        return stack.enter_context(handle)

    async def _spawn(
        self,
        command: Command,
        *,
        stdin: IO[Any] | int | None,
        stdout: IO[Any] | int | None,
    ) -> asyncio.subprocess.Process:
        """Start the child with the resolved streams attached."""
        try:
            process = await asyncio.create_subprocess_exec(
                *command.argv, stdin=stdin, stdout=stdout
            )
        except (OSError, ValueError) as exc:
            self._logger.log(
                LogLevel.WARNING, f"spawn of {command.executable} failed: {exc}", source="launcher"
            )
            msg = f"{command.executable} errored: {exc}"
            raise SpawnError(msg) from exc
        self._logger.log(
            LogLevel.DEBUG,
            f"spawned {command.command_line}",
            source="launcher",
            pid=process.pid,
        )
        return process

    async def _register(
        self, command: Command, process: asyncio.subprocess.Process
    ) -> JobMonitor:
        """Add the child to the table, killing it if the table refuses."""
        try:
            job_id = self._table.add(
                pid=process.pid, state=command.state, command_line=command.command_line
            )
        except JobTableError as exc:
            self._logger.log(
                LogLevel.WARNING,
                f"registration refused ({exc}); killing {command.executable}",
                source="launcher",
                pid=process.pid,
            )
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
            raise

        self._logger.log(
            LogLevel.INFO,
            f"job [{job_id}] registered as {command.state}: {command.command_line}",
            source="launcher",
            pid=process.pid,
        )
        return JobMonitor(
            table=self._table,
            job_id=job_id,
            process=process,
            state=command.state,
            logger=self._logger,
            notify=self._notify,
        )


def _reason(exc: Exception) -> str:
    """Return the OS error text for *exc*, or its message."""
    if isinstance(exc, OSError) and exc.strerror:
        return exc.strerror
    return str(exc)
