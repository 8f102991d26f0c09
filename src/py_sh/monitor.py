"""Job monitors — one waiter per registered child process.

A monitor owns exactly one ``asyncio.subprocess.Process``.  Nothing
else touches the handle.  Its single job is to wait for the child to
exit, reap it, and remove the job from the table.

Foreground monitors are awaited inline by the shell, so no new line is
read until the job settles.  Background monitors are wrapped in an
``asyncio`` task and finish whenever their child does, in any order.
Each one deletes only its own job id.

The wait itself never holds the table lock.  The table is touched only
after the child has exited, in short synchronous calls.
"""

import asyncio
from typing import TypeAlias
from collections.abc import Callable

from py_sh.jobs import JobState, JobTable
from py_sh.logging import Logger, LogLevel

# Callback that prints an asynchronous notice to the user.
NotifySink: TypeAlias = Callable[[str], None]


class ReapError(Exception):
    """Raised when waiting on an owned child process fails.

    A spawned child must always be waitable by its monitor, so this
    signals a broken invariant rather than a user error.
    """


class JobMonitor:
    """Wait for one registered child and reconcile the job table."""

    def __init__(
        self,
        *,
        table: JobTable,
        job_id: int,
        process: asyncio.subprocess.Process,
        state: JobState,
        logger: Logger,
        notify: NotifySink,
    ) -> None:
        """Create a monitor that takes ownership of *process*.

        Args:
            table: The shared job table the job is registered in.
            job_id: The id the table assigned to this child.
            process: The child's process handle.
            state: Foreground or background.
            logger: Event log for exit records.
            notify: Where background termination notices go.

        """
        self._table = table
        self._job_id = job_id
        self._process = process
        self._state = state
        self._logger = logger
        self._notify = notify

    @property
    def job_id(self) -> int:
        """Return the job id being monitored."""
        return self._job_id

    @property
    def pid(self) -> int:
        """Return the child's process id."""
        return self._process.pid

    @property
    def state(self) -> JobState:
        """Return whether this is a foreground or background job."""
        return self._state

    def start_notice(self) -> str:
        """Return the ``[id] (pid) command_line`` line shown on launch."""
        command_line = self._table.get_cmdline(self._job_id) or ""
        return f"[{self._job_id}] ({self.pid}) {command_line}"

    async def wait(self) -> int:
        """Wait for the child to exit, then remove its job.

        Returns:
            The child's exit status (negative for death by signal).

        Raises:
            ReapError: If the child cannot be waited on.  The job row is
                left in place since the process may still exist.

        """
        try:
            returncode = await self._process.wait()
        except OSError as exc:
            self._logger.log(
                LogLevel.ERROR,
                f"job [{self._job_id}] could not be reaped: {exc}",
                source="monitor",
                pid=self.pid,
            )
            msg = f"failed to reap job [{self._job_id}] (pid {self.pid}): {exc}"
            raise ReapError(msg) from exc

        command_line = self._table.get_cmdline(self._job_id)
        self._logger.log(
            LogLevel.INFO,
            f"job [{self._job_id}] exited with status {returncode}: {command_line}",
            source="monitor",
            pid=self.pid,
        )
        if self._state is JobState.BACKGROUND:
            self._notify(f"Job [{self._job_id}] ({self.pid}) terminated")
        self._table.delete(self._job_id)
        return returncode
