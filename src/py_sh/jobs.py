"""Job table — the shell's registry of in-flight child processes.

In Unix, a "job" is a shell concept layered on top of OS processes.
When you run ``sleep 60 &``, the shell spawns a process *and* records
a job entry to track it.  The ``jobs`` built-in reads these entries.

Key ideas:
    - **Jobs are not processes** — a job wraps a PID with a small
      shell-scoped job id, a state, and the original command text.
    - **At most one foreground job** — the shell waits on it before
      reading the next line, so a second one is a logic error.
    - **Job ids follow a watermark** — the next id is one past the
      highest id still present.  Deleting the highest job makes its id
      available again; deleting a lower one leaves a gap that is never
      refilled.

Design choices:
    - ``JobTable`` is constructed explicitly and handed to every task
      that needs it.  There is no module-level table.
    - Every operation takes one ``threading.Lock`` and never awaits, so
      the asyncio loop and the dashboard thread can both use it and no
      background completion ever queues behind a foreground wait.
"""

import dataclasses
import threading
from dataclasses import dataclass
from enum import StrEnum
from typing import TextIO


class JobState(StrEnum):
    """Execution state of a shell job."""

    FOREGROUND = "Foreground"
    BACKGROUND = "Background"


class JobTableError(Exception):
    """Base class for job table failures."""


class ForegroundConflictError(JobTableError):
    """Raised when a second foreground job is added."""

    def __init__(self) -> None:
        """Create the error with the user-facing message."""
        super().__init__("Can't add a foreground job if a foreground job already exists")


@dataclass
class Job:
    """A tracked child process plus its shell-level metadata.

    Attributes:
        job_id: Shell-scoped job number ([0], [1], ...).
        pid: The operating-system process id.
        state: Foreground or background.
        command_line: The text that started the process (display only).

    """

    job_id: int
    pid: int
    state: JobState
    command_line: str

    def __str__(self) -> str:
        """Format as ``[id] (pid) state command_line``."""
        return f"[{self.job_id}] ({self.pid}) {self.state} {self.command_line}"


class JobTable:
    """Synchronized mapping of job ids to jobs.

    Invariants maintained by every operation:
        - at most one job is in the foreground, and ``foreground_job``
          names it;
        - ``high_watermark`` is the largest id present, or None when
          the table is empty.
    """

    def __init__(self) -> None:
        """Create an empty job table."""
        self._lock = threading.Lock()
        self._jobs: dict[int, Job] = {}
        self._foreground_job: int | None = None
        self._high_watermark: int | None = None

    @property
    def foreground_job(self) -> int | None:
        """Return the id of the current foreground job, if any."""
        with self._lock:
            return self._foreground_job

    @property
    def high_watermark(self) -> int | None:
        """Return the highest job id currently in the table, if any."""
        with self._lock:
            return self._high_watermark

    def add(self, *, pid: int, state: JobState, command_line: str) -> int:
        """Register a freshly spawned process and return its job id.

        Args:
            pid: The child's process id.
            state: Whether the shell will wait on it (foreground) or not.
            command_line: The original command text.

        Returns:
            The allocated job id.

        Raises:
            ForegroundConflictError: If *state* is foreground and a
                foreground job already exists.  Nothing is changed.

        """
        with self._lock:
            if state is JobState.FOREGROUND and self._foreground_job is not None:
                raise ForegroundConflictError

            job_id = 0 if self._high_watermark is None else self._high_watermark + 1
            self._jobs[job_id] = Job(
                job_id=job_id, pid=pid, state=state, command_line=command_line
            )
            self._high_watermark = job_id
            if state is JobState.FOREGROUND:
                self._foreground_job = job_id
            return job_id

    def delete(self, job_id: int) -> bool:
        """Remove a job and return whether it existed.

        Removing the highest id lowers the watermark to the next highest
        remaining id.  Removing the foreground job clears the foreground
        slot.
        """
        with self._lock:
            removed = self._jobs.pop(job_id, None)
            if job_id == self._high_watermark:
                self._high_watermark = max(self._jobs, default=None)
            if job_id == self._foreground_job:
                self._foreground_job = None
            return removed is not None

    def get(self, job_id: int) -> Job | None:
        """Return a copy of the job with *job_id*, or None."""
        with self._lock:
            job = self._jobs.get(job_id)
            return dataclasses.replace(job) if job is not None else None

    def get_state(self, job_id: int) -> JobState | None:
        """Return the state of a job, or None if it does not exist."""
        job = self.get(job_id)
        return job.state if job is not None else None

    def get_pid(self, job_id: int) -> int | None:
        """Return the PID of a job, or None if it does not exist."""
        job = self.get(job_id)
        return job.pid if job is not None else None

    def get_cmdline(self, job_id: int) -> str | None:
        """Return the command line of a job, or None if it does not exist."""
        job = self.get(job_id)
        return job.command_line if job is not None else None

    def pid_to_jid(self, pid: int) -> int | None:
        """Return the job id tracking *pid*, or None."""
        with self._lock:
            return next((jid for jid, job in self._jobs.items() if job.pid == pid), None)

    def snapshot(self) -> list[Job]:
        """Return copies of every tracked job."""
        with self._lock:
            return [dataclasses.replace(job) for job in self._jobs.values()]

    def list_jobs(self, sink: TextIO) -> None:
        """Write one ``[id] (pid) state command_line`` line per job to *sink*.

        Entries are written in no particular order.  The rows are copied
        under the lock and written after releasing it, so a slow sink
        never blocks other table users.
        """
        for job in self.snapshot():
            sink.write(f"{job}\n")

    def __len__(self) -> int:
        """Return the number of tracked jobs."""
        with self._lock:
            return len(self._jobs)
