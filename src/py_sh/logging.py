"""Shell event log — what happened to each child process, in order.

The launcher and the monitors write here as a job moves through its
life: spawned, registered (or refused and killed), exited, or failed to
reap.  Redirect and spawn failures land here too, at WARNING, even
though the user already saw the message.

Readers are the ``log`` built-in and the dashboard's ``/api/log``.
Entries carry the child's pid when there is one, so the history of a
single process can be pulled out with ``filter(pid=...)``.

The buffer is a ``deque`` with a fixed ``maxlen``: a shell left open
for days keeps only the newest ``capacity`` entries.
"""

from collections import deque
from dataclasses import dataclass
from enum import IntEnum

DEFAULT_CAPACITY = 1000


class LogLevel(IntEnum):
    """Severity, ordered so ``>=`` means "at least this bad"."""

    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3


@dataclass(frozen=True)
class LogEntry:
    """One event.

    Attributes:
        level: How serious the event is.
        message: What happened, in words.
        source: Which component wrote it ("launcher", "monitor", ...).
        pid: The child process concerned, or ``None``.

    """

    level: LogLevel
    message: str
    source: str
    pid: int | None = None

    def __str__(self) -> str:
        """Format as ``[LEVEL] source: message``, plus ``(pid N)`` if known."""
        text = f"[{self.level.name}] {self.source}: {self.message}"
        return text if self.pid is None else f"{text} (pid {self.pid})"


class Logger:
    """Bounded event log for job lifecycle records."""

    def __init__(self, *, capacity: int = DEFAULT_CAPACITY) -> None:
        """Create an empty log that keeps at most *capacity* entries."""
        self._entries: deque[LogEntry] = deque(maxlen=capacity)

    @property
    def entries(self) -> list[LogEntry]:
        """Return a copy of the retained entries, oldest first."""
        return list(self._entries)

    def log(
        self,
        level: LogLevel,
        message: str,
        *,
        source: str,
        pid: int | None = None,
    ) -> None:
        """Record an event, dropping the oldest entry when full."""
        self._entries.append(LogEntry(level=level, message=message, source=source, pid=pid))

    def filter(
        self,
        *,
        min_level: LogLevel | None = None,
        source: str | None = None,
        pid: int | None = None,
    ) -> list[LogEntry]:
        """Return the entries that pass every criterion given.

        Args:
            min_level: Keep entries at or above this level.
            source: Keep entries written by this component.
            pid: Keep entries about this child process.

        """
        return [
            e
            for e in self._entries
            if (min_level is None or e.level >= min_level)
            and (source is None or e.source == source)
            and (pid is None or e.pid == pid)
        ]

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()
