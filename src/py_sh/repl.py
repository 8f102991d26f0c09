"""Interactive REPL (Read-Eval-Print Loop) for the shell.

The REPL is the terminal interface.  It builds a shell from the
environment's configuration and enters the classic loop:

    1. **Read** — display a prompt and read user input.
    2. **Eval** — pass the line to ``shell.execute()``.
    3. **Print** — display the result.
    4. **Loop** — repeat until ``exit`` or end of input.

The loop runs inside ``asyncio``.  Reading a line happens on a worker
thread, so background monitors keep reaping children (and printing
their notices) while the prompt is waiting.  A foreground job is
awaited by ``execute`` itself, so no prompt appears until it settles.

The helper functions (``build_prompt``, ``format_banner``) are pure
and testable.  The ``run()`` function is the I/O entrypoint.
"""

import asyncio
import contextlib
import getpass
import os
import readline
import socket
import sys
import threading
from typing import TypeAlias
from collections.abc import Callable
from pathlib import Path

from py_sh.completer import Completer
from py_sh.config import ConfigError, ShellConfig
from py_sh.shell import Shell

_BANNER_WIDTH = 38

# Signature of ``input``: shows a prompt, returns a line, raises EOFError.
LineReader: TypeAlias = Callable[[str], str]


def format_banner(config: ShellConfig) -> str:
    """Format the startup banner.

    Args:
        config: The session configuration (for the dashboard address).

    Returns:
        A formatted string suitable for printing to the console.

    """
    border = "=" * _BANNER_WIDTH
    header = f"\n  {border}\n            PySh v0.1.0\n     A job-controlling shell\n  {border}\n"
    lines = [header]
    if config.dashboard_port is not None:
        lines.append(
            f"  Dashboard: http://{config.dashboard_host}:{config.dashboard_port}/api/status"
        )
    lines.append("Type 'help' for built-ins, 'exit' to quit.\n")
    return "\n".join(lines)


def build_prompt() -> str:
    """Build the prompt string ``user@host cwd $ ``.

    Any piece that cannot be determined is shown as ``?``.
    """
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = "?"
    try:
        cwd = str(Path.cwd())
    except OSError:
        cwd = "?"
    return f"{user}@{socket.gethostname()} {cwd} $ "


async def _read_line(reader: LineReader, prompt: str) -> str:
    """Call *reader* on a daemon thread and await its line.

    The thread is a daemon: interpreter exit after Ctrl+C must not wait
    on a blocked ``input``.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[str] = loop.create_future()

    def _resolve(line: str | None, exc: Exception | None) -> None:
        if future.cancelled():
            return
        if exc is not None:
            future.set_exception(exc)
        else:
            future.set_result(line or "")

    def _work() -> None:
        try:
            line, exc = reader(prompt), None
        except Exception as e:  # noqa: BLE001
            line, exc = None, e
        # The loop may already be closed after Ctrl+C.
        with contextlib.suppress(RuntimeError):
            loop.call_soon_threadsafe(_resolve, line, exc)

    threading.Thread(target=_work, name="pysh-input", daemon=True).start()
    return await future


async def repl_loop(shell: Shell, *, reader: LineReader = input) -> None:
    """Read and execute lines until ``exit`` or end of input.

    Background jobs still running when the loop ends are waited on, so
    every child the shell started has been reaped before this returns.

    Args:
        shell: The shell to drive.
        reader: Line source, ``input`` by default.

    """
    while True:
        try:
            line = await _read_line(reader, build_prompt())
        except EOFError:
            # Ctrl+D — graceful exit
            print()  # noqa: T201
            break

        result = await shell.execute(line)
        if result == Shell.EXIT_SENTINEL:
            break
        if result:
            print(result)  # noqa: T201

    if shell.background_count:
        print(f"Waiting for {shell.background_count} background job(s)...")  # noqa: T201
        await shell.join()


def run() -> None:
    """Start the shell and run the interactive REPL.

    This is the ``py-sh`` console entry point.  It handles:
    - Configuration from ``PYSH_*`` environment variables.
    - Tab completion via readline.
    - The optional web dashboard.
    - The read-eval-print loop and Ctrl+C.
    """
    try:
        config = ShellConfig.from_environ(os.environ)
    except ConfigError as e:
        print(f"pysh: {e}", file=sys.stderr)  # noqa: T201
        raise SystemExit(2) from e

    shell = Shell(config=config)

    # Wire up tab completion via readline.
    completer = Completer(shell)
    readline.set_completer(completer.complete)
    readline.set_completer_delims(" \t<>&")
    readline.parse_and_bind("tab: complete")

    if config.dashboard_port is not None:
        from py_sh.web.app import create_app, serve_in_background  # noqa: PLC0415

        app = create_app(table=shell.table, logger=shell.logger)
        serve_in_background(app, host=config.dashboard_host, port=config.dashboard_port)

    print(format_banner(config))  # noqa: T201

    try:
        asyncio.run(repl_loop(shell))
    except KeyboardInterrupt:
        print("\nInterrupted.")  # noqa: T201
