"""Shell configuration — tunables read from environment variables.

A shell inherits its environment from whoever started it, so that is
where its knobs live.  ``ShellConfig`` is a plain frozen dataclass:
tests build one with keyword arguments, the REPL builds one with
``ShellConfig.from_environ(os.environ)``.

Recognised variables:
    - ``PYSH_LOG_LEVEL`` — minimum level shown by ``log`` (default INFO).
    - ``PYSH_LOG_CAPACITY`` — entries kept in the event log (default 1000).
    - ``PYSH_DASHBOARD_PORT`` — serve the web dashboard on this port.
    - ``PYSH_DASHBOARD_HOST`` — dashboard bind address (default 127.0.0.1).
"""

from collections.abc import Mapping
from dataclasses import dataclass

from py_sh.logging import DEFAULT_CAPACITY, LogLevel

_MAX_PORT = 65535


class ConfigError(Exception):
    """Raised when an environment variable holds an invalid value."""


@dataclass(frozen=True)
class ShellConfig:
    """Runtime settings for a shell session.

    Attributes:
        log_level: Minimum level the ``log`` built-in displays.
        log_capacity: Maximum number of retained log entries.
        dashboard_host: Address the dashboard binds to.
        dashboard_port: Dashboard port, or None to disable it.

    """

    log_level: LogLevel = LogLevel.INFO
    log_capacity: int = DEFAULT_CAPACITY
    dashboard_host: str = "127.0.0.1"
    dashboard_port: int | None = None

    @classmethod
    def from_environ(cls, environ: Mapping[str, str]) -> "ShellConfig":
        """Build a config from ``PYSH_*`` variables, defaulting the rest.

        Raises:
            ConfigError: If a variable cannot be parsed.

        """
        level_name = environ.get("PYSH_LOG_LEVEL", LogLevel.INFO.name).upper()
        try:
            log_level = LogLevel[level_name]
        except KeyError:
            msg = f"PYSH_LOG_LEVEL: unknown level '{level_name}'"
            raise ConfigError(msg) from None

        log_capacity = _parse_int(environ, "PYSH_LOG_CAPACITY", DEFAULT_CAPACITY)
        if log_capacity < 1:
            msg = f"PYSH_LOG_CAPACITY: must be positive, got {log_capacity}"
            raise ConfigError(msg)

        port: int | None = None
        if "PYSH_DASHBOARD_PORT" in environ:
            port = _parse_int(environ, "PYSH_DASHBOARD_PORT", 0)
            if not 0 < port <= _MAX_PORT:
                msg = f"PYSH_DASHBOARD_PORT: out of range: {port}"
                raise ConfigError(msg)

        return cls(
            log_level=log_level,
            log_capacity=log_capacity,
            dashboard_host=environ.get("PYSH_DASHBOARD_HOST", "127.0.0.1"),
            dashboard_port=port,
        )


def _parse_int(environ: Mapping[str, str], key: str, default: int) -> int:
    """Read an integer variable, raising ConfigError on garbage."""
    raw = environ.get(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        msg = f"{key}: invalid integer '{raw}'"
        raise ConfigError(msg) from None
