"""Flask application factory for the PySh dashboard.

The dashboard only reads.  It shares the shell's ``JobTable`` and
``Logger`` objects and runs on its own thread, which is why the table
guards itself with a ``threading.Lock`` rather than relying on the
event loop.
"""

from __future__ import annotations

import threading

from flask import Flask, Response, jsonify, request

from py_sh.jobs import JobState, JobTable
from py_sh.logging import Logger, LogLevel

_HTTP_BAD_REQUEST = 400


def create_app(*, table: JobTable, logger: Logger) -> Flask:
    """Create and configure the dashboard application.

    Args:
        table: The job table to expose.
        logger: The event log to expose.

    Returns:
        A configured Flask application ready to serve.

    """
    app = Flask(__name__)

    @app.route("/api/jobs")
    def jobs() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return every tracked job as JSON."""
        return jsonify(
            [
                {
                    "job_id": job.job_id,
                    "pid": job.pid,
                    "state": str(job.state),
                    "command_line": job.command_line,
                }
                for job in sorted(table.snapshot(), key=lambda j: j.job_id)
            ]
        )

    @app.route("/api/log")
    def log() -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Return event log entries.

        Accepts optional ``level`` (e.g. ``?level=warning``) and ``pid``
        query parameters.
        """
        level_name = request.args.get("level", LogLevel.DEBUG.name).upper()
        try:
            min_level = LogLevel[level_name]
        except KeyError:
            return jsonify({"error": f"Unknown level '{level_name}'"}), _HTTP_BAD_REQUEST
        pid = request.args.get("pid", type=int)
        if "pid" in request.args and pid is None:
            return jsonify({"error": "pid must be an integer"}), _HTTP_BAD_REQUEST
        return jsonify(
            [
                {
                    "level": entry.level.name,
                    "source": entry.source,
                    "message": entry.message,
                    "pid": entry.pid,
                }
                for entry in logger.filter(min_level=min_level, pid=pid)
            ]
        )

    @app.route("/api/status")
    def status() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return job counts and the foreground job id."""
        snapshot = table.snapshot()
        background = sum(1 for job in snapshot if job.state is JobState.BACKGROUND)
        return jsonify(
            {
                "jobs": len(snapshot),
                "background_jobs": background,
                "foreground_job": table.foreground_job,
                "high_watermark": table.high_watermark,
            }
        )

    return app


def serve_in_background(app: Flask, *, host: str, port: int) -> threading.Thread:
    """Run *app* on a daemon thread alongside the REPL.

    Returns:
        The started server thread.

    """
    thread = threading.Thread(
        target=app.run,
        kwargs={"host": host, "port": port, "use_reloader": False},
        name="pysh-dashboard",
        daemon=True,
    )
    thread.start()
    return thread
