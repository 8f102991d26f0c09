"""Read-only web dashboard for PySh.

This package provides a Flask application that exposes the shell's job
table and event log over HTTP.  It is an **optional** extra — install
with::

    pip install py-sh[web]

The ``create_app`` factory in ``app.py`` serves three endpoints:

- ``GET /api/jobs`` — every tracked job.
- ``GET /api/log`` — event log entries, optionally filtered by level.
- ``GET /api/status`` — job counts and the current foreground job.
"""
