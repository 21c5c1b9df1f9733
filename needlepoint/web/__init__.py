"""HTTP API over a project session."""

from needlepoint.web.server import create_app, run_server

__all__ = ["create_app", "run_server"]
