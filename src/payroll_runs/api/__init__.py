"""HTTP API."""

from payroll_runs.api.app import create_app

__all__ = ["create_app"]
