"""Payroll run computation and lifecycle."""

__version__ = "1.0.0"
