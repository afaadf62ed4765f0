"""
Command line interface for pg-delta.
"""

from pg_delta_core.cli.cli import main

__all__ = ["main"]
