"""
pg-delta: PostgreSQL schema diff engine

This package compares two catalog snapshots of a PostgreSQL database and
produces the ordered DDL script that turns the first into the second.
"""

__version__ = "0.1.0"

# Import core library functionality
from pg_delta_core.lib import (
    Catalog,
    Plan,
    create_plan,
    diff_catalogs,
    load_catalog,
    sort_changes,
)

# Import CLI and API interfaces
from pg_delta_core.cli import main
from pg_delta_core.api import app

__all__ = [
    # Core library exports
    "Catalog",
    "Plan",
    "create_plan",
    "diff_catalogs",
    "load_catalog",
    "sort_changes",

    # Interface exports
    "main",
    "app"
]
