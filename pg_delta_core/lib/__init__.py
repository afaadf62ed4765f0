"""
Core library: catalog snapshots, per-kind diffs, ordering and rendering.
"""

from pg_delta_core.lib.catalog import Catalog, Depend, load_catalog
from pg_delta_core.lib.change import Change, Operation, Scope
from pg_delta_core.lib.context import DiffContext
from pg_delta_core.lib.diff import diff_catalogs
from pg_delta_core.lib.errors import CatalogLoadError, ChangeValidationError, CycleError, PgDeltaError
from pg_delta_core.lib.integrations import (
    EnvDependentConfig,
    MaskingConfig,
    create_env_dependent_filter,
    create_masking_serializer,
)
from pg_delta_core.lib.plan import Plan, create_plan
from pg_delta_core.lib.render import RenderOptions, render_change, render_script
from pg_delta_core.lib.sorter import check_order, sort_changes

__all__ = [
    # Snapshots
    "Catalog",
    "Depend",
    "load_catalog",

    # Changes
    "Change",
    "Operation",
    "Scope",
    "DiffContext",
    "diff_catalogs",

    # Ordering
    "sort_changes",
    "check_order",

    # Integrations and rendering
    "EnvDependentConfig",
    "MaskingConfig",
    "create_env_dependent_filter",
    "create_masking_serializer",
    "RenderOptions",
    "render_change",
    "render_script",

    # Planning
    "Plan",
    "create_plan",

    # Errors
    "PgDeltaError",
    "CatalogLoadError",
    "ChangeValidationError",
    "CycleError",
]
