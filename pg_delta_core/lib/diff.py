"""
Run every per-kind diff over two catalogs.
"""

import logging
from typing import List, Optional

from pg_delta_core.lib.catalog import Catalog
from pg_delta_core.lib.change import Change
from pg_delta_core.lib.context import DiffContext
from pg_delta_core.lib.objects import OBJECT_TYPES
from pg_delta_core.lib.replace import expand_replace_dependencies


def diff_catalogs(main: Catalog, branch: Catalog, ctx: Optional[DiffContext] = None) -> List[Change]:
    """
    Compute the unordered changes that turn main into branch.

    Each kind is diffed independently; kinds only refer to each other
    through the stable ids in their changes' requires lists. Dependents of
    replaced objects are then replaced with them.
    """
    ctx = ctx or DiffContext.from_catalogs(main, branch)
    changes = []
    for object_type in OBJECT_TYPES:
        kind_changes = object_type.diff(
            ctx,
            getattr(main, object_type.attribute),
            getattr(branch, object_type.attribute),
        )
        if kind_changes:
            logging.debug(f"{object_type.kind}: {len(kind_changes)} changes")
        changes.extend(kind_changes)
    changes = expand_replace_dependencies(ctx, changes)
    logging.info(f"Diff produced {len(changes)} changes")
    return changes
