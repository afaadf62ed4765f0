"""
Planning facade: diff, order, filter and render in one call.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pg_delta_core.lib.catalog import Catalog
from pg_delta_core.lib.change import Change
from pg_delta_core.lib.context import DiffContext
from pg_delta_core.lib.diff import diff_catalogs
from pg_delta_core.lib.integrations import ChangeFilter, ChangeSerializer, apply_filter
from pg_delta_core.lib.render import RenderOptions, render_change, render_script
from pg_delta_core.lib.sorter import change_phase, sort_changes


@dataclass
class Plan:
    """
    An ordered migration from one catalog to another.

    Attributes:
        changes: Changes in execution order
        statements: Rendered text of each change, same order
    """
    changes: List[Change] = field(default_factory=list)
    statements: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.changes

    def __len__(self) -> int:
        return len(self.changes)

    def to_sql(self) -> str:
        return render_script(self.statements)

    def to_dict_list(self) -> List[Dict[str, Any]]:
        result = []
        for change, statement in zip(self.changes, self.statements):
            entry = change.to_dict()
            entry["phase"] = change_phase(change)
            entry["sql"] = statement
            result.append(entry)
        return result


def create_plan(
    main: Catalog,
    branch: Catalog,
    *,
    filter: Optional[ChangeFilter] = None,
    serialize: Optional[ChangeSerializer] = None,
    render_options: Optional[RenderOptions] = None,
) -> Plan:
    """
    Compute the script that turns main into branch.

    Args:
        main: Catalog of the database as it is
        branch: Catalog of the database as it should be
        filter: Hook deciding, per ordered change, to keep, drop or replace it
        serialize: Hook overriding how a change is rendered
        render_options: Text layout of the rendered statements

    Raises:
        CycleError: when the changes can't be ordered
    """
    ctx = DiffContext.from_catalogs(main, branch)
    changes = diff_catalogs(main, branch, ctx)
    ordered = sort_changes(main, branch, changes)
    ordered = apply_filter(ctx, ordered, filter)
    statements = [render_change(ctx, change, render_options, serialize) for change in ordered]
    logging.info(f"Plan has {len(ordered)} statements")
    return Plan(changes=ordered, statements=statements)
