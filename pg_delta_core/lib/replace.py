"""
Replace dependents of objects that are dropped and created again.

A function whose return type changes, a table whose partitioning changes
or a materialized view whose query changes is replaced with a DROP and a
CREATE. PostgreSQL refuses the DROP while other objects still depend on
the old object, so those dependents are dropped before it and created again
after it, even when their own definition did not change.
"""

import logging
from collections import deque
from typing import Dict, List, Optional, Set

from pg_delta_core.lib import stable_id
from pg_delta_core.lib.change import Change
from pg_delta_core.lib.objects import OBJECT_TYPES, ObjectType

OBJECT_TYPES_BY_KIND: Dict[str, ObjectType] = {object_type.kind: object_type for object_type in OBJECT_TYPES}

# kinds that can be dropped and created again from their catalog row alone
REPLACEABLE_KINDS = (
    "table", "view", "materialized_view", "procedure", "aggregate", "enum", "range", "composite_type", "domain",
    "index", "trigger", "rule", "rls_policy",
)


def owning_object_id(dependent_id: str) -> Optional[str]:
    """
    Return the id of the object to replace for a pg_depend dependent id.

    Comments resolve to the commented object and columns or constraints to
    their table; metadata and shared objects resolve to None.
    """
    while dependent_id.startswith("comment:"):
        dependent_id = dependent_id[len("comment:"):]
    if stable_id.is_metadata(dependent_id):
        return None
    if stable_id.kind_of(dependent_id) in ("column", "constraint"):
        return stable_id.table_of(dependent_id)
    if stable_id.kind_of(dependent_id) not in REPLACEABLE_KINDS:
        return None
    return dependent_id


def _ids(changes: List[Change], attribute: str) -> Set[str]:
    return {identifier for change in changes for identifier in getattr(change, attribute)}


def expand_replace_dependencies(ctx, changes: List[Change]) -> List[Change]:
    """
    Add the DROP and CREATE changes of every object depending on a replaced one.

    Replaced ids are those both dropped and created by the changes. main's
    depends rows are walked transitively from them; each dependent present
    in both catalogs is diffed as if it were dropped from main and created
    in branch, which brings its comment, owner and privileges along.
    Dependents already dropped or created keep their existing changes.

    Returns:
        changes followed by the added changes; ordering is left to the sorter
    """
    created = _ids(changes, "creates")
    dropped = _ids(changes, "drops")
    roots = created & dropped
    if not roots:
        return changes

    dependents = {}
    for depend in ctx.main.depends:
        dependents.setdefault(depend.referenced_stable_id, []).append(depend.dependent_stable_id)

    added = []
    visited = set(roots)
    queue = deque(sorted(roots))
    while queue:
        referenced = queue.popleft()
        for dependent in sorted(dependents.get(referenced, ())):
            target = owning_object_id(dependent)
            for identifier in (dependent, target):
                if identifier and identifier not in visited:
                    visited.add(identifier)
                    queue.append(identifier)
            if not target or (target in created and target in dropped):
                continue

            object_type = OBJECT_TYPES_BY_KIND.get(stable_id.kind_of(target))
            if object_type is None:
                continue
            old = getattr(ctx.main, object_type.attribute).get(target)
            new = getattr(ctx.branch, object_type.attribute).get(target)
            if old is None or new is None:
                continue

            replacement = []
            if target not in dropped:
                replacement.extend(object_type.diff(ctx, {target: old}, {}))
            if target not in created:
                replacement.extend(object_type.diff(ctx, {}, {target: new}))
            logging.debug(f"Replacing {target} along with {referenced}")
            added.extend(replacement)
            created |= _ids(replacement, "creates")
            dropped |= _ids(replacement, "drops")

    if added:
        logging.info(f"Added {len(added)} changes replacing dependents of {len(roots)} replaced ids")
    return changes + added
