"""
Range types. Everything but owner, comment and privileges is fixed at creation.
"""

from dataclasses import dataclass
from typing import ClassVar, Dict, List, Optional, Tuple

from pg_delta_core.lib.change import Change, CreateObject, DropObject
from pg_delta_core.lib.change import comment_changes, owner_change_on_alter, owner_change_on_create
from pg_delta_core.lib.model import PgModel, Privilege
from pg_delta_core.lib.privileges import privileges_on_alter, privileges_on_create
from pg_delta_core.lib.utils import diff_objects, has_non_alterable_changes

NON_ALTERABLE_FIELDS = ("subtype", "subtype_opclass", "collation", "canonical_function", "subtype_diff",
                        "multirange_name")


@dataclass(frozen=True)
class Range(PgModel):
    KIND: ClassVar[str] = "range"
    SQL_KIND: ClassVar[str] = "TYPE"
    GRANT_KIND: ClassVar[str] = "TYPE"
    NESTED: ClassVar[Dict[str, type]] = {"privileges": Privilege}

    schema: str
    name: str
    owner: str
    subtype: str
    subtype_opclass: Optional[str] = None
    collation: Optional[str] = None
    canonical_function: Optional[str] = None
    subtype_diff: Optional[str] = None
    multirange_name: Optional[str] = None
    comment: Optional[str] = None
    privileges: Tuple[Privilege, ...] = ()


@dataclass(frozen=True)
class CreateRange(CreateObject):

    def serialize(self, options=None) -> str:
        rng = self.target
        props = [f"SUBTYPE = {rng.subtype}"]
        if rng.subtype_opclass:
            props.append(f"SUBTYPE_OPCLASS = {rng.subtype_opclass}")
        if rng.collation:
            props.append(f"COLLATION = {rng.collation}")
        if rng.canonical_function:
            props.append(f"CANONICAL = {rng.canonical_function}")
        if rng.subtype_diff:
            props.append(f"SUBTYPE_DIFF = {rng.subtype_diff}")
        if rng.multirange_name:
            props.append(f"MULTIRANGE_TYPE_NAME = {rng.multirange_name}")
        return f"CREATE TYPE {rng.sql_name} AS RANGE ({', '.join(props)})"


@dataclass(frozen=True)
class DropRange(DropObject):

    def serialize(self, options=None) -> str:
        return f"DROP TYPE {self.target.sql_name}"


def diff_ranges(ctx, main: Dict[str, Range], branch: Dict[str, Range]) -> List[Change]:
    result = diff_objects(main, branch)
    changes = []

    def create(rng):
        changes.append(CreateRange(rng))
        changes.extend(owner_change_on_create(rng, ctx.current_user))
        changes.extend(comment_changes(None, rng))
        changes.extend(privileges_on_create(ctx, rng))

    for key in result.created:
        create(branch[key])

    for key in result.dropped:
        changes.append(DropRange(main[key]))

    for key in result.altered:
        old, new = main[key], branch[key]
        if has_non_alterable_changes(old, new, NON_ALTERABLE_FIELDS):
            changes.append(DropRange(old))
            create(new)
            continue
        changes.extend(owner_change_on_alter(old, new))
        changes.extend(comment_changes(old, new))
        changes.extend(privileges_on_alter(ctx, old, new))

    return changes
