"""
Schemas.
"""

from dataclasses import dataclass
from typing import ClassVar, Dict, List, Optional, Tuple

from pg_delta_core.lib.change import Change, CreateObject, DropObject
from pg_delta_core.lib.change import comment_changes, owner_change_on_alter
from pg_delta_core.lib.model import PgModel, Privilege
from pg_delta_core.lib.privileges import privileges_on_alter, privileges_on_create
from pg_delta_core.lib.utils import diff_objects


@dataclass(frozen=True)
class Schema(PgModel):
    KIND: ClassVar[str] = "schema"
    SQL_KIND: ClassVar[str] = "SCHEMA"
    GRANT_KIND: ClassVar[str] = "SCHEMA"
    IDENTITY: ClassVar[Tuple[str, ...]] = ("name",)
    NESTED: ClassVar[Dict[str, type]] = {"privileges": Privilege}

    name: str
    owner: str
    comment: Optional[str] = None
    privileges: Tuple[Privilege, ...] = ()


@dataclass(frozen=True)
class CreateSchema(CreateObject):

    def serialize(self, options=None) -> str:
        return f"CREATE SCHEMA {self.target.name} AUTHORIZATION {self.target.owner}"


@dataclass(frozen=True)
class DropSchema(DropObject):

    def serialize(self, options=None) -> str:
        return f"DROP SCHEMA {self.target.name}"


def diff_schemas(ctx, main: Dict[str, Schema], branch: Dict[str, Schema]) -> List[Change]:
    result = diff_objects(main, branch)
    changes = []

    for key in result.created:
        schema = branch[key]
        changes.append(CreateSchema(schema))
        changes.extend(comment_changes(None, schema))
        changes.extend(privileges_on_create(ctx, schema))

    for key in result.dropped:
        changes.append(DropSchema(main[key]))

    # a renamed schema has a new identity, so it shows up as drop + create
    for key in result.altered:
        old, new = main[key], branch[key]
        changes.extend(owner_change_on_alter(old, new))
        changes.extend(comment_changes(old, new))
        changes.extend(privileges_on_alter(ctx, old, new))

    return changes
