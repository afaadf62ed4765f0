"""
Composite types.
"""

from dataclasses import dataclass
from typing import ClassVar, Dict, List, Optional, Tuple

from pg_delta_core.lib.change import AlterObject, Change, CreateObject, DropObject
from pg_delta_core.lib.change import comment_changes, owner_change_on_alter, owner_change_on_create
from pg_delta_core.lib.model import PgModel, Privilege, Record
from pg_delta_core.lib.privileges import privileges_on_alter, privileges_on_create
from pg_delta_core.lib.utils import diff_objects


@dataclass(frozen=True)
class CompositeAttribute(Record):
    name: str
    data_type: str
    collation: Optional[str] = None

    def to_sql(self) -> str:
        sql = f"{self.name} {self.data_type}"
        if self.collation:
            sql += f" COLLATE {self.collation}"
        return sql


@dataclass(frozen=True)
class CompositeType(PgModel):
    KIND: ClassVar[str] = "composite_type"
    SQL_KIND: ClassVar[str] = "TYPE"
    GRANT_KIND: ClassVar[str] = "TYPE"
    NESTED: ClassVar[Dict[str, type]] = {"attributes": CompositeAttribute, "privileges": Privilege}

    schema: str
    name: str
    owner: str
    attributes: Tuple[CompositeAttribute, ...] = ()
    comment: Optional[str] = None
    privileges: Tuple[Privilege, ...] = ()


@dataclass(frozen=True)
class CreateCompositeType(CreateObject):

    def serialize(self, options=None) -> str:
        attributes = ", ".join(attribute.to_sql() for attribute in self.target.attributes)
        return f"CREATE TYPE {self.target.sql_name} AS ({attributes})"


@dataclass(frozen=True)
class DropCompositeType(DropObject):

    def serialize(self, options=None) -> str:
        return f"DROP TYPE {self.target.sql_name}"


@dataclass(frozen=True)
class AlterCompositeTypeAddAttribute(AlterObject):
    attribute: CompositeAttribute

    def serialize(self, options=None) -> str:
        return f"ALTER TYPE {self.target.sql_name} ADD ATTRIBUTE {self.attribute.to_sql()}"


@dataclass(frozen=True)
class AlterCompositeTypeDropAttribute(AlterObject):
    attribute: CompositeAttribute

    def serialize(self, options=None) -> str:
        return f"ALTER TYPE {self.target.sql_name} DROP ATTRIBUTE {self.attribute.name}"


@dataclass(frozen=True)
class AlterCompositeTypeAlterAttributeType(AlterObject):
    attribute: CompositeAttribute

    def serialize(self, options=None) -> str:
        sql = f"ALTER TYPE {self.target.sql_name} ALTER ATTRIBUTE {self.attribute.name} TYPE {self.attribute.data_type}"
        if self.attribute.collation:
            sql += f" COLLATE {self.attribute.collation}"
        return sql


def attribute_changes(old: CompositeType, new: CompositeType) -> List[Change]:
    changes = []
    before = {a.name: a for a in old.attributes}
    after = {a.name: a for a in new.attributes}
    for attribute in old.attributes:
        if attribute.name not in after:
            changes.append(AlterCompositeTypeDropAttribute(old, attribute))
    for attribute in new.attributes:
        previous = before.get(attribute.name)
        if previous is None:
            changes.append(AlterCompositeTypeAddAttribute(new, attribute))
        elif previous.data_type != attribute.data_type or previous.collation != attribute.collation:
            changes.append(AlterCompositeTypeAlterAttributeType(new, attribute))
    return changes


def diff_composite_types(ctx, main: Dict[str, CompositeType], branch: Dict[str, CompositeType]) -> List[Change]:
    result = diff_objects(main, branch)
    changes = []

    for key in result.created:
        composite = branch[key]
        changes.append(CreateCompositeType(composite))
        changes.extend(owner_change_on_create(composite, ctx.current_user))
        changes.extend(comment_changes(None, composite))
        changes.extend(privileges_on_create(ctx, composite))

    for key in result.dropped:
        changes.append(DropCompositeType(main[key]))

    for key in result.altered:
        old, new = main[key], branch[key]
        changes.extend(attribute_changes(old, new))
        changes.extend(owner_change_on_alter(old, new))
        changes.extend(comment_changes(old, new))
        changes.extend(privileges_on_alter(ctx, old, new))

    return changes
