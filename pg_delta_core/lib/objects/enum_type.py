"""
Enum types.

New labels are added in place with ``ALTER TYPE ... ADD VALUE``; removing
or reordering existing labels has no ALTER form and replaces the type.
"""

from dataclasses import dataclass
from typing import ClassVar, Dict, List, Optional, Tuple

from pg_delta_core.lib.change import AlterObject, Change, CreateObject, DropObject
from pg_delta_core.lib.change import comment_changes, owner_change_on_alter, owner_change_on_create
from pg_delta_core.lib.model import PgModel, Privilege
from pg_delta_core.lib.privileges import privileges_on_alter, privileges_on_create
from pg_delta_core.lib.utils import diff_objects, quote_literal


@dataclass(frozen=True)
class EnumType(PgModel):
    KIND: ClassVar[str] = "enum"
    SQL_KIND: ClassVar[str] = "TYPE"
    GRANT_KIND: ClassVar[str] = "TYPE"
    NESTED: ClassVar[Dict[str, type]] = {"privileges": Privilege}

    schema: str
    name: str
    owner: str
    labels: Tuple[str, ...] = ()
    comment: Optional[str] = None
    privileges: Tuple[Privilege, ...] = ()


@dataclass(frozen=True)
class CreateEnum(CreateObject):

    def serialize(self, options=None) -> str:
        labels = ", ".join(quote_literal(label) for label in self.target.labels)
        return f"CREATE TYPE {self.target.sql_name} AS ENUM ({labels})"


@dataclass(frozen=True)
class DropEnum(DropObject):

    def serialize(self, options=None) -> str:
        return f"DROP TYPE {self.target.sql_name}"


@dataclass(frozen=True)
class AlterEnumAddValue(AlterObject):
    """ALTER TYPE ... ADD VALUE 'label' [BEFORE | AFTER 'neighbor']."""
    label: str
    position: Optional[str] = None
    neighbor: Optional[str] = None

    def serialize(self, options=None) -> str:
        sql = f"ALTER TYPE {self.target.sql_name} ADD VALUE {quote_literal(self.label)}"
        if self.position and self.neighbor:
            sql += f" {self.position} {quote_literal(self.neighbor)}"
        return sql


def is_append_only(old_labels: Tuple[str, ...], new_labels: Tuple[str, ...]) -> bool:
    """True when every old label survives and keeps its relative order."""
    kept = [label for label in new_labels if label in old_labels]
    return list(old_labels) == kept


def added_value_changes(old: EnumType, new: EnumType) -> List[Change]:
    changes = []
    existing = set(old.labels)
    labels = list(new.labels)
    for i, label in enumerate(labels):
        if label in existing:
            continue
        if i > 0:
            changes.append(AlterEnumAddValue(new, label, "AFTER", labels[i - 1]))
        else:
            following = next((other for other in labels[1:] if other in existing), None)
            if following is None:
                changes.append(AlterEnumAddValue(new, label))
            else:
                changes.append(AlterEnumAddValue(new, label, "BEFORE", following))
        existing.add(label)
    return changes


def diff_enums(ctx, main: Dict[str, EnumType], branch: Dict[str, EnumType]) -> List[Change]:
    result = diff_objects(main, branch)
    changes = []

    def create(enum):
        changes.append(CreateEnum(enum))
        changes.extend(owner_change_on_create(enum, ctx.current_user))
        changes.extend(comment_changes(None, enum))
        changes.extend(privileges_on_create(ctx, enum))

    for key in result.created:
        create(branch[key])

    for key in result.dropped:
        changes.append(DropEnum(main[key]))

    for key in result.altered:
        old, new = main[key], branch[key]
        if not is_append_only(old.labels, new.labels):
            changes.append(DropEnum(old))
            create(new)
            continue
        changes.extend(added_value_changes(old, new))
        changes.extend(owner_change_on_alter(old, new))
        changes.extend(comment_changes(old, new))
        changes.extend(privileges_on_alter(ctx, old, new))

    return changes
