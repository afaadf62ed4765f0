"""
Triggers.
"""

from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, List, Optional, Tuple

from pg_delta_core.lib import stable_id
from pg_delta_core.lib.change import AlterObject, Change, CreateObject, DropObject
from pg_delta_core.lib.change import comment_changes
from pg_delta_core.lib.model import PgModel
from pg_delta_core.lib.utils import diff_objects, has_non_alterable_changes, sql_equal

NON_ALTERABLE_FIELDS = ("definition", "function_schema", "function_name")

TRIGGER_STATES = {"O": "ENABLE", "D": "DISABLE", "R": "ENABLE REPLICA", "A": "ENABLE ALWAYS"}

RELATION_KINDS = {"r": "TABLE", "p": "TABLE", "v": "VIEW", "f": "FOREIGN TABLE"}


@dataclass(frozen=True)
class Trigger(PgModel):
    KIND: ClassVar[str] = "trigger"
    SQL_KIND: ClassVar[str] = "TRIGGER"
    IDENTITY: ClassVar[Tuple[str, ...]] = ("schema", "table_name", "name")
    COMPARATORS: ClassVar[Dict[str, Callable[[Any, Any], bool]]] = {"definition": sql_equal}

    schema: str
    table_name: str
    name: str
    definition: str
    function_schema: str
    function_name: str
    table_kind: str = "r"
    enabled: str = "O"
    is_partition_clone: bool = False
    comment: Optional[str] = None

    @property
    def stable_id(self) -> str:
        return stable_id.trigger(self.schema, self.table_name, self.name)

    @property
    def relation_id(self) -> str:
        if self.table_kind == "v":
            return stable_id.view(self.schema, self.table_name)
        if self.table_kind == "f":
            return stable_id.foreign_table(self.schema, self.table_name)
        return stable_id.table(self.schema, self.table_name)

    @property
    def relation_name(self) -> str:
        return f"{self.schema}.{self.table_name}"

    @property
    def requires(self) -> List[str]:
        return [
            stable_id.schema(self.schema),
            self.relation_id,
            stable_id.procedure(self.function_schema, self.function_name, ""),
        ]

    @property
    def sql_target(self) -> str:
        return f"TRIGGER {self.name} ON {self.relation_name}"


@dataclass(frozen=True)
class CreateTrigger(CreateObject):

    def serialize(self, options=None) -> str:
        return self.target.definition.strip().rstrip(";")


@dataclass(frozen=True)
class DropTrigger(DropObject):

    def serialize(self, options=None) -> str:
        return f"DROP TRIGGER {self.target.name} ON {self.target.relation_name}"


@dataclass(frozen=True)
class AlterTriggerSetEnabled(AlterObject):
    """ALTER TABLE ... ENABLE / DISABLE TRIGGER."""

    def serialize(self, options=None) -> str:
        trigger = self.target
        keyword = RELATION_KINDS.get(trigger.table_kind, "TABLE")
        return f"ALTER {keyword} {trigger.relation_name} {TRIGGER_STATES[trigger.enabled]} TRIGGER {trigger.name}"


def _relation_exists(catalog, trigger: Trigger) -> bool:
    return any(trigger.relation_id in objects for objects in (
        catalog.tables, catalog.views, catalog.foreign_tables))


def diff_triggers(ctx, main: Dict[str, Trigger], branch: Dict[str, Trigger]) -> List[Change]:
    result = diff_objects(main, branch)
    changes = []

    def create(trigger):
        changes.append(CreateTrigger(trigger))
        if trigger.enabled != "O":
            changes.append(AlterTriggerSetEnabled(trigger))
        changes.extend(comment_changes(None, trigger))

    # triggers cloned onto partitions follow the parent's trigger
    for key in result.created:
        trigger = branch[key]
        if not trigger.is_partition_clone:
            create(trigger)

    for key in result.dropped:
        trigger = main[key]
        if trigger.is_partition_clone or not _relation_exists(ctx.branch, trigger):
            continue
        changes.append(DropTrigger(trigger))

    for key in result.altered:
        old, new = main[key], branch[key]
        if new.is_partition_clone:
            continue
        if has_non_alterable_changes(old, new, NON_ALTERABLE_FIELDS, Trigger.COMPARATORS):
            changes.append(DropTrigger(old))
            create(new)
            continue
        if old.enabled != new.enabled:
            changes.append(AlterTriggerSetEnabled(new))
        changes.extend(comment_changes(old, new))

    return changes
