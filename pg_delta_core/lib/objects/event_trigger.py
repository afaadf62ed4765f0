"""
Event triggers.
"""

from dataclasses import dataclass
from typing import ClassVar, Dict, List, Optional, Tuple

from pg_delta_core.lib import stable_id
from pg_delta_core.lib.change import AlterObject, Change, CreateObject, DropObject
from pg_delta_core.lib.change import comment_changes, owner_change_on_alter, owner_change_on_create
from pg_delta_core.lib.model import PgModel
from pg_delta_core.lib.utils import diff_objects, has_non_alterable_changes, quote_literal

NON_ALTERABLE_FIELDS = ("event", "function_schema", "function_name", "tags")

EVENT_TRIGGER_STATES = {"O": "ENABLE", "D": "DISABLE", "R": "ENABLE REPLICA", "A": "ENABLE ALWAYS"}


@dataclass(frozen=True)
class EventTrigger(PgModel):
    KIND: ClassVar[str] = "event_trigger"
    SQL_KIND: ClassVar[str] = "EVENT TRIGGER"
    IDENTITY: ClassVar[Tuple[str, ...]] = ("name",)

    name: str
    event: str
    function_schema: str
    function_name: str
    owner: str
    enabled: str = "O"
    tags: Optional[Tuple[str, ...]] = None
    comment: Optional[str] = None

    @property
    def requires(self) -> List[str]:
        return super().requires + [stable_id.procedure(self.function_schema, self.function_name, "")]


@dataclass(frozen=True)
class CreateEventTrigger(CreateObject):

    def serialize(self, options=None) -> str:
        trigger = self.target
        sql = f"CREATE EVENT TRIGGER {trigger.name} ON {trigger.event}"
        if trigger.tags:
            sql += f" WHEN TAG IN ({', '.join(quote_literal(tag) for tag in trigger.tags)})"
        return sql + f" EXECUTE FUNCTION {trigger.function_schema}.{trigger.function_name}()"


@dataclass(frozen=True)
class DropEventTrigger(DropObject):

    def serialize(self, options=None) -> str:
        return f"DROP EVENT TRIGGER {self.target.name}"


@dataclass(frozen=True)
class AlterEventTriggerSetEnabled(AlterObject):

    def serialize(self, options=None) -> str:
        return f"ALTER EVENT TRIGGER {self.target.name} {EVENT_TRIGGER_STATES[self.target.enabled]}"


def diff_event_triggers(ctx, main: Dict[str, EventTrigger], branch: Dict[str, EventTrigger]) -> List[Change]:
    result = diff_objects(main, branch)
    changes = []

    def create(trigger):
        changes.append(CreateEventTrigger(trigger))
        if trigger.enabled != "O":
            changes.append(AlterEventTriggerSetEnabled(trigger))
        changes.extend(owner_change_on_create(trigger, ctx.current_user))
        changes.extend(comment_changes(None, trigger))

    for key in result.created:
        create(branch[key])

    for key in result.dropped:
        changes.append(DropEventTrigger(main[key]))

    for key in result.altered:
        old, new = main[key], branch[key]
        if has_non_alterable_changes(old, new, NON_ALTERABLE_FIELDS):
            changes.append(DropEventTrigger(old))
            create(new)
            continue
        if old.enabled != new.enabled:
            changes.append(AlterEventTriggerSetEnabled(new))
        changes.extend(owner_change_on_alter(old, new))
        changes.extend(comment_changes(old, new))

    return changes
