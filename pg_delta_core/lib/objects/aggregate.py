"""
Aggregates.
"""

from dataclasses import dataclass
from typing import ClassVar, Dict, List, Optional, Tuple

from pg_delta_core.lib import stable_id
from pg_delta_core.lib.change import Change, CreateObject, DropObject, Operation
from pg_delta_core.lib.change import comment_changes, owner_change_on_alter, owner_change_on_create
from pg_delta_core.lib.model import PgModel, Privilege
from pg_delta_core.lib.privileges import privileges_on_alter, privileges_on_create
from pg_delta_core.lib.utils import diff_objects, has_non_alterable_changes, quote_literal

# (field, CREATE AGGREGATE parameter)
PARAMETERS = (
    ("state_function", "SFUNC"),
    ("state_type", "STYPE"),
    ("state_space", "SSPACE"),
    ("final_function", "FINALFUNC"),
    ("combine_function", "COMBINEFUNC"),
    ("serial_function", "SERIALFUNC"),
    ("deserial_function", "DESERIALFUNC"),
    ("moving_state_function", "MSFUNC"),
    ("moving_inverse_function", "MINVFUNC"),
    ("moving_state_type", "MSTYPE"),
    ("moving_final_function", "MFINALFUNC"),
    ("sort_operator", "SORTOP"),
)

NON_ALTERABLE_FIELDS = ("kind", "argument_types", "state_type", "moving_state_type")


@dataclass(frozen=True)
class Aggregate(PgModel):
    KIND: ClassVar[str] = "aggregate"
    SQL_KIND: ClassVar[str] = "AGGREGATE"
    GRANT_KIND: ClassVar[str] = "FUNCTION"
    IDENTITY: ClassVar[Tuple[str, ...]] = ("schema", "name", "identity_arguments")
    NESTED: ClassVar[Dict[str, type]] = {"privileges": Privilege}

    schema: str
    name: str
    identity_arguments: str
    owner: str
    state_function: str
    state_type: str
    kind: str = "n"
    argument_types: Optional[Tuple[str, ...]] = None
    state_space: Optional[int] = None
    final_function: Optional[str] = None
    final_function_extra: bool = False
    combine_function: Optional[str] = None
    serial_function: Optional[str] = None
    deserial_function: Optional[str] = None
    initial_condition: Optional[str] = None
    moving_state_function: Optional[str] = None
    moving_inverse_function: Optional[str] = None
    moving_state_type: Optional[str] = None
    moving_final_function: Optional[str] = None
    sort_operator: Optional[str] = None
    parallel_safety: str = "u"
    comment: Optional[str] = None
    privileges: Tuple[Privilege, ...] = ()

    @property
    def stable_id(self) -> str:
        return stable_id.aggregate(self.schema, self.name, self.identity_arguments)

    @property
    def sql_name(self) -> str:
        return f"{self.schema}.{self.name}({self.identity_arguments or '*'})"


PARALLEL = {"s": "SAFE", "r": "RESTRICTED", "u": "UNSAFE"}


@dataclass(frozen=True)
class CreateAggregate(CreateObject):
    replace: bool = False

    @property
    def operation(self) -> Operation:
        return Operation.ALTER if self.replace else Operation.CREATE

    @property
    def creates(self) -> List[str]:
        return [] if self.replace else super().creates

    @property
    def requires(self) -> List[str]:
        if self.replace:
            return [self.target.stable_id] + self.target.requires
        return super().requires

    def serialize(self, options=None) -> str:
        aggregate = self.target
        params = []
        for field_name, keyword in PARAMETERS:
            value = getattr(aggregate, field_name)
            if value is not None:
                params.append(f"{keyword} = {value}")
        if aggregate.final_function_extra:
            params.append("FINALFUNC_EXTRA")
        if aggregate.initial_condition is not None:
            params.append(f"INITCOND = {quote_literal(aggregate.initial_condition)}")
        if aggregate.parallel_safety != "u":
            params.append(f"PARALLEL = {PARALLEL[aggregate.parallel_safety]}")
        if aggregate.kind == "h":
            params.append("HYPOTHETICAL")
        head = "CREATE OR REPLACE AGGREGATE" if self.replace else "CREATE AGGREGATE"
        return f"{head} {aggregate.sql_name} ({', '.join(params)})"


@dataclass(frozen=True)
class DropAggregate(DropObject):

    def serialize(self, options=None) -> str:
        return f"DROP AGGREGATE {self.target.sql_name}"


def diff_aggregates(ctx, main: Dict[str, Aggregate], branch: Dict[str, Aggregate]) -> List[Change]:
    result = diff_objects(main, branch)
    changes = []

    def create(aggregate):
        changes.append(CreateAggregate(aggregate))
        changes.extend(owner_change_on_create(aggregate, ctx.current_user))
        changes.extend(comment_changes(None, aggregate))
        changes.extend(privileges_on_create(ctx, aggregate))

    for key in result.created:
        create(branch[key])

    for key in result.dropped:
        changes.append(DropAggregate(main[key]))

    replaceable = tuple(name for name, _ in PARAMETERS) + (
        "final_function_extra", "initial_condition", "parallel_safety")

    for key in result.altered:
        old, new = main[key], branch[key]
        if has_non_alterable_changes(old, new, NON_ALTERABLE_FIELDS):
            changes.append(DropAggregate(old))
            create(new)
            continue
        if has_non_alterable_changes(old, new, replaceable):
            changes.append(CreateAggregate(new, replace=True))
        changes.extend(owner_change_on_alter(old, new))
        changes.extend(comment_changes(old, new))
        changes.extend(privileges_on_alter(ctx, old, new))

    return changes
