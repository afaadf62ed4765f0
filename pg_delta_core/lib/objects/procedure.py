"""
Functions and procedures.

The record carries the full ``pg_get_functiondef`` text, which already
reads ``CREATE OR REPLACE``. Anything that text covers is changed by
running it again; signature-level changes replace the routine.
"""

from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, List, Optional, Tuple

from pg_delta_core.lib import stable_id
from pg_delta_core.lib.change import Change, CreateObject, DropObject, Operation
from pg_delta_core.lib.change import comment_changes, owner_change_on_alter, owner_change_on_create
from pg_delta_core.lib.model import PgModel, Privilege
from pg_delta_core.lib.privileges import privileges_on_alter, privileges_on_create
from pg_delta_core.lib.utils import diff_objects, has_non_alterable_changes, sql_equal

NON_ALTERABLE_FIELDS = ("kind", "return_type", "returns_set", "argument_names", "argument_modes")

# Attributes CREATE OR REPLACE can change in place
REPLACEABLE_FIELDS = ("definition", "language", "security_definer", "volatility", "parallel_safety",
                      "is_strict", "leakproof", "execution_cost", "result_rows", "config",
                      "argument_defaults")


@dataclass(frozen=True)
class Procedure(PgModel):
    KIND: ClassVar[str] = "procedure"
    SQL_KIND: ClassVar[str] = "FUNCTION"
    IDENTITY: ClassVar[Tuple[str, ...]] = ("schema", "name", "identity_arguments")
    NESTED: ClassVar[Dict[str, type]] = {"privileges": Privilege}
    COMPARATORS: ClassVar[Dict[str, Callable[[Any, Any], bool]]] = {"definition": sql_equal}

    schema: str
    name: str
    identity_arguments: str
    definition: str
    owner: str
    kind: str = "f"
    return_type: Optional[str] = None
    returns_set: bool = False
    language: str = "sql"
    security_definer: bool = False
    volatility: str = "v"
    parallel_safety: str = "u"
    is_strict: bool = False
    leakproof: bool = False
    execution_cost: Optional[float] = None
    result_rows: Optional[float] = None
    argument_names: Optional[Tuple[str, ...]] = None
    argument_modes: Optional[Tuple[str, ...]] = None
    argument_defaults: Optional[str] = None
    config: Optional[Tuple[str, ...]] = None
    comment: Optional[str] = None
    privileges: Tuple[Privilege, ...] = ()

    @property
    def stable_id(self) -> str:
        return stable_id.procedure(self.schema, self.name, self.identity_arguments)

    @property
    def sql_kind(self) -> str:
        return "PROCEDURE" if self.kind == "p" else "FUNCTION"

    @property
    def sql_name(self) -> str:
        return f"{self.schema}.{self.name}({self.identity_arguments})"

    @property
    def requires(self) -> List[str]:
        return super().requires + [stable_id.language(self.language)]


@dataclass(frozen=True)
class CreateProcedure(CreateObject):
    """Runs the routine definition; also used for in-place replacement."""
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
        return self.target.definition.strip().rstrip(";")


@dataclass(frozen=True)
class DropProcedure(DropObject):

    def serialize(self, options=None) -> str:
        return f"DROP {self.target.sql_kind} {self.target.sql_name}"


def diff_procedures(ctx, main: Dict[str, Procedure], branch: Dict[str, Procedure]) -> List[Change]:
    result = diff_objects(main, branch)
    changes = []

    def create(procedure):
        changes.append(CreateProcedure(procedure))
        changes.extend(owner_change_on_create(procedure, ctx.current_user))
        changes.extend(comment_changes(None, procedure))
        changes.extend(privileges_on_create(ctx, procedure))

    for key in result.created:
        create(branch[key])

    for key in result.dropped:
        changes.append(DropProcedure(main[key]))

    for key in result.altered:
        old, new = main[key], branch[key]
        if has_non_alterable_changes(old, new, NON_ALTERABLE_FIELDS):
            changes.append(DropProcedure(old))
            create(new)
            continue
        if has_non_alterable_changes(old, new, REPLACEABLE_FIELDS, Procedure.COMPARATORS):
            changes.append(CreateProcedure(new, replace=True))
        changes.extend(owner_change_on_alter(old, new))
        changes.extend(comment_changes(old, new))
        changes.extend(privileges_on_alter(ctx, old, new))

    return changes
