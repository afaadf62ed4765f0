"""
Foreign data wrappers.
"""

from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, List, Optional, Tuple

from pg_delta_core.lib.change import AlterObject, Change, CreateObject, DropObject
from pg_delta_core.lib.change import comment_changes, owner_change_on_alter, owner_change_on_create
from pg_delta_core.lib.model import PgModel, Privilege
from pg_delta_core.lib.privileges import privileges_on_alter, privileges_on_create
from pg_delta_core.lib.utils import OptionChange, diff_objects, diff_option_pairs, format_option_pairs
from pg_delta_core.lib.utils import option_pairs_equal


@dataclass(frozen=True)
class ForeignDataWrapper(PgModel):
    KIND: ClassVar[str] = "foreign_data_wrapper"
    SQL_KIND: ClassVar[str] = "FOREIGN DATA WRAPPER"
    GRANT_KIND: ClassVar[str] = "FOREIGN DATA WRAPPER"
    IDENTITY: ClassVar[Tuple[str, ...]] = ("name",)
    NESTED: ClassVar[Dict[str, type]] = {"privileges": Privilege}
    COMPARATORS: ClassVar[Dict[str, Callable[[Any, Any], bool]]] = {"options": option_pairs_equal}

    name: str
    owner: str
    handler: Optional[str] = None
    validator: Optional[str] = None
    options: Optional[Tuple[str, ...]] = None
    comment: Optional[str] = None
    privileges: Tuple[Privilege, ...] = ()


@dataclass(frozen=True)
class CreateForeignDataWrapper(CreateObject):

    def serialize(self, options=None) -> str:
        fdw = self.target
        sql = f"CREATE FOREIGN DATA WRAPPER {fdw.name}"
        if fdw.handler:
            sql += f" HANDLER {fdw.handler}"
        if fdw.validator:
            sql += f" VALIDATOR {fdw.validator}"
        if fdw.options:
            sql += f" OPTIONS ({format_option_pairs(fdw.options)})"
        return sql


@dataclass(frozen=True)
class DropForeignDataWrapper(DropObject):

    def serialize(self, options=None) -> str:
        return f"DROP FOREIGN DATA WRAPPER {self.target.name}"


@dataclass(frozen=True)
class AlterForeignDataWrapperSetHandler(AlterObject):

    def serialize(self, options=None) -> str:
        handler = f"HANDLER {self.target.handler}" if self.target.handler else "NO HANDLER"
        return f"ALTER FOREIGN DATA WRAPPER {self.target.name} {handler}"


@dataclass(frozen=True)
class AlterForeignDataWrapperSetValidator(AlterObject):

    def serialize(self, options=None) -> str:
        validator = f"VALIDATOR {self.target.validator}" if self.target.validator else "NO VALIDATOR"
        return f"ALTER FOREIGN DATA WRAPPER {self.target.name} {validator}"


@dataclass(frozen=True)
class AlterForeignDataWrapperSetOptions(AlterObject):
    options: Tuple[OptionChange, ...]

    def serialize(self, options=None) -> str:
        clauses = ", ".join(option.to_sql() for option in self.options)
        return f"ALTER FOREIGN DATA WRAPPER {self.target.name} OPTIONS ({clauses})"


def diff_foreign_data_wrappers(
    ctx, main: Dict[str, ForeignDataWrapper], branch: Dict[str, ForeignDataWrapper]
) -> List[Change]:
    result = diff_objects(main, branch)
    changes = []

    for key in result.created:
        fdw = branch[key]
        changes.append(CreateForeignDataWrapper(fdw))
        changes.extend(owner_change_on_create(fdw, ctx.current_user))
        changes.extend(comment_changes(None, fdw))
        changes.extend(privileges_on_create(ctx, fdw))

    for key in result.dropped:
        changes.append(DropForeignDataWrapper(main[key]))

    for key in result.altered:
        old, new = main[key], branch[key]
        if old.handler != new.handler:
            changes.append(AlterForeignDataWrapperSetHandler(new))
        if old.validator != new.validator:
            changes.append(AlterForeignDataWrapperSetValidator(new))
        option_changes = diff_option_pairs(old.options, new.options)
        if option_changes:
            changes.append(AlterForeignDataWrapperSetOptions(new, tuple(option_changes)))
        changes.extend(owner_change_on_alter(old, new))
        changes.extend(comment_changes(old, new))
        changes.extend(privileges_on_alter(ctx, old, new))

    return changes
