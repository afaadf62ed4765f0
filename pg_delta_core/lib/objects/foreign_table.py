"""
Foreign tables.

Column handling is shared with regular tables; only the statement
keyword differs.
"""

from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, List, Optional, Tuple

from pg_delta_core.lib import stable_id
from pg_delta_core.lib.change import AlterObject, Change, CreateObject, DropObject
from pg_delta_core.lib.change import comment_changes, owner_change_on_alter, owner_change_on_create
from pg_delta_core.lib.model import PgModel, Privilege
from pg_delta_core.lib.objects.table import (
    AlterTableAddColumn,
    AlterTableAlterColumnDropDefault,
    AlterTableAlterColumnDropNotNull,
    AlterTableAlterColumnSetDefault,
    AlterTableAlterColumnSetNotNull,
    AlterTableAlterColumnType,
    AlterTableDropColumn,
    Column,
    column_changes,
    column_target,
)
from pg_delta_core.lib.privileges import privileges_on_alter, privileges_on_create
from pg_delta_core.lib.utils import OptionChange, diff_objects, diff_option_pairs, format_option_pairs
from pg_delta_core.lib.utils import has_non_alterable_changes, option_pairs_equal

NON_ALTERABLE_FIELDS = ("server",)


@dataclass(frozen=True)
class ForeignTable(PgModel):
    KIND: ClassVar[str] = "foreign_table"
    SQL_KIND: ClassVar[str] = "FOREIGN TABLE"
    GRANT_KIND: ClassVar[str] = "TABLE"
    NESTED: ClassVar[Dict[str, type]] = {"columns": Column, "privileges": Privilege}
    COMPARATORS: ClassVar[Dict[str, Callable[[Any, Any], bool]]] = {"options": option_pairs_equal}

    schema: str
    name: str
    owner: str
    server: str
    options: Optional[Tuple[str, ...]] = None
    columns: Tuple[Column, ...] = ()
    comment: Optional[str] = None
    privileges: Tuple[Privilege, ...] = ()

    @property
    def requires(self) -> List[str]:
        return super().requires + [stable_id.server(self.server)]

    @property
    def sub_ids(self) -> List[str]:
        return [self.column_id(column.name) for column in self.columns]

    def column_id(self, name: str) -> str:
        return stable_id.column(self.schema, self.name, name)


@dataclass(frozen=True)
class CreateForeignTable(CreateObject):

    def serialize(self, options=None) -> str:
        table = self.target
        columns = ", ".join(column.to_sql() for column in sorted(table.columns, key=lambda c: c.position))
        sql = f"CREATE FOREIGN TABLE {table.sql_name} ({columns}) SERVER {table.server}"
        if table.options:
            sql += f" OPTIONS ({format_option_pairs(table.options)})"
        return sql


@dataclass(frozen=True)
class DropForeignTable(DropObject):

    def serialize(self, options=None) -> str:
        return f"DROP FOREIGN TABLE {self.target.sql_name}"


@dataclass(frozen=True)
class AlterForeignTableSetOptions(AlterObject):
    options: Tuple[OptionChange, ...]

    def serialize(self, options=None) -> str:
        clauses = ", ".join(option.to_sql() for option in self.options)
        return f"ALTER FOREIGN TABLE {self.target.sql_name} OPTIONS ({clauses})"


@dataclass(frozen=True)
class AlterForeignTableAddColumn(AlterTableAddColumn):
    keyword: ClassVar[str] = "FOREIGN TABLE"


@dataclass(frozen=True)
class AlterForeignTableDropColumn(AlterTableDropColumn):
    keyword: ClassVar[str] = "FOREIGN TABLE"


@dataclass(frozen=True)
class AlterForeignTableAlterColumnType(AlterTableAlterColumnType):
    keyword: ClassVar[str] = "FOREIGN TABLE"


@dataclass(frozen=True)
class AlterForeignTableAlterColumnSetDefault(AlterTableAlterColumnSetDefault):
    keyword: ClassVar[str] = "FOREIGN TABLE"


@dataclass(frozen=True)
class AlterForeignTableAlterColumnDropDefault(AlterTableAlterColumnDropDefault):
    keyword: ClassVar[str] = "FOREIGN TABLE"


@dataclass(frozen=True)
class AlterForeignTableAlterColumnSetNotNull(AlterTableAlterColumnSetNotNull):
    keyword: ClassVar[str] = "FOREIGN TABLE"


@dataclass(frozen=True)
class AlterForeignTableAlterColumnDropNotNull(AlterTableAlterColumnDropNotNull):
    keyword: ClassVar[str] = "FOREIGN TABLE"


def diff_foreign_tables(ctx, main: Dict[str, ForeignTable], branch: Dict[str, ForeignTable]) -> List[Change]:
    result = diff_objects(main, branch)
    changes = []

    def create(table):
        changes.append(CreateForeignTable(table))
        changes.extend(owner_change_on_create(table, ctx.current_user))
        changes.extend(comment_changes(None, table))
        for column in table.columns:
            changes.extend(comment_changes(None, column_target(table, column)))
        changes.extend(privileges_on_create(ctx, table))

    for key in result.created:
        create(branch[key])

    for key in result.dropped:
        changes.append(DropForeignTable(main[key]))

    for key in result.altered:
        old, new = main[key], branch[key]
        if has_non_alterable_changes(old, new, NON_ALTERABLE_FIELDS):
            changes.append(DropForeignTable(old))
            create(new)
            continue
        option_changes = diff_option_pairs(old.options, new.options)
        if option_changes:
            changes.append(AlterForeignTableSetOptions(new, tuple(option_changes)))
        changes.extend(column_changes(
            old, new,
            add=AlterForeignTableAddColumn,
            drop=AlterForeignTableDropColumn,
            alter_type=AlterForeignTableAlterColumnType,
            set_default=AlterForeignTableAlterColumnSetDefault,
            drop_default=AlterForeignTableAlterColumnDropDefault,
            set_not_null=AlterForeignTableAlterColumnSetNotNull,
            drop_not_null=AlterForeignTableAlterColumnDropNotNull,
        ))
        changes.extend(owner_change_on_alter(old, new))
        changes.extend(comment_changes(old, new))
        changes.extend(privileges_on_alter(ctx, old, new))

    return changes
