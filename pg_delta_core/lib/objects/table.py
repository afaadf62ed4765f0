"""
Tables, their columns and constraints.

Tables are always created bare: constraints are added by separate
ALTER TABLE ... ADD CONSTRAINT changes so that foreign keys between
tables created in the same script can be ordered after both tables.
"""

from dataclasses import dataclass
from typing import ClassVar, Dict, List, Optional, Tuple

from pg_delta_core.lib import stable_id
from pg_delta_core.lib.change import AlterObject, Change, CreateObject, DropObject, Operation
from pg_delta_core.lib.change import comment_changes, owner_change_on_alter, owner_change_on_create
from pg_delta_core.lib.model import PgModel, Privilege, Record
from pg_delta_core.lib.privileges import privileges_on_alter, privileges_on_create
from pg_delta_core.lib.utils import diff_objects, diff_storage_params, sql_equal

REPLICA_IDENTITY = {"d": "DEFAULT", "n": "NOTHING", "f": "FULL"}

# Constraint types backed by an index of the same name
INDEX_BACKED_CONSTRAINTS = ("p", "u", "x")


@dataclass(frozen=True)
class Column(Record):
    name: str
    data_type: str
    position: int = 0
    not_null: bool = False
    default: Optional[str] = None
    collation: Optional[str] = None
    identity: Optional[str] = None
    generated: Optional[str] = None
    comment: Optional[str] = None

    def to_sql(self) -> str:
        """Column definition as written in CREATE TABLE and ADD COLUMN."""
        parts = [self.name, self.data_type]
        if self.collation:
            parts.append(f"COLLATE {self.collation}")
        if self.generated:
            parts.append(f"GENERATED ALWAYS AS ({self.generated}) STORED")
        if self.identity == "a":
            parts.append("GENERATED ALWAYS AS IDENTITY")
        elif self.identity == "d":
            parts.append("GENERATED BY DEFAULT AS IDENTITY")
        if self.not_null:
            parts.append("NOT NULL")
        if self.default is not None and not self.generated:
            parts.append(f"DEFAULT {self.default}")
        return " ".join(parts)


@dataclass(frozen=True)
class TableConstraint(Record):
    """
    A table constraint.

    definition is the text of pg_get_constraintdef, e.g.
    ``FOREIGN KEY (b_id) REFERENCES public.b(id)``.
    """
    name: str
    constraint_type: str
    definition: str
    validated: bool = True
    is_local: bool = True
    key_columns: Optional[Tuple[str, ...]] = None
    foreign_key_schema: Optional[str] = None
    foreign_key_table: Optional[str] = None
    foreign_key_columns: Optional[Tuple[str, ...]] = None
    comment: Optional[str] = None

    @property
    def foreign_table_id(self) -> Optional[str]:
        if self.constraint_type != "f" or not self.foreign_key_table:
            return None
        return stable_id.table(self.foreign_key_schema, self.foreign_key_table)

    def same_definition(self, other: "TableConstraint") -> bool:
        """True when only validation state or comment differ."""
        return (
            self.constraint_type == other.constraint_type
            and sql_equal(self.definition_without_not_valid, other.definition_without_not_valid)
        )

    @property
    def definition_without_not_valid(self) -> str:
        definition = self.definition.rstrip()
        if definition.upper().endswith("NOT VALID"):
            definition = definition[:-len("NOT VALID")].rstrip()
        return definition


@dataclass(frozen=True)
class ColumnTarget(PgModel):
    """A table column seen as a commentable object."""
    KIND: ClassVar[str] = "table"
    SQL_KIND: ClassVar[str] = "COLUMN"
    IDENTITY: ClassVar[Tuple[str, ...]] = ("schema", "table", "name")

    schema: str
    table: str
    name: str
    comment: Optional[str] = None

    @property
    def stable_id(self) -> str:
        return stable_id.column(self.schema, self.table, self.name)

    @property
    def sql_name(self) -> str:
        return f"{self.schema}.{self.table}.{self.name}"


@dataclass(frozen=True)
class ConstraintTarget(PgModel):
    """A table constraint seen as a commentable object."""
    KIND: ClassVar[str] = "table"
    SQL_KIND: ClassVar[str] = "CONSTRAINT"
    IDENTITY: ClassVar[Tuple[str, ...]] = ("schema", "table", "name")

    schema: str
    table: str
    name: str
    comment: Optional[str] = None

    @property
    def stable_id(self) -> str:
        return stable_id.constraint(self.schema, self.table, self.name)

    @property
    def sql_target(self) -> str:
        return f"CONSTRAINT {self.name} ON {self.schema}.{self.table}"


@dataclass(frozen=True)
class Table(PgModel):
    KIND: ClassVar[str] = "table"
    SQL_KIND: ClassVar[str] = "TABLE"
    GRANT_KIND: ClassVar[str] = "TABLE"
    NESTED: ClassVar[Dict[str, type]] = {
        "columns": Column,
        "constraints": TableConstraint,
        "privileges": Privilege,
    }

    schema: str
    name: str
    owner: str
    persistence: str = "p"
    row_security: bool = False
    force_row_security: bool = False
    replica_identity: str = "d"
    replica_identity_index: Optional[str] = None
    options: Optional[Tuple[str, ...]] = None
    partition_by: Optional[str] = None
    is_partition: bool = False
    partition_bound: Optional[str] = None
    parent_schema: Optional[str] = None
    parent_name: Optional[str] = None
    columns: Tuple[Column, ...] = ()
    constraints: Tuple[TableConstraint, ...] = ()
    comment: Optional[str] = None
    privileges: Tuple[Privilege, ...] = ()

    @property
    def parent_id(self) -> Optional[str]:
        if self.parent_schema and self.parent_name:
            return stable_id.table(self.parent_schema, self.parent_name)
        return None

    @property
    def requires(self) -> List[str]:
        result = super().requires
        if self.parent_id:
            result.append(self.parent_id)
        return result

    @property
    def sub_ids(self) -> List[str]:
        return [stable_id.column(self.schema, self.name, column.name) for column in self.columns]

    @property
    def local_constraints(self) -> Tuple[TableConstraint, ...]:
        return tuple(c for c in self.constraints if c.is_local)

    def column_id(self, name: str) -> str:
        return stable_id.column(self.schema, self.name, name)

    def constraint_ids(self, constraint: TableConstraint) -> List[str]:
        result = [stable_id.constraint(self.schema, self.name, constraint.name)]
        if constraint.constraint_type in INDEX_BACKED_CONSTRAINTS:
            result.append(stable_id.index(self.schema, self.name, constraint.name))
        return result


@dataclass(frozen=True)
class CreateTable(CreateObject):

    def serialize(self, options=None) -> str:
        table = self.target
        head = {"u": "CREATE UNLOGGED TABLE", "t": "CREATE TEMPORARY TABLE"}.get(table.persistence, "CREATE TABLE")
        if table.is_partition and table.parent_id:
            sql = f"{head} {table.sql_name} PARTITION OF {table.parent_schema}.{table.parent_name}"
            if table.partition_bound:
                sql += f" {table.partition_bound}"
        else:
            columns = sorted(table.columns, key=lambda c: c.position)
            sql = f"{head} {table.sql_name} ({', '.join(column.to_sql() for column in columns)})"
        if table.partition_by:
            sql += f" PARTITION BY {table.partition_by}"
        if table.options:
            sql += f" WITH ({', '.join(table.options)})"
        return sql


@dataclass(frozen=True)
class DropTable(DropObject):
    detached_constraints: Tuple[str, ...] = ()

    @property
    def drops(self) -> List[str]:
        result = super().drops
        for constraint in self.target.local_constraints:
            if constraint.name in self.detached_constraints:
                continue
            result.extend(self.target.constraint_ids(constraint))
        return result

    def serialize(self, options=None) -> str:
        return f"DROP TABLE {self.target.sql_name}"


@dataclass(frozen=True)
class AlterTableSetLogged(AlterObject):

    def serialize(self, options=None) -> str:
        return f"ALTER TABLE {self.target.sql_name} SET LOGGED"


@dataclass(frozen=True)
class AlterTableSetUnlogged(AlterObject):

    def serialize(self, options=None) -> str:
        return f"ALTER TABLE {self.target.sql_name} SET UNLOGGED"


@dataclass(frozen=True)
class AlterTableEnableRowLevelSecurity(AlterObject):

    def serialize(self, options=None) -> str:
        return f"ALTER TABLE {self.target.sql_name} ENABLE ROW LEVEL SECURITY"


@dataclass(frozen=True)
class AlterTableDisableRowLevelSecurity(AlterObject):

    def serialize(self, options=None) -> str:
        return f"ALTER TABLE {self.target.sql_name} DISABLE ROW LEVEL SECURITY"


@dataclass(frozen=True)
class AlterTableForceRowLevelSecurity(AlterObject):

    def serialize(self, options=None) -> str:
        return f"ALTER TABLE {self.target.sql_name} FORCE ROW LEVEL SECURITY"


@dataclass(frozen=True)
class AlterTableNoForceRowLevelSecurity(AlterObject):

    def serialize(self, options=None) -> str:
        return f"ALTER TABLE {self.target.sql_name} NO FORCE ROW LEVEL SECURITY"


@dataclass(frozen=True)
class AlterTableSetStorageParams(AlterObject):
    params: Tuple[Tuple[str, str], ...]

    def serialize(self, options=None) -> str:
        params = ", ".join(f"{key}={value}" for key, value in self.params)
        return f"ALTER TABLE {self.target.sql_name} SET ({params})"


@dataclass(frozen=True)
class AlterTableResetStorageParams(AlterObject):
    params: Tuple[str, ...]

    def serialize(self, options=None) -> str:
        return f"ALTER TABLE {self.target.sql_name} RESET ({', '.join(self.params)})"


@dataclass(frozen=True)
class AlterTableSetReplicaIdentity(AlterObject):

    @property
    def requires(self) -> List[str]:
        table = self.target
        result = [table.stable_id]
        if table.replica_identity == "i" and table.replica_identity_index:
            result.append(stable_id.index(table.schema, table.name, table.replica_identity_index))
        return result

    def serialize(self, options=None) -> str:
        table = self.target
        if table.replica_identity == "i":
            identity = f"USING INDEX {table.replica_identity_index}"
        else:
            identity = REPLICA_IDENTITY[table.replica_identity]
        return f"ALTER TABLE {table.sql_name} REPLICA IDENTITY {identity}"


@dataclass(frozen=True)
class AlterTableAddColumn(AlterObject):
    column: Column
    keyword: ClassVar[str] = "TABLE"

    @property
    def creates(self) -> List[str]:
        return [self.target.column_id(self.column.name)]

    def serialize(self, options=None) -> str:
        return f"ALTER {self.keyword} {self.target.sql_name} ADD COLUMN {self.column.to_sql()}"


@dataclass(frozen=True)
class AlterTableDropColumn(AlterObject):
    column: Column
    keyword: ClassVar[str] = "TABLE"

    @property
    def drops(self) -> List[str]:
        return [self.target.column_id(self.column.name)]

    @property
    def requires(self) -> List[str]:
        return [self.target.stable_id, self.target.column_id(self.column.name)]

    def serialize(self, options=None) -> str:
        return f"ALTER {self.keyword} {self.target.sql_name} DROP COLUMN {self.column.name}"


@dataclass(frozen=True)
class ColumnChange(AlterObject):
    """Base for ALTER TABLE ... ALTER COLUMN actions."""
    column: Column
    keyword: ClassVar[str] = "TABLE"

    @property
    def requires(self) -> List[str]:
        return [self.target.stable_id, self.target.column_id(self.column.name)]

    def alter_column(self) -> str:
        return f"ALTER {self.keyword} {self.target.sql_name} ALTER COLUMN {self.column.name}"


@dataclass(frozen=True)
class AlterTableAlterColumnType(ColumnChange):

    def serialize(self, options=None) -> str:
        sql = f"{self.alter_column()} TYPE {self.column.data_type}"
        if self.column.collation:
            sql += f" COLLATE {self.column.collation}"
        return sql


@dataclass(frozen=True)
class AlterTableAlterColumnSetDefault(ColumnChange):

    def serialize(self, options=None) -> str:
        return f"{self.alter_column()} SET DEFAULT {self.column.default}"


@dataclass(frozen=True)
class AlterTableAlterColumnDropDefault(ColumnChange):

    def serialize(self, options=None) -> str:
        return f"{self.alter_column()} DROP DEFAULT"


@dataclass(frozen=True)
class AlterTableAlterColumnSetNotNull(ColumnChange):

    def serialize(self, options=None) -> str:
        return f"{self.alter_column()} SET NOT NULL"


@dataclass(frozen=True)
class AlterTableAlterColumnDropNotNull(ColumnChange):

    def serialize(self, options=None) -> str:
        return f"{self.alter_column()} DROP NOT NULL"


@dataclass(frozen=True)
class AlterTableAddConstraint(AlterObject):
    """
    ALTER TABLE ... ADD CONSTRAINT.

    Foreign keys require the referenced table and columns, which is what
    lets tables referencing each other be created bare first.
    """
    OPERATION: ClassVar[Operation] = Operation.CREATE
    constraint: TableConstraint

    @property
    def creates(self) -> List[str]:
        return self.target.constraint_ids(self.constraint)

    @property
    def requires(self) -> List[str]:
        table = self.target
        constraint = self.constraint
        result = [table.stable_id]
        result.extend(table.column_id(name) for name in constraint.key_columns or ())
        if constraint.foreign_table_id:
            result.append(constraint.foreign_table_id)
            result.extend(
                stable_id.column(constraint.foreign_key_schema, constraint.foreign_key_table, name)
                for name in constraint.foreign_key_columns or ()
            )
        return result

    def serialize(self, options=None) -> str:
        definition = self.constraint.definition_without_not_valid
        sql = f"ALTER TABLE {self.target.sql_name} ADD CONSTRAINT {self.constraint.name} {definition}"
        if not self.constraint.validated:
            sql += " NOT VALID"
        return sql


@dataclass(frozen=True)
class AlterTableDropConstraint(AlterObject):
    OPERATION: ClassVar[Operation] = Operation.DROP
    constraint: TableConstraint

    @property
    def drops(self) -> List[str]:
        return self.target.constraint_ids(self.constraint)

    @property
    def requires(self) -> List[str]:
        return [self.target.stable_id] + self.target.constraint_ids(self.constraint)[:1]

    def serialize(self, options=None) -> str:
        return f"ALTER TABLE {self.target.sql_name} DROP CONSTRAINT {self.constraint.name}"


@dataclass(frozen=True)
class AlterTableValidateConstraint(AlterObject):
    constraint: TableConstraint

    @property
    def requires(self) -> List[str]:
        return [self.target.stable_id] + self.target.constraint_ids(self.constraint)[:1]

    def serialize(self, options=None) -> str:
        return f"ALTER TABLE {self.target.sql_name} VALIDATE CONSTRAINT {self.constraint.name}"


def column_target(table, column: Column) -> ColumnTarget:
    return ColumnTarget(schema=table.schema, table=table.name, name=column.name, comment=column.comment)


def constraint_target(table, constraint: TableConstraint) -> ConstraintTarget:
    return ConstraintTarget(schema=table.schema, table=table.name, name=constraint.name, comment=constraint.comment)


def column_changes(main, branch, add=AlterTableAddColumn, drop=AlterTableDropColumn,
                   alter_type=AlterTableAlterColumnType, set_default=AlterTableAlterColumnSetDefault,
                   drop_default=AlterTableAlterColumnDropDefault, set_not_null=AlterTableAlterColumnSetNotNull,
                   drop_not_null=AlterTableAlterColumnDropNotNull) -> List[Change]:
    """
    Column-level changes between two versions of a table-like record.

    The change classes are parameters so foreign tables can reuse the
    algorithm with their own statements.
    """
    changes = []
    old_columns = {column.name: column for column in main.columns}
    new_columns = {column.name: column for column in branch.columns}

    for column in sorted(branch.columns, key=lambda c: c.position):
        if column.name not in old_columns:
            changes.append(add(branch, column))
            changes.extend(comment_changes(None, column_target(branch, column)))

    for column in sorted(main.columns, key=lambda c: c.position):
        if column.name not in new_columns:
            changes.append(drop(main, column))

    for column in sorted(branch.columns, key=lambda c: c.position):
        old = old_columns.get(column.name)
        if old is None:
            continue
        # generation and identity cannot be changed in place
        if old.generated != column.generated or old.identity != column.identity:
            changes.append(drop(main, old))
            changes.append(add(branch, column))
            changes.extend(comment_changes(None, column_target(branch, column)))
            continue
        if old.data_type != column.data_type or old.collation != column.collation:
            changes.append(alter_type(branch, column))
        if not sql_equal(old.default, column.default):
            if column.default is None:
                changes.append(drop_default(branch, column))
            else:
                changes.append(set_default(branch, column))
        if old.not_null != column.not_null:
            changes.append(set_not_null(branch, column) if column.not_null else drop_not_null(branch, column))
        changes.extend(comment_changes(column_target(main, old), column_target(branch, column)))

    return changes


def constraint_changes(main: Optional[Table], branch: Table) -> List[Change]:
    """Constraint changes for a table; main is None for created tables."""
    changes = []
    old_constraints = {c.name: c for c in main.local_constraints} if main else {}
    new_constraints = {c.name: c for c in branch.local_constraints}

    for name in sorted(new_constraints):
        constraint = new_constraints[name]
        old = old_constraints.get(name)
        if old is None:
            changes.append(AlterTableAddConstraint(branch, constraint))
            changes.extend(comment_changes(None, constraint_target(branch, constraint)))
            continue
        if not old.same_definition(constraint) or (old.validated and not constraint.validated):
            changes.append(AlterTableDropConstraint(main, old))
            changes.append(AlterTableAddConstraint(branch, constraint))
            changes.extend(comment_changes(None, constraint_target(branch, constraint)))
            continue
        if not old.validated and constraint.validated:
            changes.append(AlterTableValidateConstraint(branch, constraint))
        changes.extend(comment_changes(constraint_target(main, old), constraint_target(branch, constraint)))

    for name in sorted(old_constraints):
        if name not in new_constraints:
            changes.append(AlterTableDropConstraint(main, old_constraints[name]))

    return changes


def _storage_changes(old: Table, new: Table) -> List[Change]:
    changes = []
    to_set, to_reset = diff_storage_params(old.options, new.options)
    if to_set:
        changes.append(AlterTableSetStorageParams(new, tuple(to_set.items())))
    if to_reset:
        changes.append(AlterTableResetStorageParams(new, tuple(to_reset)))
    return changes


def _dropped_foreign_keys(table: Table, dropped_ids) -> List[Change]:
    """
    Foreign keys of a dropped table that point at another dropped table.

    They are dropped first so that tables referencing each other can be
    dropped in any order.
    """
    changes = []
    for constraint in table.local_constraints:
        target = constraint.foreign_table_id
        if target and target != table.stable_id and target in dropped_ids:
            changes.append(AlterTableDropConstraint(table, constraint))
    return changes


def diff_tables(ctx, main: Dict[str, Table], branch: Dict[str, Table]) -> List[Change]:
    result = diff_objects(main, branch)
    changes = []

    for key in result.created:
        table = branch[key]
        changes.append(CreateTable(table))
        changes.extend(constraint_changes(None, table))
        changes.extend(owner_change_on_create(table, ctx.current_user))
        changes.extend(comment_changes(None, table))
        if not table.is_partition:
            for column in table.columns:
                changes.extend(comment_changes(None, column_target(table, column)))
        changes.extend(privileges_on_create(ctx, table))

    dropped_ids = set(result.dropped)
    for key in result.dropped:
        table = main[key]
        detached = _dropped_foreign_keys(table, dropped_ids)
        changes.extend(detached)
        changes.append(DropTable(table, tuple(change.constraint.name for change in detached)))

    for key in result.altered:
        old, new = main[key], branch[key]

        if old.persistence != new.persistence:
            if new.persistence == "u":
                changes.append(AlterTableSetUnlogged(new))
            elif new.persistence == "p":
                changes.append(AlterTableSetLogged(new))

        if old.row_security != new.row_security:
            if new.row_security:
                changes.append(AlterTableEnableRowLevelSecurity(new))
            else:
                changes.append(AlterTableDisableRowLevelSecurity(new))

        if old.force_row_security != new.force_row_security:
            if new.force_row_security:
                changes.append(AlterTableForceRowLevelSecurity(new))
            else:
                changes.append(AlterTableNoForceRowLevelSecurity(new))

        changes.extend(_storage_changes(old, new))

        if (old.replica_identity, old.replica_identity_index) != (new.replica_identity, new.replica_identity_index):
            changes.append(AlterTableSetReplicaIdentity(new))

        changes.extend(owner_change_on_alter(old, new))
        changes.extend(constraint_changes(old, new))
        # partitions inherit their columns from the parent
        if not new.is_partition:
            changes.extend(column_changes(old, new))
        changes.extend(comment_changes(old, new))
        changes.extend(privileges_on_alter(ctx, old, new))

    return changes
