"""
Indexes.

Indexes backing a constraint come and go with ALTER TABLE ... ADD / DROP
CONSTRAINT, and indexes attached to a partitioned parent index are
created by the parent, so neither is handled here.
"""

from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, List, Optional, Tuple

from pg_delta_core.lib import stable_id
from pg_delta_core.lib.change import AlterObject, Change, CreateObject, DropObject
from pg_delta_core.lib.change import comment_changes
from pg_delta_core.lib.model import PgModel
from pg_delta_core.lib.utils import diff_objects, diff_storage_params, has_non_alterable_changes
from pg_delta_core.lib.utils import index_definition_equal

NON_ALTERABLE_FIELDS = (
    "index_type",
    "is_unique",
    "is_primary",
    "is_exclusion",
    "nulls_not_distinct",
    "immediate",
    "key_columns",
    "column_collations",
    "operator_classes",
    "column_options",
    "index_expressions",
    "partial_predicate",
    "definition",
)


@dataclass(frozen=True)
class Index(PgModel):
    KIND: ClassVar[str] = "index"
    SQL_KIND: ClassVar[str] = "INDEX"
    IDENTITY: ClassVar[Tuple[str, ...]] = ("schema", "table_name", "name")
    COMPARATORS: ClassVar[Dict[str, Callable[[Any, Any], bool]]] = {"definition": index_definition_equal}

    schema: str
    table_name: str
    name: str
    definition: str
    index_type: str = "btree"
    table_kind: str = "r"
    is_unique: bool = False
    is_primary: bool = False
    is_exclusion: bool = False
    is_constraint: bool = False
    is_partition_child: bool = False
    nulls_not_distinct: bool = False
    immediate: bool = True
    key_columns: Tuple[int, ...] = ()
    column_collations: Tuple[str, ...] = ()
    operator_classes: Tuple[str, ...] = ()
    column_options: Tuple[int, ...] = ()
    index_expressions: Optional[str] = None
    partial_predicate: Optional[str] = None
    storage_params: Optional[Tuple[str, ...]] = None
    statistics_target: Optional[Tuple[int, ...]] = None
    tablespace: Optional[str] = None
    comment: Optional[str] = None

    @property
    def stable_id(self) -> str:
        return stable_id.index(self.schema, self.table_name, self.name)

    @property
    def relation_id(self) -> str:
        if self.table_kind == "m":
            return stable_id.materialized_view(self.schema, self.table_name)
        return stable_id.table(self.schema, self.table_name)

    @property
    def requires(self) -> List[str]:
        return [stable_id.schema(self.schema), self.relation_id]

    @property
    def managed(self) -> bool:
        """False for indexes created implicitly by a constraint or a parent index."""
        return not (self.is_primary or self.is_constraint or self.is_partition_child)


@dataclass(frozen=True)
class CreateIndex(CreateObject):

    def serialize(self, options=None) -> str:
        return self.target.definition.strip().rstrip(";")


@dataclass(frozen=True)
class DropIndex(DropObject):

    def serialize(self, options=None) -> str:
        return f"DROP INDEX {self.target.sql_name}"


@dataclass(frozen=True)
class AlterIndexSetStorageParams(AlterObject):
    params: Tuple[Tuple[str, str], ...]

    def serialize(self, options=None) -> str:
        params = ", ".join(f"{key}={value}" for key, value in self.params)
        return f"ALTER INDEX {self.target.sql_name} SET ({params})"


@dataclass(frozen=True)
class AlterIndexResetStorageParams(AlterObject):
    params: Tuple[str, ...]

    def serialize(self, options=None) -> str:
        return f"ALTER INDEX {self.target.sql_name} RESET ({', '.join(self.params)})"


@dataclass(frozen=True)
class AlterIndexSetStatistics(AlterObject):
    """ALTER INDEX ... ALTER COLUMN n SET STATISTICS v, for each changed column number."""
    targets: Tuple[Tuple[int, int], ...]

    def serialize(self, options=None) -> str:
        clauses = ", ".join(f"ALTER COLUMN {number} SET STATISTICS {value}" for number, value in self.targets)
        return f"ALTER INDEX {self.target.sql_name} {clauses}"


@dataclass(frozen=True)
class AlterIndexSetTablespace(AlterObject):

    def serialize(self, options=None) -> str:
        return f"ALTER INDEX {self.target.sql_name} SET TABLESPACE {self.target.tablespace or 'pg_default'}"


def _statistics_changes(old: Index, new: Index) -> List[Change]:
    old_targets = list(old.statistics_target or ())
    new_targets = list(new.statistics_target or ())
    changed = []
    for number, value in enumerate(new_targets, start=1):
        previous = old_targets[number - 1] if number <= len(old_targets) else None
        if previous != value:
            changed.append((number, value))
    if not changed:
        return []
    return [AlterIndexSetStatistics(new, tuple(changed))]


def _relation_exists(catalog, index: Index) -> bool:
    if index.table_kind == "m":
        return index.relation_id in catalog.materialized_views
    return index.relation_id in catalog.tables


def diff_indexes(ctx, main: Dict[str, Index], branch: Dict[str, Index]) -> List[Change]:
    result = diff_objects(main, branch)
    changes = []

    def create(index):
        changes.append(CreateIndex(index))
        changes.extend(comment_changes(None, index))

    for key in result.created:
        index = branch[key]
        if index.managed:
            create(index)

    for key in result.dropped:
        index = main[key]
        # a dropped table takes its indexes with it
        if not index.managed or not _relation_exists(ctx.branch, index):
            continue
        changes.append(DropIndex(index))

    for key in result.altered:
        old, new = main[key], branch[key]
        if has_non_alterable_changes(old, new, NON_ALTERABLE_FIELDS, Index.COMPARATORS):
            if old.managed:
                changes.append(DropIndex(old))
            if new.managed:
                create(new)
            continue

        to_set, to_reset = diff_storage_params(old.storage_params, new.storage_params)
        if to_set:
            changes.append(AlterIndexSetStorageParams(new, tuple(to_set.items())))
        if to_reset:
            changes.append(AlterIndexResetStorageParams(new, tuple(to_reset)))
        changes.extend(_statistics_changes(old, new))
        if old.tablespace != new.tablespace:
            changes.append(AlterIndexSetTablespace(new))
        changes.extend(comment_changes(old, new))

    return changes
