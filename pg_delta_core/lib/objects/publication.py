"""
Logical replication publications.
"""

from dataclasses import dataclass
from typing import ClassVar, Dict, List, Optional, Tuple

from pg_delta_core.lib import stable_id
from pg_delta_core.lib.change import AlterObject, Change, CreateObject, DropObject
from pg_delta_core.lib.change import comment_changes, owner_change_on_alter, owner_change_on_create
from pg_delta_core.lib.model import PgModel, Record
from pg_delta_core.lib.utils import diff_objects, has_non_alterable_changes

NON_ALTERABLE_FIELDS = ("all_tables",)

PUBLISH_ACTIONS = ("insert", "update", "delete", "truncate")


@dataclass(frozen=True)
class PublicationTable(Record):
    schema: str
    name: str
    columns: Optional[Tuple[str, ...]] = None
    row_filter: Optional[str] = None

    @property
    def stable_id(self) -> str:
        return stable_id.table(self.schema, self.name)

    def to_sql(self) -> str:
        sql = f"{self.schema}.{self.name}"
        if self.columns:
            sql += f" ({', '.join(self.columns)})"
        if self.row_filter:
            sql += f" WHERE ({self.row_filter})"
        return sql


@dataclass(frozen=True)
class Publication(PgModel):
    KIND: ClassVar[str] = "publication"
    SQL_KIND: ClassVar[str] = "PUBLICATION"
    IDENTITY: ClassVar[Tuple[str, ...]] = ("name",)
    NESTED: ClassVar[Dict[str, type]] = {"tables": PublicationTable}

    name: str
    owner: str
    all_tables: bool = False
    publish_insert: bool = True
    publish_update: bool = True
    publish_delete: bool = True
    publish_truncate: bool = True
    publish_via_partition_root: bool = False
    tables: Tuple[PublicationTable, ...] = ()
    schemas: Tuple[str, ...] = ()
    comment: Optional[str] = None

    @property
    def requires(self) -> List[str]:
        result = super().requires
        result.extend(table.stable_id for table in self.tables)
        result.extend(stable_id.schema(name) for name in self.schemas)
        return result

    @property
    def publish(self) -> str:
        return ", ".join(action for action in PUBLISH_ACTIONS if getattr(self, f"publish_{action}"))

    def option_clauses(self, defaults_only: bool = True) -> List[str]:
        """WITH (...) entries; defaults are skipped unless defaults_only is False."""
        clauses = []
        if not defaults_only or self.publish != ", ".join(PUBLISH_ACTIONS):
            clauses.append(f"publish = '{self.publish}'")
        if not defaults_only or self.publish_via_partition_root:
            clauses.append(f"publish_via_partition_root = {str(self.publish_via_partition_root).lower()}")
        return clauses


def _targets(tables, schemas) -> str:
    parts = []
    if tables:
        parts.append("TABLE " + ", ".join(table.to_sql() for table in tables))
    if schemas:
        parts.append("TABLES IN SCHEMA " + ", ".join(schemas))
    return ", ".join(parts)


@dataclass(frozen=True)
class CreatePublication(CreateObject):

    def serialize(self, options=None) -> str:
        publication = self.target
        sql = f"CREATE PUBLICATION {publication.name}"
        if publication.all_tables:
            sql += " FOR ALL TABLES"
        elif publication.tables or publication.schemas:
            sql += f" FOR {_targets(publication.tables, publication.schemas)}"
        clauses = publication.option_clauses()
        if clauses:
            sql += f" WITH ({', '.join(clauses)})"
        return sql


@dataclass(frozen=True)
class DropPublication(DropObject):

    def serialize(self, options=None) -> str:
        return f"DROP PUBLICATION {self.target.name}"


@dataclass(frozen=True)
class AlterPublicationAddTables(AlterObject):
    tables: Tuple[PublicationTable, ...]

    @property
    def requires(self) -> List[str]:
        return [self.target.stable_id] + [table.stable_id for table in self.tables]

    def serialize(self, options=None) -> str:
        return f"ALTER PUBLICATION {self.target.name} ADD {_targets(self.tables, ())}"


@dataclass(frozen=True)
class AlterPublicationDropTables(AlterObject):
    tables: Tuple[PublicationTable, ...]

    @property
    def requires(self) -> List[str]:
        return [self.target.stable_id] + [table.stable_id for table in self.tables]

    def serialize(self, options=None) -> str:
        names = ", ".join(f"{table.schema}.{table.name}" for table in self.tables)
        return f"ALTER PUBLICATION {self.target.name} DROP TABLE {names}"


@dataclass(frozen=True)
class AlterPublicationAddSchemas(AlterObject):
    schemas: Tuple[str, ...]

    @property
    def requires(self) -> List[str]:
        return [self.target.stable_id] + [stable_id.schema(name) for name in self.schemas]

    def serialize(self, options=None) -> str:
        return f"ALTER PUBLICATION {self.target.name} ADD TABLES IN SCHEMA {', '.join(self.schemas)}"


@dataclass(frozen=True)
class AlterPublicationDropSchemas(AlterObject):
    schemas: Tuple[str, ...]

    def serialize(self, options=None) -> str:
        return f"ALTER PUBLICATION {self.target.name} DROP TABLES IN SCHEMA {', '.join(self.schemas)}"


@dataclass(frozen=True)
class AlterPublicationSetOptions(AlterObject):

    def serialize(self, options=None) -> str:
        clauses = ", ".join(self.target.option_clauses(defaults_only=False))
        return f"ALTER PUBLICATION {self.target.name} SET ({clauses})"


def diff_publications(ctx, main: Dict[str, Publication], branch: Dict[str, Publication]) -> List[Change]:
    result = diff_objects(main, branch)
    changes = []

    def create(publication):
        changes.append(CreatePublication(publication))
        changes.extend(owner_change_on_create(publication, ctx.current_user))
        changes.extend(comment_changes(None, publication))

    for key in result.created:
        create(branch[key])

    for key in result.dropped:
        changes.append(DropPublication(main[key]))

    for key in result.altered:
        old, new = main[key], branch[key]
        if has_non_alterable_changes(old, new, NON_ALTERABLE_FIELDS):
            changes.append(DropPublication(old))
            create(new)
            continue

        old_tables = {table.stable_id: table for table in old.tables}
        new_tables = {table.stable_id: table for table in new.tables}
        # a table whose column list or row filter changed is dropped and re-added;
        # a dropped table already left the publication
        dropped = tuple(old_tables[key] for key in sorted(old_tables)
                        if key in ctx.branch.tables
                        and (key not in new_tables or new_tables[key] != old_tables[key]))
        added = tuple(new_tables[key] for key in sorted(new_tables)
                      if key not in old_tables or old_tables[key] != new_tables[key])
        if dropped:
            changes.append(AlterPublicationDropTables(new, dropped))
        if added:
            changes.append(AlterPublicationAddTables(new, added))

        dropped_schemas = tuple(sorted(set(old.schemas) - set(new.schemas)))
        added_schemas = tuple(sorted(set(new.schemas) - set(old.schemas)))
        if dropped_schemas:
            changes.append(AlterPublicationDropSchemas(new, dropped_schemas))
        if added_schemas:
            changes.append(AlterPublicationAddSchemas(new, added_schemas))

        if old.option_clauses(False) != new.option_clauses(False):
            changes.append(AlterPublicationSetOptions(new))
        changes.extend(owner_change_on_alter(old, new))
        changes.extend(comment_changes(old, new))

    return changes
