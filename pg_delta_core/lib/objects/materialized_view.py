"""
Materialized views.

There is no CREATE OR REPLACE for materialized views, so a changed
query replaces the object.
"""

from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, List, Optional, Tuple

from pg_delta_core.lib.change import AlterObject, Change, CreateObject, DropObject
from pg_delta_core.lib.change import comment_changes, owner_change_on_alter, owner_change_on_create
from pg_delta_core.lib.model import PgModel, Privilege
from pg_delta_core.lib.objects.view import view_body
from pg_delta_core.lib.privileges import privileges_on_alter, privileges_on_create
from pg_delta_core.lib.utils import diff_objects, diff_storage_params, has_non_alterable_changes, sql_equal

NON_ALTERABLE_FIELDS = ("definition",)


@dataclass(frozen=True)
class MaterializedView(PgModel):
    KIND: ClassVar[str] = "materialized_view"
    SQL_KIND: ClassVar[str] = "MATERIALIZED VIEW"
    GRANT_KIND: ClassVar[str] = "TABLE"
    NESTED: ClassVar[Dict[str, type]] = {"privileges": Privilege}
    IGNORED: ClassVar[Tuple[str, ...]] = ("with_data",)
    COMPARATORS: ClassVar[Dict[str, Callable[[Any, Any], bool]]] = {"definition": sql_equal}

    schema: str
    name: str
    owner: str
    definition: str
    with_data: bool = True
    options: Optional[Tuple[str, ...]] = None
    tablespace: Optional[str] = None
    comment: Optional[str] = None
    privileges: Tuple[Privilege, ...] = ()


@dataclass(frozen=True)
class CreateMaterializedView(CreateObject):

    def serialize(self, options=None) -> str:
        view = self.target
        sql = f"CREATE MATERIALIZED VIEW {view.sql_name}"
        if view.options:
            sql += f" WITH ({', '.join(view.options)})"
        if view.tablespace:
            sql += f" TABLESPACE {view.tablespace}"
        sql += f" AS {view_body(view.definition)}"
        return sql + (" WITH DATA" if view.with_data else " WITH NO DATA")


@dataclass(frozen=True)
class DropMaterializedView(DropObject):

    def serialize(self, options=None) -> str:
        return f"DROP MATERIALIZED VIEW {self.target.sql_name}"


@dataclass(frozen=True)
class AlterMaterializedViewSetStorageParams(AlterObject):
    params: Tuple[Tuple[str, str], ...]

    def serialize(self, options=None) -> str:
        params = ", ".join(f"{key}={value}" for key, value in self.params)
        return f"ALTER MATERIALIZED VIEW {self.target.sql_name} SET ({params})"


@dataclass(frozen=True)
class AlterMaterializedViewResetStorageParams(AlterObject):
    params: Tuple[str, ...]

    def serialize(self, options=None) -> str:
        return f"ALTER MATERIALIZED VIEW {self.target.sql_name} RESET ({', '.join(self.params)})"


@dataclass(frozen=True)
class AlterMaterializedViewSetTablespace(AlterObject):

    def serialize(self, options=None) -> str:
        return (
            f"ALTER MATERIALIZED VIEW {self.target.sql_name} "
            f"SET TABLESPACE {self.target.tablespace or 'pg_default'}"
        )


def diff_materialized_views(
    ctx, main: Dict[str, MaterializedView], branch: Dict[str, MaterializedView]
) -> List[Change]:
    result = diff_objects(main, branch)
    changes = []

    def create(view):
        changes.append(CreateMaterializedView(view))
        changes.extend(owner_change_on_create(view, ctx.current_user))
        changes.extend(comment_changes(None, view))
        changes.extend(privileges_on_create(ctx, view))

    for key in result.created:
        create(branch[key])

    for key in result.dropped:
        changes.append(DropMaterializedView(main[key]))

    for key in result.altered:
        old, new = main[key], branch[key]
        if has_non_alterable_changes(old, new, NON_ALTERABLE_FIELDS, MaterializedView.COMPARATORS):
            changes.append(DropMaterializedView(old))
            create(new)
            continue
        to_set, to_reset = diff_storage_params(old.options, new.options)
        if to_set:
            changes.append(AlterMaterializedViewSetStorageParams(new, tuple(to_set.items())))
        if to_reset:
            changes.append(AlterMaterializedViewResetStorageParams(new, tuple(to_reset)))
        if old.tablespace != new.tablespace:
            changes.append(AlterMaterializedViewSetTablespace(new))
        changes.extend(owner_change_on_alter(old, new))
        changes.extend(comment_changes(old, new))
        changes.extend(privileges_on_alter(ctx, old, new))

    return changes
