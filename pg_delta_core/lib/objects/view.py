"""
Views.
"""

from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, List, Optional, Tuple

from pg_delta_core.lib.change import AlterObject, Change, CreateObject, DropObject, Operation
from pg_delta_core.lib.change import comment_changes, owner_change_on_alter, owner_change_on_create
from pg_delta_core.lib.model import PgModel, Privilege
from pg_delta_core.lib.privileges import privileges_on_alter, privileges_on_create
from pg_delta_core.lib.utils import diff_objects, diff_storage_params, sql_equal


@dataclass(frozen=True)
class View(PgModel):
    KIND: ClassVar[str] = "view"
    SQL_KIND: ClassVar[str] = "VIEW"
    GRANT_KIND: ClassVar[str] = "TABLE"
    NESTED: ClassVar[Dict[str, type]] = {"privileges": Privilege}
    COMPARATORS: ClassVar[Dict[str, Callable[[Any, Any], bool]]] = {"definition": sql_equal}

    schema: str
    name: str
    owner: str
    definition: str
    options: Optional[Tuple[str, ...]] = None
    comment: Optional[str] = None
    privileges: Tuple[Privilege, ...] = ()


def view_body(definition: str) -> str:
    return definition.strip().rstrip(";")


@dataclass(frozen=True)
class CreateView(CreateObject):
    """CREATE [OR REPLACE] VIEW; the replace form alters an existing view."""
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
        view = self.target
        head = "CREATE OR REPLACE VIEW" if self.replace else "CREATE VIEW"
        sql = f"{head} {view.sql_name}"
        if view.options:
            sql += f" WITH ({', '.join(view.options)})"
        return f"{sql} AS {view_body(view.definition)}"


@dataclass(frozen=True)
class DropView(DropObject):

    def serialize(self, options=None) -> str:
        return f"DROP VIEW {self.target.sql_name}"


@dataclass(frozen=True)
class AlterViewSetOptions(AlterObject):
    params: Tuple[Tuple[str, str], ...]

    def serialize(self, options=None) -> str:
        params = ", ".join(f"{key}={value}" for key, value in self.params)
        return f"ALTER VIEW {self.target.sql_name} SET ({params})"


@dataclass(frozen=True)
class AlterViewResetOptions(AlterObject):
    params: Tuple[str, ...]

    def serialize(self, options=None) -> str:
        return f"ALTER VIEW {self.target.sql_name} RESET ({', '.join(self.params)})"


def diff_views(ctx, main: Dict[str, View], branch: Dict[str, View]) -> List[Change]:
    result = diff_objects(main, branch)
    changes = []

    for key in result.created:
        view = branch[key]
        changes.append(CreateView(view))
        changes.extend(owner_change_on_create(view, ctx.current_user))
        changes.extend(comment_changes(None, view))
        changes.extend(privileges_on_create(ctx, view))

    for key in result.dropped:
        changes.append(DropView(main[key]))

    for key in result.altered:
        old, new = main[key], branch[key]
        if not sql_equal(old.definition, new.definition):
            # the replace statement carries the options too
            changes.append(CreateView(new, replace=True))
        else:
            to_set, to_reset = diff_storage_params(old.options, new.options)
            if to_set:
                changes.append(AlterViewSetOptions(new, tuple(to_set.items())))
            if to_reset:
                changes.append(AlterViewResetOptions(new, tuple(to_reset)))
        changes.extend(owner_change_on_alter(old, new))
        changes.extend(comment_changes(old, new))
        changes.extend(privileges_on_alter(ctx, old, new))

    return changes
