"""
Foreign servers.
"""

from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, List, Optional, Tuple

from pg_delta_core.lib import stable_id
from pg_delta_core.lib.change import AlterObject, Change, CreateObject, DropObject
from pg_delta_core.lib.change import comment_changes, owner_change_on_alter, owner_change_on_create
from pg_delta_core.lib.model import PgModel, Privilege
from pg_delta_core.lib.privileges import privileges_on_alter, privileges_on_create
from pg_delta_core.lib.utils import OptionChange, diff_objects, diff_option_pairs, format_option_pairs
from pg_delta_core.lib.utils import has_non_alterable_changes, option_pairs_equal, quote_literal

NON_ALTERABLE_FIELDS = ("foreign_data_wrapper", "type")


@dataclass(frozen=True)
class Server(PgModel):
    KIND: ClassVar[str] = "server"
    SQL_KIND: ClassVar[str] = "SERVER"
    GRANT_KIND: ClassVar[str] = "FOREIGN SERVER"
    IDENTITY: ClassVar[Tuple[str, ...]] = ("name",)
    NESTED: ClassVar[Dict[str, type]] = {"privileges": Privilege}
    COMPARATORS: ClassVar[Dict[str, Callable[[Any, Any], bool]]] = {"options": option_pairs_equal}

    name: str
    owner: str
    foreign_data_wrapper: str
    type: Optional[str] = None
    version: Optional[str] = None
    options: Optional[Tuple[str, ...]] = None
    comment: Optional[str] = None
    privileges: Tuple[Privilege, ...] = ()

    @property
    def requires(self) -> List[str]:
        return super().requires + [stable_id.foreign_data_wrapper(self.foreign_data_wrapper)]


@dataclass(frozen=True)
class CreateServer(CreateObject):

    def serialize(self, options=None) -> str:
        server = self.target
        sql = f"CREATE SERVER {server.name}"
        if server.type:
            sql += f" TYPE {quote_literal(server.type)}"
        if server.version:
            sql += f" VERSION {quote_literal(server.version)}"
        sql += f" FOREIGN DATA WRAPPER {server.foreign_data_wrapper}"
        if server.options:
            sql += f" OPTIONS ({format_option_pairs(server.options)})"
        return sql


@dataclass(frozen=True)
class DropServer(DropObject):

    def serialize(self, options=None) -> str:
        return f"DROP SERVER {self.target.name}"


@dataclass(frozen=True)
class AlterServerSetVersion(AlterObject):

    def serialize(self, options=None) -> str:
        return f"ALTER SERVER {self.target.name} VERSION {quote_literal(self.target.version or '')}"


@dataclass(frozen=True)
class AlterServerSetOptions(AlterObject):
    options: Tuple[OptionChange, ...]

    def serialize(self, options=None) -> str:
        clauses = ", ".join(option.to_sql() for option in self.options)
        return f"ALTER SERVER {self.target.name} OPTIONS ({clauses})"


def diff_servers(ctx, main: Dict[str, Server], branch: Dict[str, Server]) -> List[Change]:
    result = diff_objects(main, branch)
    changes = []

    def create(server):
        changes.append(CreateServer(server))
        changes.extend(owner_change_on_create(server, ctx.current_user))
        changes.extend(comment_changes(None, server))
        changes.extend(privileges_on_create(ctx, server))

    for key in result.created:
        create(branch[key])

    for key in result.dropped:
        changes.append(DropServer(main[key]))

    for key in result.altered:
        old, new = main[key], branch[key]
        if has_non_alterable_changes(old, new, NON_ALTERABLE_FIELDS):
            changes.append(DropServer(old))
            create(new)
            continue
        if old.version != new.version:
            changes.append(AlterServerSetVersion(new))
        option_changes = diff_option_pairs(old.options, new.options)
        if option_changes:
            changes.append(AlterServerSetOptions(new, tuple(option_changes)))
        changes.extend(owner_change_on_alter(old, new))
        changes.extend(comment_changes(old, new))
        changes.extend(privileges_on_alter(ctx, old, new))

    return changes
