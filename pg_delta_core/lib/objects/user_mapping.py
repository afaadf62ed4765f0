"""
User mappings for foreign servers.
"""

from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, List, Optional, Tuple

from pg_delta_core.lib import stable_id
from pg_delta_core.lib.change import AlterObject, Change, CreateObject, DropObject
from pg_delta_core.lib.model import PgModel
from pg_delta_core.lib.utils import OptionChange, diff_objects, diff_option_pairs, format_option_pairs
from pg_delta_core.lib.utils import option_pairs_equal

# Mapping targets that are not roles
PSEUDO_USERS = ("PUBLIC", "CURRENT_USER", "CURRENT_ROLE", "SESSION_USER", "USER")


@dataclass(frozen=True)
class UserMapping(PgModel):
    KIND: ClassVar[str] = "user_mapping"
    SQL_KIND: ClassVar[str] = "USER MAPPING"
    IDENTITY: ClassVar[Tuple[str, ...]] = ("server", "user")
    COMPARATORS: ClassVar[Dict[str, Callable[[Any, Any], bool]]] = {"options": option_pairs_equal}

    server: str
    user: str
    options: Optional[Tuple[str, ...]] = None

    @property
    def stable_id(self) -> str:
        return stable_id.user_mapping(self.server, self.user)

    @property
    def sql_name(self) -> str:
        return f"FOR {self.user} SERVER {self.server}"

    @property
    def requires(self) -> List[str]:
        result = [stable_id.server(self.server)]
        if self.user.upper() not in PSEUDO_USERS:
            result.append(stable_id.role(self.user))
        return result


@dataclass(frozen=True)
class CreateUserMapping(CreateObject):

    def serialize(self, options=None) -> str:
        sql = f"CREATE USER MAPPING {self.target.sql_name}"
        if self.target.options:
            sql += f" OPTIONS ({format_option_pairs(self.target.options)})"
        return sql


@dataclass(frozen=True)
class DropUserMapping(DropObject):

    def serialize(self, options=None) -> str:
        return f"DROP USER MAPPING {self.target.sql_name}"


@dataclass(frozen=True)
class AlterUserMappingSetOptions(AlterObject):
    options: Tuple[OptionChange, ...]

    def serialize(self, options=None) -> str:
        clauses = ", ".join(option.to_sql() for option in self.options)
        return f"ALTER USER MAPPING {self.target.sql_name} OPTIONS ({clauses})"


def diff_user_mappings(ctx, main: Dict[str, UserMapping], branch: Dict[str, UserMapping]) -> List[Change]:
    result = diff_objects(main, branch)
    changes = []

    for key in result.created:
        changes.append(CreateUserMapping(branch[key]))

    for key in result.dropped:
        mapping = main[key]
        # dropping the server drops its mappings
        if stable_id.server(mapping.server) not in ctx.branch.servers:
            continue
        changes.append(DropUserMapping(mapping))

    for key in result.altered:
        option_changes = diff_option_pairs(main[key].options, branch[key].options)
        if option_changes:
            changes.append(AlterUserMappingSetOptions(branch[key], tuple(option_changes)))

    return changes
