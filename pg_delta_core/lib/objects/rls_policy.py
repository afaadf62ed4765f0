"""
Row level security policies.
"""

from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, List, Optional, Tuple

from pg_delta_core.lib import stable_id
from pg_delta_core.lib.change import AlterObject, Change, CreateObject, DropObject
from pg_delta_core.lib.change import comment_changes
from pg_delta_core.lib.model import PgModel
from pg_delta_core.lib.utils import diff_objects, has_non_alterable_changes, sql_equal, unordered_equal

NON_ALTERABLE_FIELDS = ("command", "permissive")

COMMANDS = {"r": "SELECT", "a": "INSERT", "w": "UPDATE", "d": "DELETE", "*": "ALL"}


@dataclass(frozen=True)
class RlsPolicy(PgModel):
    KIND: ClassVar[str] = "rls_policy"
    SQL_KIND: ClassVar[str] = "POLICY"
    IDENTITY: ClassVar[Tuple[str, ...]] = ("schema", "table_name", "name")
    COMPARATORS: ClassVar[Dict[str, Callable[[Any, Any], bool]]] = {
        "roles": unordered_equal,
        "using_expression": sql_equal,
        "with_check_expression": sql_equal,
    }

    schema: str
    table_name: str
    name: str
    command: str = "*"
    permissive: bool = True
    roles: Tuple[str, ...] = ("PUBLIC",)
    using_expression: Optional[str] = None
    with_check_expression: Optional[str] = None
    comment: Optional[str] = None

    @property
    def stable_id(self) -> str:
        return stable_id.rls_policy(self.schema, self.table_name, self.name)

    @property
    def table_id(self) -> str:
        return stable_id.table(self.schema, self.table_name)

    @property
    def requires(self) -> List[str]:
        result = [stable_id.schema(self.schema), self.table_id]
        result.extend(stable_id.role(role) for role in sorted(self.roles) if role.upper() != "PUBLIC")
        return result

    @property
    def sql_target(self) -> str:
        return f"POLICY {self.name} ON {self.schema}.{self.table_name}"

    @property
    def role_list(self) -> str:
        return ", ".join(sorted(self.roles or ("PUBLIC",)))


@dataclass(frozen=True)
class CreateRlsPolicy(CreateObject):

    def serialize(self, options=None) -> str:
        policy = self.target
        parts = [f"CREATE POLICY {policy.name} ON {policy.schema}.{policy.table_name}"]
        if not policy.permissive:
            parts.append("AS RESTRICTIVE")
        if policy.command != "*":
            parts.append(f"FOR {COMMANDS[policy.command]}")
        parts.append(f"TO {policy.role_list}")
        if policy.using_expression is not None:
            parts.append(f"USING ({policy.using_expression})")
        if policy.with_check_expression is not None:
            parts.append(f"WITH CHECK ({policy.with_check_expression})")
        return " ".join(parts)


@dataclass(frozen=True)
class DropRlsPolicy(DropObject):

    def serialize(self, options=None) -> str:
        return f"DROP POLICY {self.target.name} ON {self.target.schema}.{self.target.table_name}"


@dataclass(frozen=True)
class AlterRlsPolicySetRoles(AlterObject):

    @property
    def requires(self) -> List[str]:
        return [self.target.stable_id] + self.target.requires[2:]

    def serialize(self, options=None) -> str:
        return f"ALTER {self.target.sql_target} TO {self.target.role_list}"


@dataclass(frozen=True)
class AlterRlsPolicySetUsingExpression(AlterObject):

    def serialize(self, options=None) -> str:
        return f"ALTER {self.target.sql_target} USING ({self.target.using_expression})"


@dataclass(frozen=True)
class AlterRlsPolicySetWithCheckExpression(AlterObject):

    def serialize(self, options=None) -> str:
        return f"ALTER {self.target.sql_target} WITH CHECK ({self.target.with_check_expression})"


def diff_rls_policies(ctx, main: Dict[str, RlsPolicy], branch: Dict[str, RlsPolicy]) -> List[Change]:
    result = diff_objects(main, branch)
    changes = []

    def create(policy):
        changes.append(CreateRlsPolicy(policy))
        changes.extend(comment_changes(None, policy))

    for key in result.created:
        create(branch[key])

    for key in result.dropped:
        policy = main[key]
        if policy.table_id not in ctx.branch.tables:
            continue
        changes.append(DropRlsPolicy(policy))

    for key in result.altered:
        old, new = main[key], branch[key]
        # ALTER POLICY can change an expression but cannot remove it
        removed_expression = (
            (old.using_expression is not None and new.using_expression is None)
            or (old.with_check_expression is not None and new.with_check_expression is None)
        )
        if removed_expression or has_non_alterable_changes(old, new, NON_ALTERABLE_FIELDS):
            changes.append(DropRlsPolicy(old))
            create(new)
            continue
        if not unordered_equal(old.roles, new.roles):
            changes.append(AlterRlsPolicySetRoles(new))
        if not sql_equal(old.using_expression, new.using_expression):
            changes.append(AlterRlsPolicySetUsingExpression(new))
        if not sql_equal(old.with_check_expression, new.with_check_expression):
            changes.append(AlterRlsPolicySetWithCheckExpression(new))
        changes.extend(comment_changes(old, new))

    return changes
