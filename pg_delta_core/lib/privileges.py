"""
Object privilege diffing shared by every grantable kind.

Privileges are compared per grantee. A privilege entry is keyed by
``privilege:grantable:columns`` so that column-level grants and grant
options are tracked separately from plain object grants.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Iterable, List, Optional, Sequence, Tuple

from pg_delta_core.lib import stable_id
from pg_delta_core.lib.change import Change, Operation, Scope, TargetedChange
from pg_delta_core.lib.errors import ChangeValidationError
from pg_delta_core.lib.model import PgModel, Privilege

PUBLIC = "PUBLIC"

_TABLE_PRIVILEGES = ["DELETE", "INSERT", "REFERENCES", "SELECT", "TRIGGER", "TRUNCATE", "UPDATE"]

# Built-in grants PostgreSQL gives PUBLIC on newly created objects
PUBLIC_DEFAULTS = {
    "FUNCTION": ["EXECUTE"],
    "PROCEDURE": ["EXECUTE"],
    "AGGREGATE": ["EXECUTE"],
    "LANGUAGE": ["USAGE"],
    "TYPE": ["USAGE"],
    "DOMAIN": ["USAGE"],
}

# Model KIND -> pg_default_acl objtype code
DEFAULT_ACL_OBJTYPES = {
    "table": "r",
    "view": "r",
    "materialized_view": "r",
    "foreign_table": "r",
    "sequence": "S",
    "procedure": "f",
    "aggregate": "f",
    "domain": "T",
    "enum": "T",
    "range": "T",
    "composite_type": "T",
    "schema": "n",
}


def privilege_universe(kind: str, version: Optional[int] = None) -> List[str]:
    """
    Return the complete privilege set for an object kind.

    kind is the SQL keyword of the object (TABLE, VIEW, SEQUENCE, ...).
    MAINTAIN only exists from PostgreSQL 17 on.
    """
    maintain = (version or 170000) >= 170000
    if kind == "TABLE":
        return sorted(_TABLE_PRIVILEGES + (["MAINTAIN"] if maintain else []))
    if kind in ("VIEW", "FOREIGN TABLE"):
        return sorted(_TABLE_PRIVILEGES)
    if kind == "MATERIALIZED VIEW":
        return sorted(["SELECT"] + (["MAINTAIN"] if maintain else []))
    if kind == "SEQUENCE":
        return ["SELECT", "UPDATE", "USAGE"]
    if kind == "SCHEMA":
        return ["CREATE", "USAGE"]
    if kind in ("LANGUAGE", "TYPE", "DOMAIN", "FOREIGN DATA WRAPPER", "SERVER"):
        return ["USAGE"]
    if kind in ("FUNCTION", "PROCEDURE", "AGGREGATE", "ROUTINE"):
        return ["EXECUTE"]
    return []


def format_privilege_list(kind: str, privileges: Iterable[str], version: Optional[int] = None) -> str:
    """Render a privilege list, collapsing to ALL when it covers the whole universe."""
    unique = sorted(set(privileges))
    if unique and unique == privilege_universe(kind, version):
        return "ALL"
    return ", ".join(unique)


def _privilege_key(privilege: Privilege) -> Tuple[str, bool, Tuple[str, ...]]:
    return privilege.privilege, privilege.grantable, tuple(sorted(privilege.columns or ()))


@dataclass
class PrivilegeDiff:
    """Result of diffing one grantee's privileges."""
    grants: List[Privilege] = field(default_factory=list)
    revokes: List[Privilege] = field(default_factory=list)
    revoke_grant_option: List[Privilege] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.grants or self.revokes or self.revoke_grant_option)


def _diff_grantee(main: Sequence[Privilege], branch: Sequence[Privilege]) -> PrivilegeDiff:
    main_keys = {_privilege_key(p): p for p in main}
    branch_keys = {_privilege_key(p): p for p in branch}
    result = PrivilegeDiff()

    for key in sorted(branch_keys, key=repr):
        if key in main_keys:
            continue
        privilege, grantable, columns = key
        if not grantable and (privilege, True, columns) in main_keys:
            # downgraded from WITH GRANT OPTION, revoking the option is enough
            continue
        result.grants.append(branch_keys[key])

    for key in sorted(main_keys, key=repr):
        if key in branch_keys:
            continue
        privilege, grantable, columns = key
        if not grantable and (privilege, True, columns) in branch_keys:
            # upgraded to WITH GRANT OPTION, the grant covers it
            continue
        if grantable and (privilege, False, columns) in branch_keys:
            result.revoke_grant_option.append(main_keys[key])
        else:
            result.revokes.append(main_keys[key])
    return result


def diff_privileges(
    main: Sequence[Privilege], branch: Sequence[Privilege], exclude: Iterable[str] = ()
) -> Dict[str, PrivilegeDiff]:
    """
    Diff two ACLs grantee by grantee.

    Grantees named in exclude (typically the object owner, whose implicit
    privileges follow ownership) are skipped. Grantees are visited in
    sorted order.
    """
    skip = set(exclude)
    by_grantee_main = defaultdict(list)
    by_grantee_branch = defaultdict(list)
    for p in main:
        by_grantee_main[p.grantee].append(p)
    for p in branch:
        by_grantee_branch[p.grantee].append(p)

    results = {}
    for grantee in sorted(set(by_grantee_main) | set(by_grantee_branch)):
        if grantee in skip:
            continue
        result = _diff_grantee(by_grantee_main.get(grantee, []), by_grantee_branch.get(grantee, []))
        if not result.is_empty():
            results[grantee] = result
    return results


def group_privileges(privileges: Sequence[Privilege]) -> List[Tuple[Privilege, ...]]:
    """Split privileges into groups sharing the grantable flag and column list."""
    groups = defaultdict(list)
    for p in privileges:
        groups[(p.grantable, tuple(sorted(p.columns or ())))].append(p)
    return [tuple(groups[key]) for key in sorted(groups)]


@dataclass(frozen=True)
class PrivilegeChange(TargetedChange):
    """Base for GRANT / REVOKE on an object for one grantee."""
    SCOPE: ClassVar[Scope] = Scope.PRIVILEGE
    OPERATION: ClassVar[Operation] = Operation.ALTER

    grantee: str
    privileges: Tuple[Privilege, ...]
    version: Optional[int] = None

    @property
    def columns(self) -> Optional[Tuple[str, ...]]:
        for p in self.privileges:
            if p.columns:
                return tuple(p.columns)
        return None

    @property
    def acl_id(self) -> str:
        if self.columns:
            return stable_id.acl_column(self.target.stable_id, self.grantee)
        return stable_id.acl(self.target.stable_id, self.grantee)

    @property
    def requires(self) -> List[str]:
        result = [self.target.stable_id]
        if self.grantee != PUBLIC:
            result.append(stable_id.role(self.grantee))
        return result

    def privilege_list(self) -> str:
        names = [p.privilege for p in self.privileges]
        if self.columns:
            cols = ", ".join(self.columns)
            return ", ".join(f"{name} ({cols})" for name in sorted(set(names)))
        return format_privilege_list(self.target.sql_kind, names, self.version)


@dataclass(frozen=True)
class GrantPrivileges(PrivilegeChange):
    """GRANT ... ON <object> TO <grantee> [WITH GRANT OPTION]."""

    def __post_init__(self):
        object.__setattr__(self, "privileges", tuple(self.privileges))
        flags = {p.grantable for p in self.privileges}
        if len(flags) > 1:
            raise ChangeValidationError(
                f"Cannot grant privileges with mixed grantable flags to {self.grantee} "
                f"on {self.target.stable_id}"
            )
        if not self.privileges:
            raise ChangeValidationError(f"GRANT on {self.target.stable_id} needs at least one privilege")

    @property
    def creates(self) -> List[str]:
        return [self.acl_id]

    def serialize(self, options=None) -> str:
        sql = f"GRANT {self.privilege_list()} ON {self.target.grant_target} TO {self.grantee}"
        if self.privileges[0].grantable:
            sql += " WITH GRANT OPTION"
        return sql


@dataclass(frozen=True)
class RevokePrivileges(PrivilegeChange):
    """REVOKE ... ON <object> FROM <grantee>."""

    @property
    def drops(self) -> List[str]:
        return [self.acl_id]

    @property
    def requires(self) -> List[str]:
        return [self.acl_id] + super().requires

    def serialize(self, options=None) -> str:
        return f"REVOKE {self.privilege_list()} ON {self.target.grant_target} FROM {self.grantee}"


@dataclass(frozen=True)
class RevokeGrantOptionPrivileges(PrivilegeChange):
    """REVOKE GRANT OPTION FOR ... ON <object> FROM <grantee>."""

    @property
    def requires(self) -> List[str]:
        return [self.acl_id] + super().requires

    def serialize(self, options=None) -> str:
        return (
            f"REVOKE GRANT OPTION FOR {self.privilege_list()} "
            f"ON {self.target.grant_target} FROM {self.grantee}"
        )


class DefaultPrivilegeState:
    """
    Effective default privileges per creating role.

    Built from the branch roles' ``default_privileges`` entries, since
    ALTER DEFAULT PRIVILEGES statements are ordered before the creates they
    affect.
    """

    def __init__(self, roles: Optional[Dict[str, Any]] = None):
        # role -> objtype -> schema (None for global) -> grantee -> {(privilege, grantable)}
        self._state = defaultdict(lambda: defaultdict(lambda: defaultdict(lambda: defaultdict(set))))
        for role in (roles or {}).values():
            for entry in getattr(role, "default_privileges", ()) or ():
                self.apply_grant(role.name, entry.objtype, entry.in_schema, entry.grantee, entry.privileges)

    def apply_grant(self, role: str, objtype: str, schema: Optional[str], grantee: str,
                    privileges: Iterable[Privilege]):
        target = self._state[role][objtype][schema][grantee]
        for p in privileges:
            target.add((p.privilege, bool(p.grantable)))

    def apply_revoke(self, role: str, objtype: str, schema: Optional[str], grantee: str,
                     privileges: Iterable[Privilege]):
        target = self._state.get(role, {}).get(objtype, {}).get(schema, {}).get(grantee)
        if target is None:
            return
        for p in privileges:
            target.discard((p.privilege, bool(p.grantable)))
            if p.grantable:
                target.discard((p.privilege, False))

    def effective_defaults(self, role: Optional[str], kind: str, schema: Optional[str]) -> List[Privilege]:
        """Default ACL entries applied when role creates an object of model kind in schema."""
        objtype = DEFAULT_ACL_OBJTYPES.get(kind)
        if objtype is None or role is None or role not in self._state:
            return []
        by_schema = self._state[role].get(objtype, {})
        result = []
        # global and per-schema default privileges add up
        for key in ([schema, None] if schema else [None]):
            grantees = by_schema.get(key)
            if not grantees:
                continue
            for grantee in sorted(grantees):
                for privilege, grantable in sorted(grantees[grantee]):
                    result.append(Privilege(grantee=grantee, privilege=privilege, grantable=grantable))
        return result


def privilege_changes(
    target: PgModel,
    main: Sequence[Privilege],
    branch: Sequence[Privilege],
    version: Optional[int] = None,
    exclude: Iterable[str] = (),
) -> List[Change]:
    """Turn an ACL diff into grant, revoke and revoke-grant-option changes."""
    changes = []
    for grantee, result in diff_privileges(main, branch, exclude).items():
        for group in group_privileges(result.grants):
            changes.append(GrantPrivileges(target, grantee, group, version))
        for group in group_privileges(result.revokes):
            changes.append(RevokePrivileges(target, grantee, group, version))
        for group in group_privileges(result.revoke_grant_option):
            changes.append(RevokeGrantOptionPrivileges(target, grantee, group, version))
    return changes


def _public_defaults(record: PgModel) -> List[Privilege]:
    return [Privilege(grantee=PUBLIC, privilege=name) for name in PUBLIC_DEFAULTS.get(record.sql_kind, [])]


def privileges_on_create(ctx, record: PgModel) -> List[Change]:
    """
    ACL changes needed right after creating record.

    The desired ACL is compared with what the object gets on creation:
    PostgreSQL's built-in PUBLIC grants plus the creating role's default
    privileges.
    """
    defaults = _public_defaults(record) + ctx.default_privileges.effective_defaults(
        ctx.current_user, record.KIND, record.schema_name
    )
    owner = getattr(record, "owner", None)
    return privilege_changes(
        record, defaults, getattr(record, "privileges", ()) or (), ctx.version, exclude=[owner] if owner else []
    )


def privileges_on_alter(ctx, main: PgModel, branch: PgModel) -> List[Change]:
    owner = getattr(branch, "owner", None)
    return privilege_changes(
        branch,
        getattr(main, "privileges", ()) or (),
        getattr(branch, "privileges", ()) or (),
        ctx.version,
        exclude=[owner] if owner else [],
    )
