"""
Roles, role memberships and default privileges.

Memberships are stored on the granted role (``members``); default
privileges are stored on the role they apply to (``FOR ROLE``).
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import ClassVar, Dict, List, Optional, Sequence, Tuple

from pg_delta_core.lib import stable_id
from pg_delta_core.lib.change import AlterObject, Change, CreateObject, DropObject, Operation, Scope
from pg_delta_core.lib.change import TargetedChange, comment_changes
from pg_delta_core.lib.errors import ChangeValidationError
from pg_delta_core.lib.model import PgModel, Record
from pg_delta_core.lib.privileges import PUBLIC, format_privilege_list
from pg_delta_core.lib.utils import diff_objects, format_config_value, parse_key_value_options

# pg_default_acl.defaclobjtype -> (privilege universe kind, ON clause keyword)
DEFAULT_ACL_KINDS = {
    "r": ("TABLE", "TABLES"),
    "S": ("SEQUENCE", "SEQUENCES"),
    "f": ("FUNCTION", "FUNCTIONS"),
    "T": ("TYPE", "TYPES"),
    "n": ("SCHEMA", "SCHEMAS"),
}

# (field, keyword when true, keyword when false, default)
ROLE_FLAGS = (
    ("is_superuser", "SUPERUSER", "NOSUPERUSER", False),
    ("can_create_databases", "CREATEDB", "NOCREATEDB", False),
    ("can_create_roles", "CREATEROLE", "NOCREATEROLE", False),
    ("can_inherit", "INHERIT", "NOINHERIT", True),
    ("can_login", "LOGIN", "NOLOGIN", False),
    ("can_replicate", "REPLICATION", "NOREPLICATION", False),
    ("can_bypass_rls", "BYPASSRLS", "NOBYPASSRLS", False),
)


@dataclass(frozen=True)
class RoleMember(Record):
    member: str
    admin_option: bool = False
    inherit_option: Optional[bool] = None
    set_option: Optional[bool] = None


@dataclass(frozen=True)
class PrivilegeGrant(Record):
    privilege: str
    grantable: bool = False


@dataclass(frozen=True)
class DefaultPrivilege(Record):
    """One pg_default_acl entry of a role, for one grantee."""
    NESTED: ClassVar[Dict[str, type]] = {"privileges": PrivilegeGrant}

    objtype: str
    grantee: str
    in_schema: Optional[str] = None
    privileges: Tuple[PrivilegeGrant, ...] = ()

    @property
    def key(self) -> Tuple[str, str, str]:
        return self.in_schema or "", self.objtype, self.grantee


@dataclass(frozen=True)
class Role(PgModel):
    KIND: ClassVar[str] = "role"
    SQL_KIND: ClassVar[str] = "ROLE"
    IDENTITY: ClassVar[Tuple[str, ...]] = ("name",)
    NESTED: ClassVar[Dict[str, type]] = {"members": RoleMember, "default_privileges": DefaultPrivilege}

    name: str
    is_superuser: bool = False
    can_inherit: bool = True
    can_create_roles: bool = False
    can_create_databases: bool = False
    can_login: bool = False
    can_replicate: bool = False
    can_bypass_rls: bool = False
    connection_limit: int = -1
    config: Optional[Tuple[str, ...]] = None
    comment: Optional[str] = None
    members: Tuple[RoleMember, ...] = ()
    default_privileges: Tuple[DefaultPrivilege, ...] = ()

    @property
    def requires(self) -> List[str]:
        return []


@dataclass(frozen=True)
class CreateRole(CreateObject):

    def serialize(self, options=None) -> str:
        role = self.target
        parts = ["CREATE ROLE", role.name]
        flags = []
        for field_name, on, off, default in ROLE_FLAGS:
            value = getattr(role, field_name)
            if value != default:
                flags.append(on if value else off)
        if role.connection_limit != -1:
            flags.append(f"CONNECTION LIMIT {role.connection_limit}")
        if flags:
            parts.append("WITH")
            parts.extend(flags)
        return " ".join(parts)


@dataclass(frozen=True)
class DropRole(DropObject):

    def serialize(self, options=None) -> str:
        return f"DROP ROLE {self.target.name}"


@dataclass(frozen=True)
class AlterRoleSetOptions(AlterObject):
    """ALTER ROLE ... WITH <flags>."""
    options: Tuple[str, ...]

    def serialize(self, options=None) -> str:
        return f"ALTER ROLE {self.target.name} WITH {' '.join(self.options)}"


@dataclass(frozen=True)
class AlterRoleSetConfig(AlterObject):
    """One SET key TO value, RESET key or RESET ALL."""
    mode: str
    key: Optional[str] = None
    value: Optional[str] = None

    def __post_init__(self):
        if self.mode not in ("set", "reset", "reset_all"):
            raise ChangeValidationError(f"Unknown role config action {self.mode!r}")
        if self.mode != "reset_all" and not self.key:
            raise ChangeValidationError(f"Role config action {self.mode!r} needs a key")

    def serialize(self, options=None) -> str:
        head = f"ALTER ROLE {self.target.name}"
        if self.mode == "reset_all":
            return f"{head} RESET ALL"
        if self.mode == "reset":
            return f"{head} RESET {self.key}"
        return f"{head} SET {self.key} TO {format_config_value(self.key, self.value or '')}"


@dataclass(frozen=True)
class GrantRoleMembership(TargetedChange):
    """GRANT role TO member [WITH ADMIN OPTION, INHERIT ..., SET ...]."""
    OPERATION: ClassVar[Operation] = Operation.CREATE
    SCOPE: ClassVar[Scope] = Scope.MEMBERSHIP

    member: str
    admin: bool = False
    inherit: Optional[bool] = None
    set: Optional[bool] = None

    @property
    def creates(self) -> List[str]:
        return [stable_id.membership(self.target.name, self.member)]

    @property
    def requires(self) -> List[str]:
        return [self.target.stable_id, stable_id.role(self.member)]

    def serialize(self, options=None) -> str:
        opts = []
        if self.admin:
            opts.append("ADMIN OPTION")
        if self.inherit is not None:
            opts.append(f"INHERIT {'TRUE' if self.inherit else 'FALSE'}")
        if self.set is not None:
            opts.append(f"SET {'TRUE' if self.set else 'FALSE'}")
        sql = f"GRANT {self.target.name} TO {self.member}"
        if opts:
            sql += " WITH " + ", ".join(opts)
        return sql


@dataclass(frozen=True)
class RevokeRoleMembership(TargetedChange):
    OPERATION: ClassVar[Operation] = Operation.DROP
    SCOPE: ClassVar[Scope] = Scope.MEMBERSHIP

    member: str

    @property
    def drops(self) -> List[str]:
        return [stable_id.membership(self.target.name, self.member)]

    @property
    def requires(self) -> List[str]:
        return [stable_id.membership(self.target.name, self.member), stable_id.role(self.member),
                self.target.stable_id]

    def serialize(self, options=None) -> str:
        return f"REVOKE {self.target.name} FROM {self.member}"


@dataclass(frozen=True)
class RevokeRoleMembershipOptions(TargetedChange):
    """Remove ADMIN / INHERIT / SET options but keep the membership."""
    OPERATION: ClassVar[Operation] = Operation.DROP
    SCOPE: ClassVar[Scope] = Scope.MEMBERSHIP

    member: str
    admin: bool = False
    inherit: bool = False
    set: bool = False

    def __post_init__(self):
        if not (self.admin or self.inherit or self.set):
            raise ChangeValidationError(
                f"Revoking options of {self.member} in {self.target.name} needs at least one option"
            )

    @property
    def requires(self) -> List[str]:
        return [stable_id.membership(self.target.name, self.member), stable_id.role(self.member),
                self.target.stable_id]

    def serialize(self, options=None) -> str:
        parts = []
        if self.admin:
            parts.append("ADMIN")
        if self.inherit:
            parts.append("INHERIT")
        if self.set:
            parts.append("SET")
        return f"REVOKE {', '.join(parts)} OPTION FOR {self.target.name} FROM {self.member}"


@dataclass(frozen=True)
class DefaultPrivilegeChange(TargetedChange):
    """Base for ALTER DEFAULT PRIVILEGES FOR ROLE ..."""
    SCOPE: ClassVar[Scope] = Scope.DEFAULT_PRIVILEGE

    objtype: str
    grantee: str
    privileges: Tuple[PrivilegeGrant, ...]
    in_schema: Optional[str] = None
    version: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, "privileges", tuple(self.privileges))
        if self.objtype not in DEFAULT_ACL_KINDS:
            raise ChangeValidationError(f"Unknown default privilege object type {self.objtype!r}")
        if not self.privileges:
            raise ChangeValidationError(
                f"Default privileges of {self.target.name} for {self.grantee} need at least one privilege"
            )
        if len({p.grantable for p in self.privileges}) > 1:
            raise ChangeValidationError(
                f"Cannot mix grantable and non grantable default privileges for {self.grantee} "
                f"in one statement"
            )

    @property
    def defacl_id(self) -> str:
        return stable_id.defacl(self.target.name, self.objtype, self.in_schema, self.grantee)

    @property
    def requires(self) -> List[str]:
        result = [self.target.stable_id]
        if self.grantee != PUBLIC:
            result.append(stable_id.role(self.grantee))
        if self.in_schema:
            result.append(stable_id.schema(self.in_schema))
        return result

    @property
    def head(self) -> str:
        sql = f"ALTER DEFAULT PRIVILEGES FOR ROLE {self.target.name}"
        if self.in_schema:
            sql += f" IN SCHEMA {self.in_schema}"
        return sql

    def privilege_list(self) -> str:
        kind, _ = DEFAULT_ACL_KINDS[self.objtype]
        return format_privilege_list(kind, [p.privilege for p in self.privileges], self.version)

    @property
    def on_clause(self) -> str:
        return DEFAULT_ACL_KINDS[self.objtype][1]


@dataclass(frozen=True)
class GrantRoleDefaultPrivileges(DefaultPrivilegeChange):
    OPERATION: ClassVar[Operation] = Operation.CREATE

    @property
    def creates(self) -> List[str]:
        return [self.defacl_id]

    def serialize(self, options=None) -> str:
        sql = f"{self.head} GRANT {self.privilege_list()} ON {self.on_clause} TO {self.grantee}"
        if self.privileges[0].grantable:
            sql += " WITH GRANT OPTION"
        return sql


@dataclass(frozen=True)
class RevokeRoleDefaultPrivileges(DefaultPrivilegeChange):
    """Revoke default privileges; grantable entries revoke only the grant option."""
    OPERATION: ClassVar[Operation] = Operation.DROP

    @property
    def drops(self) -> List[str]:
        if self.privileges[0].grantable:
            return []
        return [self.defacl_id]

    def serialize(self, options=None) -> str:
        grant_option = "GRANT OPTION FOR " if self.privileges[0].grantable else ""
        return f"{self.head} REVOKE {grant_option}{self.privilege_list()} ON {self.on_clause} FROM {self.grantee}"


def _split_by_grantable(privileges: Sequence[PrivilegeGrant]) -> List[Tuple[PrivilegeGrant, ...]]:
    groups = defaultdict(list)
    for p in privileges:
        groups[p.grantable].append(p)
    return [tuple(sorted(groups[flag], key=lambda p: p.privilege)) for flag in sorted(groups)]


def _membership_changes(old: Optional[Role], new: Role) -> List[Change]:
    changes = []
    old_members = {m.member: m for m in (old.members if old else ())}
    new_members = {m.member: m for m in new.members}

    for name in sorted(new_members):
        membership = new_members[name]
        if name not in old_members:
            # on create only ADMIN OPTION is spelled out, INHERIT / SET follow the role defaults
            changes.append(GrantRoleMembership(new, name, admin=membership.admin_option))

    for name in sorted(old_members):
        if name not in new_members:
            changes.append(RevokeRoleMembership(old, name))

    for name in sorted(set(old_members) & set(new_members)):
        before, after = old_members[name], new_members[name]
        grant, revoke = {}, {}
        if before.admin_option != after.admin_option:
            (grant if after.admin_option else revoke)["admin"] = True
        if before.inherit_option != after.inherit_option and after.inherit_option is not None:
            (grant if after.inherit_option else revoke)["inherit"] = True
        if before.set_option != after.set_option and after.set_option is not None:
            (grant if after.set_option else revoke)["set"] = True
        if revoke:
            changes.append(RevokeRoleMembershipOptions(old, name, **revoke))
        if grant:
            changes.append(GrantRoleMembership(
                new, name,
                admin=grant.get("admin", False),
                inherit=True if grant.get("inherit") else None,
                set=True if grant.get("set") else None,
            ))
    return changes


def _default_privilege_changes(ctx, old: Optional[Role], new: Role) -> List[Change]:
    changes = []
    old_entries = {entry.key: entry for entry in (old.default_privileges if old else ())}
    new_entries = {entry.key: entry for entry in new.default_privileges}

    def emit(cls, role, entry, privileges):
        for group in _split_by_grantable(privileges):
            changes.append(cls(role, entry.objtype, entry.grantee, group, entry.in_schema, ctx.version))

    for key in sorted(new_entries):
        if key not in old_entries and new_entries[key].privileges:
            emit(GrantRoleDefaultPrivileges, new, new_entries[key], new_entries[key].privileges)

    for key in sorted(old_entries):
        if key not in new_entries and old_entries[key].privileges:
            emit(RevokeRoleDefaultPrivileges, old, old_entries[key], old_entries[key].privileges)

    for key in sorted(set(old_entries) & set(new_entries)):
        before, after = old_entries[key], new_entries[key]
        before_set = {(p.privilege, p.grantable) for p in before.privileges}
        after_set = {(p.privilege, p.grantable) for p in after.privileges}
        after_names = {p.privilege for p in after.privileges}

        grants = [
            PrivilegeGrant(name, grantable) for name, grantable in sorted(after_set - before_set)
            if grantable or (name, True) not in before_set
        ]
        revokes, revoke_grant_option = [], []
        for name, grantable in sorted(before_set - after_set):
            if not grantable and (name, True) in after_set:
                # upgraded to WITH GRANT OPTION
                continue
            if grantable and name in after_names:
                revoke_grant_option.append(PrivilegeGrant(name, True))
            else:
                revokes.append(PrivilegeGrant(name, False))

        if grants:
            emit(GrantRoleDefaultPrivileges, new, after, grants)
        if revokes:
            emit(RevokeRoleDefaultPrivileges, old, before, revokes)
        if revoke_grant_option:
            emit(RevokeRoleDefaultPrivileges, old, before, revoke_grant_option)
    return changes


def _config_changes(old: Optional[Role], new: Role) -> List[Change]:
    changes = []
    old_config = parse_key_value_options(old.config if old else None)
    new_config = parse_key_value_options(new.config)

    if old_config and not new_config:
        return [AlterRoleSetConfig(old, "reset_all")]

    for key in old_config:
        if key not in new_config:
            changes.append(AlterRoleSetConfig(old, "reset", key))
    for key, value in new_config.items():
        if old_config.get(key) != value:
            changes.append(AlterRoleSetConfig(new, "set", key, value))
    return changes


def diff_roles(ctx, main: Dict[str, Role], branch: Dict[str, Role]) -> List[Change]:
    result = diff_objects(main, branch)
    changes = []

    for key in result.created:
        role = branch[key]
        changes.append(CreateRole(role))
        changes.extend(_config_changes(None, role))
        changes.extend(comment_changes(None, role))
        changes.extend(_membership_changes(None, role))
        changes.extend(_default_privilege_changes(ctx, None, role))

    for key in result.dropped:
        changes.append(DropRole(main[key]))

    for key in result.altered:
        old, new = main[key], branch[key]
        options = []
        for field_name, on, off, _ in ROLE_FLAGS:
            if getattr(old, field_name) != getattr(new, field_name):
                options.append(on if getattr(new, field_name) else off)
        if old.connection_limit != new.connection_limit:
            options.append(f"CONNECTION LIMIT {new.connection_limit}")
        if options:
            changes.append(AlterRoleSetOptions(new, tuple(options)))
        changes.extend(_config_changes(old, new))
        changes.extend(comment_changes(old, new))
        changes.extend(_membership_changes(old, new))
        changes.extend(_default_privilege_changes(ctx, old, new))

    return changes
