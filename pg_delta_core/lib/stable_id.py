"""
Canonical stable identifier constructors.

A stable id has the form ``<kind>:<identity>`` and stays the same across
snapshots as long as the identity fields of the object do not change.
Sub-objects and metadata (comments, ACL entries, memberships, default
privileges) get composite ids built from their parent's id.
"""

from typing import Optional

METADATA_PREFIXES = ("acl:", "aclcol:", "defacl:", "membership:")


def schema(name: str) -> str:
    return f"schema:{name}"


def extension(name: str) -> str:
    return f"extension:{name}"


def role(name: str) -> str:
    return f"role:{name}"


def language(name: str) -> str:
    return f"language:{name}"


def table(schema_name: str, name: str) -> str:
    return f"table:{schema_name}.{name}"


def view(schema_name: str, name: str) -> str:
    return f"view:{schema_name}.{name}"


def materialized_view(schema_name: str, name: str) -> str:
    return f"materialized_view:{schema_name}.{name}"


def foreign_table(schema_name: str, name: str) -> str:
    return f"foreign_table:{schema_name}.{name}"


def sequence(schema_name: str, name: str) -> str:
    return f"sequence:{schema_name}.{name}"


def collation(schema_name: str, name: str) -> str:
    return f"collation:{schema_name}.{name}"


def domain(schema_name: str, name: str) -> str:
    return f"domain:{schema_name}.{name}"


def enum(schema_name: str, name: str) -> str:
    return f"enum:{schema_name}.{name}"


def composite_type(schema_name: str, name: str) -> str:
    return f"composite_type:{schema_name}.{name}"


def range_type(schema_name: str, name: str) -> str:
    return f"range:{schema_name}.{name}"


def procedure(schema_name: str, name: str, args: str = "") -> str:
    return f"procedure:{schema_name}.{name}({args})"


def aggregate(schema_name: str, name: str, args: str = "") -> str:
    return f"aggregate:{schema_name}.{name}({args})"


def column(schema_name: str, table_name: str, name: str) -> str:
    return f"column:{schema_name}.{table_name}.{name}"


def constraint(schema_name: str, table_name: str, name: str) -> str:
    return f"constraint:{schema_name}.{table_name}.{name}"


def index(schema_name: str, table_name: str, name: str) -> str:
    return f"index:{schema_name}.{table_name}.{name}"


def trigger(schema_name: str, table_name: str, name: str) -> str:
    return f"trigger:{schema_name}.{table_name}.{name}"


def rule(schema_name: str, table_name: str, name: str) -> str:
    return f"rule:{schema_name}.{table_name}.{name}"


def rls_policy(schema_name: str, table_name: str, name: str) -> str:
    return f"rls_policy:{schema_name}.{table_name}.{name}"


def event_trigger(name: str) -> str:
    return f"event_trigger:{name}"


def publication(name: str) -> str:
    return f"publication:{name}"


def subscription(name: str) -> str:
    return f"subscription:{name}"


def foreign_data_wrapper(name: str) -> str:
    return f"foreign_data_wrapper:{name}"


def server(name: str) -> str:
    return f"server:{name}"


def user_mapping(server_name: str, user: str) -> str:
    return f"user_mapping:{server_name}:{user}"


def comment(object_stable_id: str) -> str:
    return f"comment:{object_stable_id}"


def acl(object_stable_id: str, grantee: str) -> str:
    return f"acl:{object_stable_id}::grantee:{grantee}"


def acl_column(object_stable_id: str, grantee: str) -> str:
    return f"aclcol:{object_stable_id}::grantee:{grantee}"


def membership(role_name: str, member: str) -> str:
    return f"membership:{role_name}->{member}"


def defacl(grantor: str, objtype: str, schema_name: Optional[str], grantee: str) -> str:
    scope = f"schema:{schema_name}" if schema_name else "global"
    return f"defacl:{grantor}:{objtype}:{scope}:grantee:{grantee}"


def kind_of(stable_id: str) -> str:
    """Return the kind prefix of a stable id (``table`` for ``table:public.t``)."""
    return stable_id.split(":", 1)[0]


def is_metadata(stable_id: str) -> bool:
    """ACL entries, memberships and default privileges are metadata, not objects."""
    return stable_id.startswith(METADATA_PREFIXES)


def table_of(stable_id: str) -> Optional[str]:
    """
    Return the owning table id of a column, constraint or table sub-object id.

    ``column:public.t.id`` -> ``table:public.t``; returns None for ids that
    do not name a table sub-object.
    """
    kind = kind_of(stable_id)
    if kind not in ("column", "constraint", "index", "trigger", "rule", "rls_policy"):
        return None
    parts = stable_id.split(":", 1)[1].split(".")
    if len(parts) < 3:
        return None
    return table(parts[0], parts[1])
