import pytest

from pg_delta_core.lib.errors import ChangeValidationError
from pg_delta_core.lib.model import Privilege
from pg_delta_core.lib.objects.procedure import Procedure
from pg_delta_core.lib.objects.role import DefaultPrivilege, PrivilegeGrant, Role
from pg_delta_core.lib.objects.table import Table
from pg_delta_core.lib.privileges import (
    DefaultPrivilegeState,
    GrantPrivileges,
    RevokeGrantOptionPrivileges,
    RevokePrivileges,
    diff_privileges,
    format_privilege_list,
    privilege_changes,
    privilege_universe,
    privileges_on_create,
)

TABLE = Table(schema="public", name="t", owner="postgres")


def grant(grantee, privilege, grantable=False, columns=None):
    return Privilege(grantee=grantee, privilege=privilege, grantable=grantable, columns=columns)


def test_privilege_universe_depends_on_version():
    assert "MAINTAIN" in privilege_universe("TABLE", 170000)
    assert "MAINTAIN" not in privilege_universe("TABLE", 160000)
    assert privilege_universe("SEQUENCE") == ["SELECT", "UPDATE", "USAGE"]


def test_full_universe_renders_as_all():
    everything = privilege_universe("TABLE", 160000)
    assert format_privilege_list("TABLE", everything, 160000) == "ALL"
    assert format_privilege_list("TABLE", everything, 170000) != "ALL"
    assert format_privilege_list("TABLE", ["SELECT"], 170000) == "SELECT"


def test_grant_and_revoke_per_grantee():
    changes = privilege_changes(
        TABLE,
        [grant("app", "SELECT"), grant("old", "SELECT")],
        [grant("app", "SELECT"), grant("app", "INSERT")],
        170000,
    )
    assert [type(c) for c in changes] == [GrantPrivileges, RevokePrivileges]
    assert changes[0].serialize() == "GRANT INSERT ON TABLE public.t TO app"
    assert changes[1].serialize() == "REVOKE SELECT ON TABLE public.t FROM old"


def test_grant_option_changes():
    changes = privilege_changes(TABLE, [grant("app", "SELECT", True)], [grant("app", "SELECT")], 170000)
    assert len(changes) == 1
    assert isinstance(changes[0], RevokeGrantOptionPrivileges)
    assert changes[0].serialize() == "REVOKE GRANT OPTION FOR SELECT ON TABLE public.t FROM app"

    upgraded = privilege_changes(TABLE, [grant("app", "SELECT")], [grant("app", "SELECT", True)], 170000)
    assert [c.serialize() for c in upgraded] == ["GRANT SELECT ON TABLE public.t TO app WITH GRANT OPTION"]


def test_grants_split_by_grantable_flag_and_columns():
    changes = privilege_changes(
        TABLE,
        [],
        [grant("app", "SELECT"), grant("app", "INSERT", True), grant("app", "UPDATE", columns=["name"])],
        170000,
    )
    sql = [c.serialize() for c in changes]
    assert "GRANT SELECT ON TABLE public.t TO app" in sql
    assert "GRANT INSERT ON TABLE public.t TO app WITH GRANT OPTION" in sql
    assert "GRANT UPDATE (name) ON TABLE public.t TO app" in sql


def test_owner_is_excluded():
    assert diff_privileges([], [grant("postgres", "SELECT")], exclude=["postgres"]) == {}


def test_mixed_grantable_flags_rejected():
    with pytest.raises(ChangeValidationError):
        GrantPrivileges(TABLE, "app", (grant("app", "SELECT"), grant("app", "INSERT", True)))


def test_create_compares_with_public_defaults(context, catalog):
    """Functions are executable by PUBLIC once created; EXECUTE is their whole universe"""
    function = Procedure(schema="public", name="f", identity_arguments="", definition="", owner="postgres",
                         privileges=[grant("app", "EXECUTE")])
    ctx = context(catalog(), catalog(function))
    sql = [c.serialize() for c in privileges_on_create(ctx, function)]
    assert sql == [
        "REVOKE ALL ON FUNCTION public.f() FROM PUBLIC",
        "GRANT ALL ON FUNCTION public.f() TO app",
    ]


def test_create_compares_with_default_privileges(context, catalog):
    postgres = Role(name="postgres", is_superuser=True, can_login=True, default_privileges=[
        DefaultPrivilege(objtype="r", grantee="reader", privileges=[PrivilegeGrant("SELECT")]),
    ])
    table = TABLE.replace(privileges=(grant("reader", "SELECT"),))
    ctx = context(catalog(), catalog(postgres, table, base=False))
    assert privileges_on_create(ctx, table) == []


def test_global_and_schema_default_privileges_add_up():
    role = Role(name="app", default_privileges=[
        DefaultPrivilege(objtype="r", grantee="reader", privileges=[PrivilegeGrant("SELECT")]),
        DefaultPrivilege(objtype="r", grantee="reader", in_schema="public", privileges=[PrivilegeGrant("INSERT")]),
    ])
    state = DefaultPrivilegeState({role.stable_id: role})
    in_public = {p.privilege for p in state.effective_defaults("app", "table", "public")}
    elsewhere = {p.privilege for p in state.effective_defaults("app", "table", "other")}
    assert in_public == {"SELECT", "INSERT"}
    assert elsewhere == {"SELECT"}
    assert state.effective_defaults("someone", "table", "public") == []
