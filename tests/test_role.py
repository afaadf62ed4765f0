import pytest

from pg_delta_core.lib.change import Operation, Scope
from pg_delta_core.lib.diff import diff_catalogs
from pg_delta_core.lib.errors import ChangeValidationError
from pg_delta_core.lib.objects.role import (
    AlterRoleSetConfig,
    DefaultPrivilege,
    GrantRoleDefaultPrivileges,
    GrantRoleMembership,
    PrivilegeGrant,
    RevokeRoleDefaultPrivileges,
    RevokeRoleMembershipOptions,
    Role,
    RoleMember,
)

BOB = Role(name="bob", can_login=True)


def test_membership_with_admin_option(catalog):
    """A new admin membership is one GRANT ... WITH ADMIN OPTION"""
    old = Role(name="admins")
    new = Role(name="admins", members=[RoleMember(member="bob", admin_option=True)])
    changes = diff_catalogs(catalog(BOB, old), catalog(BOB, new))
    assert len(changes) == 1
    assert isinstance(changes[0], GrantRoleMembership)
    assert changes[0].serialize().endswith("WITH ADMIN OPTION")
    assert changes[0].scope is Scope.MEMBERSHIP
    assert changes[0].creates == ["membership:admins->bob"]
    assert changes[0].requires == ["role:admins", "role:bob"]


def test_membership_options_revoked(catalog):
    old = Role(name="admins", members=[RoleMember(member="bob", admin_option=True)])
    new = Role(name="admins", members=[RoleMember(member="bob")])
    changes = diff_catalogs(catalog(BOB, old), catalog(BOB, new))
    assert len(changes) == 1
    assert isinstance(changes[0], RevokeRoleMembershipOptions)
    assert changes[0].serialize() == "REVOKE ADMIN OPTION FOR admins FROM bob"


def test_membership_revoked(catalog):
    old = Role(name="admins", members=[RoleMember(member="bob")])
    changes = diff_catalogs(catalog(BOB, old), catalog(BOB, Role(name="admins")))
    assert [c.serialize() for c in changes] == ["REVOKE admins FROM bob"]
    assert changes[0].operation is Operation.DROP


def test_default_privileges_narrowed(catalog):
    """Dropping INSERT from {SELECT, INSERT} only revokes INSERT"""
    def role(privileges):
        return Role(name="app", default_privileges=[
            DefaultPrivilege(objtype="r", grantee="reader", in_schema="public",
                             privileges=[PrivilegeGrant(p) for p in privileges]),
        ])

    changes = diff_catalogs(catalog(role(["SELECT", "INSERT"])), catalog(role(["SELECT"])))
    assert len(changes) == 1
    assert isinstance(changes[0], RevokeRoleDefaultPrivileges)
    assert changes[0].privilege_list() == "INSERT"
    assert changes[0].serialize() == (
        "ALTER DEFAULT PRIVILEGES FOR ROLE app IN SCHEMA public REVOKE INSERT ON TABLES FROM reader"
    )


def test_default_privilege_select_is_not_all(catalog):
    role = Role(name="app", default_privileges=[
        DefaultPrivilege(objtype="r", grantee="reader", in_schema="public", privileges=[PrivilegeGrant("SELECT")]),
    ])
    changes = [c for c in diff_catalogs(catalog(), catalog(role)) if isinstance(c, GrantRoleDefaultPrivileges)]
    assert len(changes) == 1
    assert changes[0].privilege_list() == "SELECT"
    assert changes[0].serialize() == (
        "ALTER DEFAULT PRIVILEGES FOR ROLE app IN SCHEMA public GRANT SELECT ON TABLES TO reader"
    )
    assert changes[0].creates == ["defacl:app:r:schema:public:grantee:reader"]


def test_default_privileges_grant_option_removed(catalog):
    def role(grantable):
        return Role(name="app", default_privileges=[
            DefaultPrivilege(objtype="S", grantee="reader", privileges=[PrivilegeGrant("USAGE", grantable)]),
        ])

    changes = diff_catalogs(catalog(role(True)), catalog(role(False)))
    assert [c.serialize() for c in changes] == [
        "ALTER DEFAULT PRIVILEGES FOR ROLE app REVOKE GRANT OPTION FOR USAGE ON SEQUENCES FROM reader",
    ]


def test_create_role(catalog):
    changes = diff_catalogs(catalog(), catalog(BOB.replace(connection_limit=5, config=["work_mem=64MB"])))
    assert [c.serialize() for c in changes] == [
        "CREATE ROLE bob WITH LOGIN CONNECTION LIMIT 5",
        "ALTER ROLE bob SET work_mem TO 64MB",
    ]


def test_alter_role_options(catalog):
    changes = diff_catalogs(catalog(BOB), catalog(BOB.replace(can_login=False, can_create_databases=True)))
    assert [c.serialize() for c in changes] == ["ALTER ROLE bob WITH CREATEDB NOLOGIN"]


def test_role_config(catalog):
    old = BOB.replace(config=["search_path=public", "work_mem=4MB"])
    sql = [c.serialize() for c in diff_catalogs(
        catalog(old), catalog(BOB.replace(config=["search_path=app, public"])),
    )]
    assert sql == [
        "ALTER ROLE bob RESET work_mem",
        "ALTER ROLE bob SET search_path TO app, public",
    ]
    reset = [c.serialize() for c in diff_catalogs(catalog(old), catalog(BOB))]
    assert reset == ["ALTER ROLE bob RESET ALL"]


def test_role_config_validation():
    with pytest.raises(ChangeValidationError):
        AlterRoleSetConfig(BOB, "set")
    with pytest.raises(ChangeValidationError):
        AlterRoleSetConfig(BOB, "unset", "work_mem")
    assert AlterRoleSetConfig(BOB, "reset_all").action == "alter_role_set_config"


def test_mixed_grantable_default_privileges_rejected():
    with pytest.raises(ChangeValidationError):
        GrantRoleDefaultPrivileges(Role(name="app"), "r", "reader",
                                   (PrivilegeGrant("SELECT"), PrivilegeGrant("INSERT", True)))
