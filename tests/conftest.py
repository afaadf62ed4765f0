import pytest

from pg_delta_core.lib.catalog import Catalog
from pg_delta_core.lib.context import DiffContext
from pg_delta_core.lib.objects import OBJECT_TYPES
from pg_delta_core.lib.objects.role import Role
from pg_delta_core.lib.objects.schema import Schema

ATTRIBUTES = {object_type.model: object_type.attribute for object_type in OBJECT_TYPES}


def build_catalog(*records, depends=None, version=170000, current_user="postgres", base=True):
    """Catalog holding records, plus the postgres role and public schema unless base is False."""
    objects = {}
    if base:
        records = (Role(name="postgres", is_superuser=True, can_login=True),
                   Schema(name="public", owner="postgres")) + records
    for record in records:
        objects.setdefault(ATTRIBUTES[type(record)], {})[record.stable_id] = record
    return Catalog(version=version, current_user=current_user, depends=depends, **objects)


@pytest.fixture
def catalog():
    """Factory building a catalog from records."""
    return build_catalog


@pytest.fixture
def context():
    """Factory building a diff context from two catalogs."""
    return DiffContext.from_catalogs


@pytest.fixture
def snapshot():
    """A small but complete snapshot in the JSON shape read from files."""
    return {
        "version": 170000,
        "current_user": "postgres",
        "roles": [
            {"name": "postgres", "is_superuser": True, "can_login": True},
            {"name": "app"},
        ],
        "schemas": [
            {"name": "public", "owner": "postgres"},
            {"name": "app", "owner": "app", "comment": "application schema"},
        ],
        "sequences": [
            {
                "schema": "app", "name": "users_id_seq", "owner": "app", "data_type": "integer",
                "maximum_value": 2147483647,
                "owned_by_schema": "app", "owned_by_table": "users", "owned_by_column": "id",
            },
        ],
        "tables": [
            {
                "schema": "app",
                "name": "users",
                "owner": "app",
                "columns": [
                    {"name": "id", "data_type": "integer", "position": 1, "not_null": True,
                     "default": "nextval('app.users_id_seq'::regclass)"},
                    {"name": "email", "data_type": "text", "position": 2, "not_null": True},
                ],
                "constraints": [
                    {"name": "users_pkey", "constraint_type": "p", "definition": "PRIMARY KEY (id)",
                     "key_columns": ["id"]},
                ],
                "privileges": [
                    {"grantee": "postgres", "privilege": "SELECT"},
                ],
            },
        ],
        "indexes": [
            {
                "schema": "app", "table_name": "users", "name": "users_email_idx",
                "definition": "CREATE INDEX users_email_idx ON app.users USING btree (email)",
                "key_columns": [2],
            },
            {
                "schema": "app", "table_name": "users", "name": "users_pkey",
                "definition": "CREATE UNIQUE INDEX users_pkey ON app.users USING btree (id)",
                "is_unique": True, "is_primary": True, "is_constraint": True, "key_columns": [1],
            },
        ],
        "views": [
            {
                "schema": "app", "name": "user_emails", "owner": "app",
                "definition": "SELECT users.email FROM app.users",
            },
        ],
        "depends": [
            {"dependent_stable_id": "sequence:app.users_id_seq", "referenced_stable_id": "column:app.users.id",
             "deptype": "a"},
            {"dependent_stable_id": "column:app.users.id", "referenced_stable_id": "sequence:app.users_id_seq",
             "deptype": "n"},
            {"dependent_stable_id": "view:app.user_emails", "referenced_stable_id": "table:app.users",
             "deptype": "n"},
        ],
    }
