from pg_delta_core.lib.diff import diff_catalogs
from pg_delta_core.lib.objects.foreign_table import AlterForeignTableAddColumn, ForeignTable
from pg_delta_core.lib.objects.table import (
    AlterTableAddColumn,
    AlterTableAddConstraint,
    AlterTableDropConstraint,
    AlterTableValidateConstraint,
    Column,
    CreateTable,
    DropTable,
    Table,
    TableConstraint,
)

ID = Column(name="id", data_type="integer", position=1, not_null=True)
NAME = Column(name="name", data_type="text", position=2, not_null=True, default="'x'")
PKEY = TableConstraint(name="t_pkey", constraint_type="p", definition="PRIMARY KEY (id)", key_columns=["id"])


def table(**fields):
    defaults = dict(schema="public", name="t", owner="postgres", columns=[ID])
    defaults.update(fields)
    return Table(**defaults)


def test_add_column(catalog):
    """A new column is exactly one ADD COLUMN"""
    changes = diff_catalogs(catalog(table()), catalog(table(columns=[ID, NAME])))
    assert len(changes) == 1
    assert isinstance(changes[0], AlterTableAddColumn)
    assert changes[0].serialize() == "ALTER TABLE public.t ADD COLUMN name text NOT NULL DEFAULT 'x'"
    assert changes[0].creates == ["column:public.t.name"]


def test_add_column_to_foreign_table(catalog):
    def foreign_table(columns):
        return ForeignTable(schema="public", name="ft", owner="postgres", server="srv", columns=columns)

    changes = diff_catalogs(catalog(foreign_table([ID])), catalog(foreign_table([ID, NAME])))
    assert len(changes) == 1
    assert isinstance(changes[0], AlterForeignTableAddColumn)
    assert changes[0].serialize() == "ALTER FOREIGN TABLE public.ft ADD COLUMN name text NOT NULL DEFAULT 'x'"


def test_create_table_is_bare(catalog):
    """Constraints are added separately from CREATE TABLE"""
    changes = diff_catalogs(catalog(), catalog(table(columns=[ID, NAME], constraints=[PKEY])))
    assert [type(c) for c in changes] == [CreateTable, AlterTableAddConstraint]
    assert changes[0].serialize() == "CREATE TABLE public.t (id integer NOT NULL, name text NOT NULL DEFAULT 'x')"
    assert changes[0].creates == ["table:public.t", "column:public.t.id", "column:public.t.name"]
    assert changes[1].serialize() == "ALTER TABLE public.t ADD CONSTRAINT t_pkey PRIMARY KEY (id)"
    assert changes[1].creates == ["constraint:public.t.t_pkey", "index:public.t.t_pkey"]
    assert "column:public.t.id" in changes[1].requires


def test_create_partition(catalog):
    parent = table(name="events", partition_by="RANGE (id)")
    child = table(name="events_2024", is_partition=True, parent_schema="public", parent_name="events",
                  partition_bound="FOR VALUES FROM (1) TO (100)")
    changes = diff_catalogs(catalog(parent), catalog(parent, child))
    assert [c.serialize() for c in changes] == [
        "CREATE TABLE public.events_2024 PARTITION OF public.events FOR VALUES FROM (1) TO (100)",
    ]
    assert "table:public.events" in changes[0].requires


def test_drop_column(catalog):
    changes = diff_catalogs(catalog(table(columns=[ID, NAME])), catalog(table()))
    assert [c.serialize() for c in changes] == ["ALTER TABLE public.t DROP COLUMN name"]
    assert changes[0].drops == ["column:public.t.name"]


def test_alter_columns(catalog):
    old = table(columns=[ID, Column(name="name", data_type="varchar(10)", position=2)])
    new = table(columns=[ID, Column(name="name", data_type="text", position=2, not_null=True, default="'x'")])
    sql = [c.serialize() for c in diff_catalogs(catalog(old), catalog(new))]
    assert sql == [
        "ALTER TABLE public.t ALTER COLUMN name TYPE text",
        "ALTER TABLE public.t ALTER COLUMN name SET DEFAULT 'x'",
        "ALTER TABLE public.t ALTER COLUMN name SET NOT NULL",
    ]


def test_identity_column_is_replaced(catalog):
    old = table()
    new = table(columns=[ID.replace(identity="a")])
    sql = [c.serialize() for c in diff_catalogs(catalog(old), catalog(new))]
    assert sql == [
        "ALTER TABLE public.t DROP COLUMN id",
        "ALTER TABLE public.t ADD COLUMN id integer GENERATED ALWAYS AS IDENTITY NOT NULL",
    ]


def test_validate_constraint(catalog):
    fkey = TableConstraint(name="t_o_fkey", constraint_type="f", definition="FOREIGN KEY (id) REFERENCES public.o(id)",
                           validated=False, key_columns=["id"], foreign_key_schema="public",
                           foreign_key_table="o", foreign_key_columns=["id"])
    changes = diff_catalogs(
        catalog(table(constraints=[fkey])),
        catalog(table(constraints=[fkey.replace(validated=True)])),
    )
    assert len(changes) == 1
    assert isinstance(changes[0], AlterTableValidateConstraint)
    assert changes[0].serialize() == "ALTER TABLE public.t VALIDATE CONSTRAINT t_o_fkey"


def test_not_valid_constraint_is_added_not_valid(catalog):
    check = TableConstraint(name="t_id_check", constraint_type="c", definition="CHECK ((id > 0)) NOT VALID",
                            validated=False)
    changes = diff_catalogs(catalog(table()), catalog(table(constraints=[check])))
    assert [c.serialize() for c in changes] == [
        "ALTER TABLE public.t ADD CONSTRAINT t_id_check CHECK ((id > 0)) NOT VALID",
    ]


def test_changed_constraint_is_dropped_and_added(catalog):
    check = TableConstraint(name="t_id_check", constraint_type="c", definition="CHECK ((id > 0))")
    changes = diff_catalogs(
        catalog(table(constraints=[check])),
        catalog(table(constraints=[check.replace(definition="CHECK ((id > 10))")])),
    )
    assert [type(c) for c in changes] == [AlterTableDropConstraint, AlterTableAddConstraint]
    assert changes[1].serialize() == "ALTER TABLE public.t ADD CONSTRAINT t_id_check CHECK ((id > 10))"


def test_storage_parameters(catalog):
    sql = [c.serialize() for c in diff_catalogs(
        catalog(table(options=["fillfactor=70", "toast_tuple_target=128"])),
        catalog(table(options=["fillfactor=80", "autovacuum_enabled=false"])),
    )]
    assert sql == [
        "ALTER TABLE public.t SET (fillfactor=80, autovacuum_enabled=false)",
        "ALTER TABLE public.t RESET (toast_tuple_target)",
    ]


def test_table_attributes(catalog):
    old = table()
    new = table(persistence="u", row_security=True, force_row_security=True, replica_identity="f",
                owner="app", comment="users")
    sql = [c.serialize() for c in diff_catalogs(catalog(old), catalog(new))]
    assert sql == [
        "ALTER TABLE public.t SET UNLOGGED",
        "ALTER TABLE public.t ENABLE ROW LEVEL SECURITY",
        "ALTER TABLE public.t FORCE ROW LEVEL SECURITY",
        "ALTER TABLE public.t REPLICA IDENTITY FULL",
        "ALTER TABLE public.t OWNER TO app",
        "COMMENT ON TABLE public.t IS 'users'",
    ]


def test_column_comment(catalog):
    changes = diff_catalogs(catalog(table()), catalog(table(columns=[ID.replace(comment="it's the key")])))
    assert [c.serialize() for c in changes] == ["COMMENT ON COLUMN public.t.id IS 'it''s the key'"]
    assert changes[0].creates == ["comment:column:public.t.id"]


def test_table_owner_differs_from_current_user(catalog):
    changes = diff_catalogs(catalog(), catalog(table(owner="app")))
    assert [c.serialize() for c in changes] == [
        "CREATE TABLE public.t (id integer NOT NULL)",
        "ALTER TABLE public.t OWNER TO app",
    ]


def test_drop_tables_referencing_each_other(catalog):
    """Foreign keys between dropped tables are dropped before the tables"""
    a_fkey = TableConstraint(name="a_b_fkey", constraint_type="f", definition="FOREIGN KEY (id) REFERENCES public.b(id)",
                             foreign_key_schema="public", foreign_key_table="b", foreign_key_columns=["id"])
    a = table(name="a", constraints=[a_fkey])
    changes = diff_catalogs(catalog(a), catalog())
    assert [type(c) for c in changes] == [DropTable]

    b = table(name="b", constraints=[a_fkey.replace(name="b_a_fkey", definition="FOREIGN KEY (id) REFERENCES public.a(id)",
                                                  foreign_key_table="a")])
    changes = diff_catalogs(catalog(a, b), catalog())
    assert [type(c) for c in changes] == [AlterTableDropConstraint, DropTable, AlterTableDropConstraint, DropTable]
    assert "constraint:public.a.a_b_fkey" not in changes[1].drops
