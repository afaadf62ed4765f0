from pg_delta_core.lib.diff import diff_catalogs
from pg_delta_core.lib.objects.index import CreateIndex, DropIndex, Index
from pg_delta_core.lib.objects.table import Column, Table

TABLE = Table(schema="public", name="t", owner="postgres",
              columns=[Column(name="data", data_type="jsonb", position=1)])


def index(**fields):
    defaults = dict(
        schema="public",
        table_name="t",
        name="t_data_idx",
        definition="CREATE INDEX t_data_idx ON public.t USING btree (data)",
        key_columns=[1],
    )
    defaults.update(fields)
    return Index(**defaults)


def test_index_type_change_replaces_index(catalog):
    """index_type can't be altered, so the index is dropped and created again"""
    gin = index(index_type="gin", definition="CREATE INDEX t_data_idx ON public.t USING gin (data)")
    changes = diff_catalogs(catalog(TABLE, index()), catalog(TABLE, gin))
    assert [type(c) for c in changes] == [DropIndex, CreateIndex]
    assert not any(c.action.startswith("alter_index") for c in changes)
    assert changes[0].serialize() == "DROP INDEX public.t_data_idx"
    assert changes[1].serialize() == "CREATE INDEX t_data_idx ON public.t USING gin (data)"


def test_create_index_requires_table(catalog):
    changes = diff_catalogs(catalog(TABLE), catalog(TABLE, index()))
    assert len(changes) == 1
    assert changes[0].creates == ["index:public.t.t_data_idx"]
    assert "table:public.t" in changes[0].requires


def test_default_access_method_is_not_a_change(catalog):
    same = index(definition="CREATE INDEX t_data_idx ON public.t (data)")
    assert diff_catalogs(catalog(TABLE, index()), catalog(TABLE, same)) == []


def test_alterable_index_properties(catalog):
    old = index(storage_params=["fillfactor=90"], statistics_target=[100])
    new = index(storage_params=["deduplicate_items=off"], statistics_target=[500], tablespace="fast",
                comment="lookup by data")
    sql = [c.serialize() for c in diff_catalogs(catalog(TABLE, old), catalog(TABLE, new))]
    assert sql == [
        "ALTER INDEX public.t_data_idx SET (deduplicate_items=off)",
        "ALTER INDEX public.t_data_idx RESET (fillfactor)",
        "ALTER INDEX public.t_data_idx ALTER COLUMN 1 SET STATISTICS 500",
        "ALTER INDEX public.t_data_idx SET TABLESPACE fast",
        "COMMENT ON INDEX public.t_data_idx IS 'lookup by data'",
    ]


def test_constraint_indexes_are_skipped(catalog):
    pkey = index(name="t_pkey", is_primary=True, is_unique=True, is_constraint=True,
                 definition="CREATE UNIQUE INDEX t_pkey ON public.t USING btree (data)")
    assert diff_catalogs(catalog(TABLE), catalog(TABLE, pkey)) == []


def test_index_of_dropped_table_is_not_dropped(catalog):
    changes = diff_catalogs(catalog(TABLE, index()), catalog())
    assert [c.action for c in changes] == ["drop_table"]
