from pg_delta_core.lib.change import Operation
from pg_delta_core.lib.diff import diff_catalogs
from pg_delta_core.lib.model import Privilege
from pg_delta_core.lib.objects.enum_type import AlterEnumAddValue, CreateEnum, DropEnum, EnumType
from pg_delta_core.lib.objects.procedure import CreateProcedure, DropProcedure, Procedure
from pg_delta_core.lib.objects.publication import Publication, PublicationTable
from pg_delta_core.lib.objects.rls_policy import CreateRlsPolicy, DropRlsPolicy, RlsPolicy
from pg_delta_core.lib.objects.sequence import Sequence
from pg_delta_core.lib.objects.server import Server
from pg_delta_core.lib.objects.subscription import AlterSubscriptionEnable, CreateSubscription, Subscription
from pg_delta_core.lib.objects.table import Column, Table
from pg_delta_core.lib.objects.trigger import CreateTrigger, DropTrigger, Trigger
from pg_delta_core.lib.objects.user_mapping import UserMapping
from pg_delta_core.lib.objects.view import CreateView, View

PUBLIC_USAGE = (Privilege(grantee="PUBLIC", privilege="USAGE"),)
PUBLIC_EXECUTE = (Privilege(grantee="PUBLIC", privilege="EXECUTE"),)
TABLE = Table(schema="public", name="t", owner="postgres", columns=[Column(name="id", data_type="integer")])


def sql(changes):
    return [c.serialize() for c in changes]


def test_enum_values_added_in_place(catalog):
    old = EnumType(schema="public", name="mood", owner="postgres", labels=["a", "c"], privileges=PUBLIC_USAGE)
    new = old.replace(labels=["z", "a", "b", "c"])
    changes = diff_catalogs(catalog(old), catalog(new))
    assert all(isinstance(c, AlterEnumAddValue) for c in changes)
    assert sql(changes) == [
        "ALTER TYPE public.mood ADD VALUE 'z' BEFORE 'a'",
        "ALTER TYPE public.mood ADD VALUE 'b' AFTER 'a'",
    ]


def test_enum_reordered_is_replaced(catalog):
    old = EnumType(schema="public", name="mood", owner="postgres", labels=["a", "b"], privileges=PUBLIC_USAGE)
    changes = diff_catalogs(catalog(old), catalog(old.replace(labels=["b", "a"])))
    assert [type(c) for c in changes] == [DropEnum, CreateEnum]
    assert changes[1].serialize() == "CREATE TYPE public.mood AS ENUM ('b', 'a')"


def test_created_type_revokes_public_usage(catalog):
    enum = EnumType(schema="public", name="mood", owner="postgres", labels=["a"])
    assert sql(diff_catalogs(catalog(), catalog(enum))) == [
        "CREATE TYPE public.mood AS ENUM ('a')",
        "REVOKE ALL ON TYPE public.mood FROM PUBLIC",
    ]


def test_sequence_options(catalog):
    old = Sequence(schema="public", name="s", owner="postgres")
    changes = diff_catalogs(catalog(old), catalog(old.replace(increment=5, cache_size=10)))
    assert sql(changes) == ["ALTER SEQUENCE public.s INCREMENT BY 5 CACHE 10"]


def test_sequence_type_change_replaces_sequence(catalog):
    old = Sequence(schema="public", name="s", owner="postgres")
    changes = diff_catalogs(catalog(old), catalog(old.replace(data_type="integer", maximum_value=2147483647)))
    assert [c.action for c in changes] == ["drop_sequence", "create_sequence"]
    assert changes[1].serialize().startswith("CREATE SEQUENCE public.s AS integer")


def test_view_definition_change_replaces_in_place(catalog):
    old = View(schema="public", name="v", owner="postgres", definition="SELECT 1")
    changes = diff_catalogs(catalog(old), catalog(old.replace(definition="SELECT 2")))
    assert len(changes) == 1
    assert isinstance(changes[0], CreateView)
    assert changes[0].operation is Operation.ALTER
    assert changes[0].creates == []
    assert changes[0].serialize() == "CREATE OR REPLACE VIEW public.v AS SELECT 2"


def test_view_layout_is_not_a_change(catalog):
    old = View(schema="public", name="v", owner="postgres", definition="SELECT 1")
    assert diff_catalogs(catalog(old), catalog(old.replace(definition="  SELECT\n    1"))) == []


def function(**fields):
    defaults = dict(
        schema="public",
        name="f",
        identity_arguments="",
        owner="postgres",
        return_type="integer",
        definition="CREATE OR REPLACE FUNCTION public.f() RETURNS integer LANGUAGE sql AS $$SELECT 1$$",
        privileges=PUBLIC_EXECUTE,
    )
    defaults.update(fields)
    return Procedure(**defaults)


def test_function_body_change_is_replaced(catalog):
    new = function(definition="CREATE OR REPLACE FUNCTION public.f() RETURNS integer LANGUAGE sql AS $$SELECT 2$$")
    changes = diff_catalogs(catalog(function()), catalog(new))
    assert len(changes) == 1
    assert isinstance(changes[0], CreateProcedure)
    assert changes[0].operation is Operation.ALTER
    assert changes[0].serialize() == new.definition


def test_function_return_type_change_drops_first(catalog):
    new = function(return_type="bigint",
                   definition="CREATE OR REPLACE FUNCTION public.f() RETURNS bigint LANGUAGE sql AS $$SELECT 1$$")
    changes = diff_catalogs(catalog(function()), catalog(new))
    assert [type(c) for c in changes] == [DropProcedure, CreateProcedure]
    assert changes[0].serialize() == "DROP FUNCTION public.f()"


def test_procedure_drop_keyword(catalog):
    procedure = function(kind="p", return_type=None,
                         definition="CREATE OR REPLACE PROCEDURE public.f() LANGUAGE sql AS $$SELECT 1$$")
    assert sql(diff_catalogs(catalog(procedure), catalog())) == ["DROP PROCEDURE public.f()"]


def test_subscription_created_disabled_then_enabled(catalog):
    subscription = Subscription(name="sub", owner="postgres", conninfo="host=db1 dbname=app", publications=["pub"])
    changes = diff_catalogs(catalog(), catalog(subscription))
    assert [type(c) for c in changes] == [CreateSubscription, AlterSubscriptionEnable]
    create = changes[0].serialize()
    assert create.startswith("CREATE SUBSCRIPTION sub CONNECTION 'host=db1 dbname=app' PUBLICATION pub WITH (")
    assert "create_slot = false" in create
    assert "connect = false" in create
    assert "slot_name = 'sub'" in create
    assert changes[1].serialize() == "ALTER SUBSCRIPTION sub ENABLE"


def test_disabled_subscription_is_not_enabled(catalog):
    subscription = Subscription(name="sub", owner="postgres", conninfo="host=db1", publications=["pub"],
                                enabled=False)
    assert [c.action for c in diff_catalogs(catalog(), catalog(subscription))] == ["create_subscription"]


def test_subscription_connection_and_options(catalog):
    old = Subscription(name="sub", owner="postgres", conninfo="host=db1", publications=["pub"])
    new = old.replace(conninfo="host=db2", binary=True)
    assert sql(diff_catalogs(catalog(old), catalog(new))) == [
        "ALTER SUBSCRIPTION sub CONNECTION 'host=db2'",
        "ALTER SUBSCRIPTION sub SET (binary = true)",
    ]


def test_create_publication(catalog):
    publication = Publication(name="pub", owner="postgres", tables=[PublicationTable(schema="public", name="t")],
                              publish_delete=False, publish_truncate=False)
    changes = diff_catalogs(catalog(TABLE), catalog(TABLE, publication))
    assert sql(changes) == ["CREATE PUBLICATION pub FOR TABLE public.t WITH (publish = 'insert, update')"]
    assert "table:public.t" in changes[0].requires


def test_publication_tables(catalog):
    other = TABLE.replace(name="u")
    old = Publication(name="pub", owner="postgres", tables=[PublicationTable(schema="public", name="t")])
    new = old.replace(tables=[
        PublicationTable(schema="public", name="t", row_filter="id > 0"),
        PublicationTable(schema="public", name="u"),
    ])
    assert sql(diff_catalogs(catalog(TABLE, other, old), catalog(TABLE, other, new))) == [
        "ALTER PUBLICATION pub DROP TABLE public.t",
        "ALTER PUBLICATION pub ADD TABLE public.t WHERE (id > 0), public.u",
    ]


def test_publication_table_dropped_with_its_table(catalog):
    old = Publication(name="pub", owner="postgres", tables=[PublicationTable(schema="public", name="t")])
    changes = diff_catalogs(catalog(TABLE, old), catalog(old.replace(tables=[])))
    assert [c.action for c in changes] == ["drop_table"]


def policy(**fields):
    defaults = dict(schema="public", table_name="t", name="p", using_expression="(id > 0)")
    defaults.update(fields)
    return RlsPolicy(**defaults)


def test_policy_roles_and_expression(catalog):
    new = policy(roles=["reader", "app"], using_expression="(id > 10)")
    assert sql(diff_catalogs(catalog(TABLE, policy()), catalog(TABLE, new))) == [
        "ALTER POLICY p ON public.t TO app, reader",
        "ALTER POLICY p ON public.t USING ((id > 10))",
    ]


def test_policy_expression_removed_is_recreated(catalog):
    new = policy(using_expression=None, with_check_expression="(id > 0)", command="a")
    changes = diff_catalogs(catalog(TABLE, policy()), catalog(TABLE, new))
    assert [type(c) for c in changes] == [DropRlsPolicy, CreateRlsPolicy]
    assert changes[1].serialize() == "CREATE POLICY p ON public.t FOR INSERT TO PUBLIC WITH CHECK ((id > 0))"


def test_policy_goes_with_its_table(catalog):
    assert [c.action for c in diff_catalogs(catalog(TABLE, policy()), catalog())] == ["drop_table"]


def trigger(**fields):
    defaults = dict(
        schema="public",
        table_name="t",
        name="trg",
        definition="CREATE TRIGGER trg BEFORE INSERT ON public.t FOR EACH ROW EXECUTE FUNCTION public.touch()",
        function_schema="public",
        function_name="touch",
    )
    defaults.update(fields)
    return Trigger(**defaults)


def test_trigger_disabled(catalog):
    assert sql(diff_catalogs(catalog(TABLE, trigger()), catalog(TABLE, trigger(enabled="D")))) == [
        "ALTER TABLE public.t DISABLE TRIGGER trg",
    ]


def test_trigger_definition_change_recreates(catalog):
    new = trigger(definition="CREATE TRIGGER trg AFTER INSERT ON public.t FOR EACH ROW EXECUTE FUNCTION public.touch()")
    changes = diff_catalogs(catalog(TABLE, trigger()), catalog(TABLE, new))
    assert [type(c) for c in changes] == [DropTrigger, CreateTrigger]
    assert changes[0].serialize() == "DROP TRIGGER trg ON public.t"


def test_partition_clone_triggers_are_skipped(catalog):
    clone = trigger(table_name="t_2024", is_partition_clone=True)
    assert diff_catalogs(catalog(TABLE), catalog(TABLE, clone)) == []


SERVER = Server(name="srv", owner="postgres", foreign_data_wrapper="postgres_fdw",
                options=["host", "db1", "port", "5432"])


def test_create_server(catalog):
    assert sql(diff_catalogs(catalog(), catalog(SERVER))) == [
        "CREATE SERVER srv FOREIGN DATA WRAPPER postgres_fdw OPTIONS (host 'db1', port '5432')",
    ]


def test_server_options(catalog):
    new = SERVER.replace(options=["host", "db2", "dbname", "app"])
    assert sql(diff_catalogs(catalog(SERVER), catalog(new))) == [
        "ALTER SERVER srv OPTIONS (SET host 'db2', ADD dbname 'app', DROP port)",
    ]


def test_server_option_order_is_not_a_change(catalog):
    assert diff_catalogs(catalog(SERVER), catalog(SERVER.replace(options=["port", "5432", "host", "db1"]))) == []


def test_server_option_values_swapped_between_keys(catalog):
    old = SERVER.replace(options=["host", "5432", "port", "db1"])
    assert sql(diff_catalogs(catalog(old), catalog(SERVER))) == [
        "ALTER SERVER srv OPTIONS (SET host 'db1', SET port '5432')",
    ]


def test_user_mappings(catalog):
    mapping = UserMapping(server="srv", user="postgres", options=["user", "app", "password", "secret"])
    created = diff_catalogs(catalog(SERVER), catalog(SERVER, mapping))
    assert sql(created) == ["CREATE USER MAPPING FOR postgres SERVER srv OPTIONS (user 'app', password 'secret')"]
    assert created[0].requires == ["server:srv", "role:postgres"]

    altered = diff_catalogs(catalog(SERVER, mapping), catalog(SERVER, mapping.replace(options=["user", "app"])))
    assert sql(altered) == ["ALTER USER MAPPING FOR postgres SERVER srv OPTIONS (DROP password)"]

    # dropping the server takes its mappings along
    assert [c.action for c in diff_catalogs(catalog(SERVER, mapping), catalog())] == ["drop_server"]
