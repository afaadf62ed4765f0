from pg_delta_core.lib.catalog import Depend
from pg_delta_core.lib.diff import diff_catalogs
from pg_delta_core.lib.model import Privilege
from pg_delta_core.lib.objects.index import Index
from pg_delta_core.lib.objects.materialized_view import MaterializedView
from pg_delta_core.lib.objects.procedure import Procedure
from pg_delta_core.lib.objects.view import View
from pg_delta_core.lib.plan import create_plan
from pg_delta_core.lib.replace import owning_object_id
from pg_delta_core.lib.sorter import check_order

FUNCTION = Procedure(
    schema="public",
    name="f",
    identity_arguments="",
    owner="postgres",
    return_type="integer",
    definition="CREATE OR REPLACE FUNCTION public.f() RETURNS integer LANGUAGE sql AS $$SELECT 1$$",
    privileges=[Privilege(grantee="PUBLIC", privilege="EXECUTE")],
)
BIGINT_FUNCTION = FUNCTION.replace(
    return_type="bigint",
    definition="CREATE OR REPLACE FUNCTION public.f() RETURNS bigint LANGUAGE sql AS $$SELECT 1$$",
)
VIEW = View(schema="public", name="v", owner="postgres", definition="SELECT public.f() AS f")
VIEW_ON_FUNCTION = [Depend("view:public.v", "procedure:public.f()")]


class TestReplaceDependents:
    """Test that objects depending on a replaced object are replaced with it."""

    def test_view_on_replaced_function(self, catalog):
        plan = create_plan(
            catalog(FUNCTION, VIEW, depends=VIEW_ON_FUNCTION),
            catalog(BIGINT_FUNCTION, VIEW, depends=VIEW_ON_FUNCTION),
        )
        assert check_order(plan.changes) is None
        assert plan.statements == [
            "DROP VIEW public.v",
            "DROP FUNCTION public.f()",
            BIGINT_FUNCTION.definition,
            "CREATE VIEW public.v AS SELECT public.f() AS f",
        ]

    def test_dependents_are_walked_transitively(self, catalog):
        outer = View(schema="public", name="w", owner="postgres", definition="SELECT v.f FROM public.v")
        depends = VIEW_ON_FUNCTION + [Depend("view:public.w", "view:public.v")]
        changes = diff_catalogs(
            catalog(FUNCTION, VIEW, outer, depends=depends),
            catalog(BIGINT_FUNCTION, VIEW, outer, depends=depends),
        )
        actions = sorted(c.action for c in changes)
        assert actions == ["create_procedure", "create_view", "create_view", "drop_procedure", "drop_view", "drop_view"]

    def test_function_body_change_leaves_dependents_alone(self, catalog):
        body = FUNCTION.replace(
            definition="CREATE OR REPLACE FUNCTION public.f() RETURNS integer LANGUAGE sql AS $$SELECT 2$$"
        )
        changes = diff_catalogs(
            catalog(FUNCTION, VIEW, depends=VIEW_ON_FUNCTION),
            catalog(body, VIEW, depends=VIEW_ON_FUNCTION),
        )
        assert [c.object_type for c in changes] == ["procedure"]

    def test_indexes_of_replaced_materialized_view(self, catalog):
        view = MaterializedView(schema="public", name="mv", owner="postgres", definition="SELECT 1 AS id")
        index = Index(schema="public", table_name="mv", name="mv_idx", table_kind="m",
                      definition="CREATE INDEX mv_idx ON public.mv USING btree (id)")
        depends = [Depend("index:public.mv.mv_idx", "materialized_view:public.mv", "a")]
        plan = create_plan(
            catalog(view, index, depends=depends),
            catalog(view.replace(definition="SELECT 2 AS id"), index, depends=depends),
        )
        assert check_order(plan.changes) is None
        assert [c.action for c in plan.changes] == [
            "drop_index",
            "drop_materialized_view",
            "create_materialized_view",
            "create_index",
        ]
        assert plan.statements[-1] == "CREATE INDEX mv_idx ON public.mv USING btree (id)"

    def test_dependent_missing_from_branch_is_not_recreated(self, catalog):
        plan = create_plan(
            catalog(FUNCTION, VIEW, depends=VIEW_ON_FUNCTION),
            catalog(BIGINT_FUNCTION),
        )
        assert [c.action for c in plan.changes] == ["drop_view", "drop_procedure", "create_procedure"]


def test_owning_object_id():
    assert owning_object_id("view:public.v") == "view:public.v"
    assert owning_object_id("comment:view:public.v") == "view:public.v"
    assert owning_object_id("column:public.t.id") == "table:public.t"
    assert owning_object_id("constraint:public.t.t_pkey") == "table:public.t"
    assert owning_object_id("acl:view:public.v::grantee:app") is None
    assert owning_object_id("schema:public") is None
    assert owning_object_id("sequence:public.s") is None
