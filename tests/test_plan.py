from pg_delta_core.lib.catalog import Catalog
from pg_delta_core.lib.objects.schema import Schema
from pg_delta_core.lib.plan import Plan, create_plan
from pg_delta_core.lib.render import RenderOptions
from pg_delta_core.lib.sorter import check_order

BASE = {
    "version": 170000,
    "current_user": "postgres",
    "roles": [{"name": "postgres", "is_superuser": True, "can_login": True}],
    "schemas": [{"name": "public", "owner": "postgres"}],
}


class TestCreatePlan:
    """Test planning between whole snapshots."""

    def test_identical_catalogs_give_empty_plan(self, snapshot):
        plan = create_plan(Catalog.from_dict(snapshot), Catalog.from_dict(snapshot))
        assert plan.is_empty
        assert len(plan) == 0
        assert plan.to_sql() == ""
        assert plan.to_dict_list() == []

    def test_create_everything(self, snapshot):
        plan = create_plan(Catalog.from_dict(BASE), Catalog.from_dict(snapshot))
        assert check_order(plan.changes) is None
        actions = [c.action for c in plan.changes]
        assert actions[0] == "create_role"
        assert actions.index("create_schema") < actions.index("create_sequence") < actions.index("create_table")
        assert actions.index("create_table") < actions.index("alter_sequence_set_owned_by")
        assert actions.index("create_table") < actions.index("create_view")
        assert "CREATE INDEX users_email_idx ON app.users USING btree (email)" in plan.statements
        assert "COMMENT ON SCHEMA app IS 'application schema'" in plan.statements

    def test_drop_everything(self, snapshot):
        plan = create_plan(Catalog.from_dict(snapshot), Catalog.from_dict(BASE))
        assert check_order(plan.changes) is None
        actions = [c.action for c in plan.changes]
        assert actions.index("drop_view") < actions.index("drop_table")
        assert actions.index("drop_table") < actions.index("drop_schema") < actions.index("drop_role")
        # the owned sequence goes with its table
        assert "drop_sequence" not in actions

    def test_to_sql(self, snapshot):
        plan = create_plan(Catalog.from_dict(BASE), Catalog.from_dict(snapshot))
        script = plan.to_sql()
        assert script == ";\n\n".join(plan.statements) + ";"
        assert script.startswith("CREATE ROLE app")

    def test_to_dict_list(self, snapshot):
        plan = create_plan(Catalog.from_dict(BASE), Catalog.from_dict(snapshot))
        entries = plan.to_dict_list()
        assert len(entries) == len(plan)
        first = entries[0]
        assert first["action"] == "create_role"
        assert first["operation"] == "create"
        assert first["phase"] == "create_alter"
        assert first["sql"] == plan.statements[0]

    def test_drop_phase_reported(self, catalog):
        plan = create_plan(catalog(Schema(name="old", owner="postgres")), catalog())
        assert [entry["phase"] for entry in plan.to_dict_list()] == ["drop"]

    def test_render_options_apply_to_statements(self, catalog):
        plan = create_plan(catalog(), catalog(Schema(name="app", owner="postgres")),
                           render_options=RenderOptions(keyword_case="lower"))
        assert plan.statements == ["create schema app authorization postgres"]

    def test_filter_drops_changes(self, catalog):
        def no_comments(ctx, change):
            return change.scope.value != "comment"

        plan = create_plan(catalog(), catalog(Schema(name="app", owner="postgres", comment="x")),
                           filter=no_comments)
        assert [c.action for c in plan.changes] == ["create_schema"]

    def test_serializer_overrides_text(self, catalog):
        def shout(ctx, change):
            return f"-- {change.action}\n{change.serialize()}"

        plan = create_plan(catalog(), catalog(Schema(name="app", owner="postgres")), serialize=shout)
        assert plan.statements == ["-- create_schema\nCREATE SCHEMA app AUTHORIZATION postgres"]


def test_empty_plan():
    assert Plan().is_empty
    assert Plan().to_sql() == ""
