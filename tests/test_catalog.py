import json

import pytest

from pg_delta_core.lib.catalog import Catalog, Depend, load_catalog
from pg_delta_core.lib.errors import CatalogLoadError
from pg_delta_core.lib.model import Privilege
from pg_delta_core.lib.objects.table import Column


class TestCatalog:
    """Test building catalogs from snapshots."""

    def test_from_dict(self, snapshot):
        catalog = Catalog.from_dict(snapshot)
        assert catalog.version == 170000
        assert catalog.current_user == "postgres"
        assert sorted(catalog.schemas) == ["schema:app", "schema:public"]

        users = catalog.tables["table:app.users"]
        assert users.columns[0] == Column(name="id", data_type="integer", position=1, not_null=True,
                                          default="nextval('app.users_id_seq'::regclass)")
        assert users.privileges == (Privilege(grantee="postgres", privilege="SELECT"),)
        assert catalog.depends[2] == Depend("view:app.user_emails", "table:app.users", "n")

    def test_unknown_fields_are_ignored(self):
        catalog = Catalog.from_dict({"schemas": [{"name": "app", "owner": "postgres", "oid": 16384}]})
        assert catalog.schemas["schema:app"].owner == "postgres"

    def test_rows_keyed_by_id_are_accepted(self):
        catalog = Catalog.from_dict({"schemas": {"schema:app": {"name": "app", "owner": "postgres"}}})
        assert list(catalog.schemas) == ["schema:app"]

    def test_duplicate_rows_rejected(self):
        row = {"name": "app", "owner": "postgres"}
        with pytest.raises(CatalogLoadError, match="Duplicate schema"):
            Catalog.from_dict({"schemas": [row, dict(row)]})

    def test_invalid_row_rejected(self):
        with pytest.raises(CatalogLoadError, match="Invalid table row"):
            Catalog.from_dict({"tables": [{"name": "t"}]})

    def test_invalid_version_rejected(self):
        with pytest.raises(CatalogLoadError, match="server version"):
            Catalog.from_dict({"version": "seventeen"})

    def test_snapshot_must_be_an_object(self):
        with pytest.raises(CatalogLoadError):
            Catalog.from_dict([])

    def test_unknown_kind_rejected(self):
        with pytest.raises(CatalogLoadError, match="widgets"):
            Catalog(widgets={})

    def test_to_dict_round_trip(self, snapshot):
        catalog = Catalog.from_dict(snapshot)
        again = Catalog.from_dict(json.loads(json.dumps(catalog.to_dict())))
        assert again.objects() == catalog.objects()
        assert again.depends == catalog.depends

    def test_objects_lists_every_kind(self, snapshot):
        objects = Catalog.from_dict(snapshot).objects()
        assert "role:app" in objects
        assert "index:app.users.users_email_idx" in objects
        assert "view:app.user_emails" in objects


class TestLoadCatalog:
    """Test reading snapshots from files."""

    def test_load(self, tmp_path, snapshot):
        path = tmp_path / "main.json"
        path.write_text(json.dumps(snapshot), encoding="utf-8")
        catalog = load_catalog(str(path))
        assert "sequence:app.users_id_seq" in catalog.sequences

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(CatalogLoadError, match="not valid JSON"):
            load_catalog(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(CatalogLoadError, match="Could not read"):
            load_catalog(str(tmp_path / "missing.json"))
