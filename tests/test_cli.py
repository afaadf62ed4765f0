import json

import pytest

from pg_delta_core.cli import main
from pg_delta_core.cli.cli import build_parser

BASE = {
    "version": 170000,
    "current_user": "postgres",
    "roles": [{"name": "postgres", "is_superuser": True, "can_login": True}],
    "schemas": [{"name": "public", "owner": "postgres"}],
}


@pytest.fixture
def snapshot_files(tmp_path, snapshot):
    """Write the base and full snapshots to files and return their paths."""
    main_path = tmp_path / "main.json"
    branch_path = tmp_path / "branch.json"
    main_path.write_text(json.dumps(BASE), encoding="utf-8")
    branch_path.write_text(json.dumps(snapshot), encoding="utf-8")
    return str(main_path), str(branch_path)


class TestCli:
    """Test the pg-delta command line."""

    def test_sql_to_stdout(self, snapshot_files, capsys):
        assert main(list(snapshot_files)) == 0
        out = capsys.readouterr().out
        assert out.startswith("CREATE ROLE app;")
        assert "CREATE VIEW app.user_emails AS SELECT users.email FROM app.users;" in out

    def test_json_output(self, snapshot_files, capsys):
        assert main(list(snapshot_files) + ["--format", "json"]) == 0
        entries = json.loads(capsys.readouterr().out)
        assert entries[0]["action"] == "create_role"
        assert all("sql" in entry for entry in entries)

    def test_output_file(self, snapshot_files, tmp_path, capsys):
        target = tmp_path / "plan.sql"
        assert main(list(snapshot_files) + ["-o", str(target), "--keyword-case", "lower"]) == 0
        assert capsys.readouterr().out == ""
        script = target.read_text(encoding="utf-8")
        assert script.startswith("create role app;")
        assert script.endswith(";\n")

    def test_no_differences(self, snapshot_files, capsys):
        _, branch = snapshot_files
        assert main([branch, branch]) == 0
        assert capsys.readouterr().out == ""

    def test_missing_file(self, snapshot_files, tmp_path):
        main_path, _ = snapshot_files
        assert main([main_path, str(tmp_path / "missing.json")]) == 1

    def test_invalid_json(self, snapshot_files, tmp_path):
        broken = tmp_path / "broken.json"
        broken.write_text("[", encoding="utf-8")
        main_path, _ = snapshot_files
        assert main([main_path, str(broken)]) == 1


def test_env_dependent_keys_parsing():
    parser = build_parser()
    assert parser.parse_args(["a", "b"]).env_dependent_server_keys is None
    assert parser.parse_args(["a", "b", "--env-dependent-server-keys"]).env_dependent_server_keys == []
    args = parser.parse_args(["a", "b", "--env-dependent-server-keys", "host", "port"])
    assert args.env_dependent_server_keys == ["host", "port"]
