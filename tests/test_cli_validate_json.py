import json

from typer.testing import CliRunner

from techtree.cli import app

runner = CliRunner()


def test_cli_validate_json_success():
    r = runner.invoke(app, ["validate", "examples/basic-tree.yaml", "--format", "json"])
    assert r.exit_code == 0
    payload = json.loads(r.stdout)
    assert payload["command"] == "validate"
    assert payload["ok"] is True
    assert payload["error_count"] == 0
    assert payload["summary"]["node_count"] == 7
    assert payload["summary"]["status_counts"]["completed"] == 2
    assert payload["summary"]["total_dev_points"] == 42


def test_cli_validate_json_duplicate_id():
    r = runner.invoke(app, ["validate", "examples/invalid-duplicate-id.yaml", "--format", "json"])
    assert r.exit_code == 2
    payload = json.loads(r.stdout)
    assert payload["ok"] is False
    assert payload["errors"][0]["code"] == "E_DUPLICATE_ID"
    assert payload["errors"][0]["details"] == ['Duplicate ID: "x"']
