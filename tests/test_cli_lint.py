import json

from typer.testing import CliRunner

from techtree.cli import app


runner = CliRunner()


def test_cli_lint_success():
    r = runner.invoke(app, ["lint", "examples/basic-tree.yaml"])
    assert r.exit_code == 0
    assert "OK: lint passed" in r.stdout


def test_cli_lint_cycle():
    r = runner.invoke(app, ["lint", "examples/cyclic-tree.yaml"])
    assert r.exit_code == 2
    assert "L_CYCLE_DETECTED" in (r.stdout + r.stderr)


def test_cli_lint_json_includes_validation_errors():
    r = runner.invoke(app, ["lint", "examples/invalid-duplicate-id.yaml", "--format", "json"])
    assert r.exit_code == 2
    payload = json.loads(r.stdout)
    assert payload["command"] == "lint"
    assert payload["ok"] is False
    sources = {e["code"]: e["source"] for e in payload["errors"]}
    assert sources["E_DUPLICATE_ID"] == "validate"
