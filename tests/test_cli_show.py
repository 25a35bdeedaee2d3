import json

from typer.testing import CliRunner

from techtree.cli import app

runner = CliRunner()


def test_cli_show_text():
    r = runner.invoke(app, ["show", "examples/basic-tree.yaml"])
    assert r.exit_code == 0
    assert "Platform (v1.2.0)" in r.stdout
    assert "Tier 5:" in r.stdout
    assert "  - mobile [blocked] Mobile Client" in r.stdout
    assert "Progress: 13/42 dev points" in r.stdout


def test_cli_show_json_cycle_warnings():
    r = runner.invoke(app, ["show", "examples/cyclic-tree.yaml", "--format", "json"])
    assert r.exit_code == 0
    payload = json.loads(r.stdout)
    assert payload["tiers"] == {"1": ["A", "B"], "2": ["C"]}
    assert payload["warnings"]


def test_cli_ready():
    r = runner.invoke(app, ["ready", "examples/basic-tree.yaml"])
    assert r.exit_code == 0
    assert [line.split("\t")[0] for line in r.stdout.splitlines()] == ["auth", "docs"]


def test_cli_ancestors_and_descendants():
    r = runner.invoke(app, ["ancestors", "examples/basic-tree.yaml", "ui"])
    assert r.exit_code == 0
    assert r.stdout.split() == ["core", "storage", "auth", "api"]

    r = runner.invoke(app, ["descendants", "examples/basic-tree.yaml", "storage"])
    assert r.exit_code == 0
    assert r.stdout.split() == ["api", "ui", "mobile"]


def test_cli_ancestors_unknown_node():
    r = runner.invoke(app, ["ancestors", "examples/basic-tree.yaml", "nope"])
    assert r.exit_code == 2
    assert "E_UNKNOWN_NODE" in (r.stdout + r.stderr)
