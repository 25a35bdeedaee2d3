from typer.testing import CliRunner

from techtree.cli import app


runner = CliRunner()


def test_cli_validate_success():
    r = runner.invoke(app, ["validate", "examples/basic-tree.yaml"])
    assert r.exit_code == 0
    assert "OK: Platform: 7 nodes" in r.stdout
    assert "Tiers: 5" in r.stdout


def test_cli_validate_unknown_prerequisite():
    r = runner.invoke(app, ["validate", "examples/invalid-unknown-prereq.yaml"])
    assert r.exit_code == 2
    out = r.stdout + r.stderr
    assert "E_INVALID_PREREQUISITE" in out
    assert 'Node "D" has invalid prerequisite "ghost"' in out


def test_cli_validate_missing_file():
    r = runner.invoke(app, ["validate", "examples/does-not-exist.yaml"])
    assert r.exit_code == 1
    assert "E_FILE_NOT_FOUND" in (r.stdout + r.stderr)


def test_cli_validate_invalid_utf8(tmp_path):
    p = tmp_path / "bad.yaml"
    p.write_bytes(b"name: \xff\xfe")
    r = runner.invoke(app, ["validate", str(p)])
    assert r.exit_code == 1
    assert "E_FILE_READ" in (r.stdout + r.stderr)


def test_cli_validate_unknown_format():
    r = runner.invoke(app, ["validate", "examples/basic-tree.yaml", "--format", "xml"])
    assert r.exit_code == 2
    assert "E_VALIDATE_UNKNOWN_FORMAT" in (r.stdout + r.stderr)
