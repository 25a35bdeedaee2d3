from __future__ import annotations

import json
import logging
from collections import Counter
from pathlib import Path
from typing import Any, Optional

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler

from techtree.core.errors import TreeError, TreeLoadError, TreeStoreError, TreeValidationError
from techtree.core.graph.compute_tree import compute_tree
from techtree.core.graph.queries import ancestors, descendants, ready_nodes
from techtree.core.io.load_tree import computed_tree_to_dict, load_tree, read_tree_text
from techtree.core.lint.lint_tree import lint_tree
from techtree.core.model import ComputedTree
from techtree.core.store.tree_store import DEFAULT_TREE, TreeStore
from techtree.core.validate.validate_tree import ALLOWED_STATUSES, summarize_tree, validate_tree

app = typer.Typer(add_completion=False, no_args_is_help=True)

logger = logging.getLogger(__name__)
err_console = Console(stderr=True)

DIR_OPTION_HELP = "Directory holding <name>.yaml trees"


@app.callback()
def _callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Tech tree CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_time=False, show_path=verbose)],
    )


@app.command("validate")
def validate(
    path: str = typer.Argument(..., help="Path to a tree file (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Validate a tree file: schema, prerequisite references, unique ids."""
    _check_format(format, "E_VALIDATE_UNKNOWN_FORMAT")

    def _emit_json(ok: bool, *, exit_code: int, errors: list[TreeError], summary: dict | None) -> None:
        payload = {
            "tool": "techtree",
            "command": "validate",
            "ok": ok,
            "error_count": len(errors),
            "errors": [_to_item(e) for e in errors],
            "summary": summary,
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        raise typer.Exit(code=exit_code)

    try:
        raw = load_tree(path)
    except TreeLoadError as e:
        if format == "json":
            _emit_json(False, exit_code=1, errors=[e], summary=None)
        _print_errors([e])
        raise typer.Exit(code=1)

    tree, error = validate_tree(raw)
    if error is not None:
        if format == "json":
            _emit_json(False, exit_code=2, errors=[error], summary=None)
        _print_errors([error])
        raise typer.Exit(code=2)

    assert tree is not None
    computed = compute_tree(tree)

    if format == "text":
        typer.echo(summarize_tree(tree))
        typer.echo(f"Tiers: {len(computed.tiers)}")
        return

    counts = Counter([n.status.value for n in tree.nodes])
    summary = {
        "name": tree.name,
        "version": tree.version,
        "node_count": len(tree.nodes),
        "status_counts": {s: int(counts.get(s, 0)) for s in ALLOWED_STATUSES},
        "tier_count": len(computed.tiers),
        "total_dev_points": computed.total_dev_points,
        "completed_dev_points": computed.completed_dev_points,
    }
    _emit_json(True, exit_code=0, errors=[], summary=summary)


@app.command("lint")
def lint(
    path: str = typer.Argument(..., help="Path to a tree file (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Lint a tree file (rules beyond schema validation, including cycles)."""
    _check_format(format, "E_LINT_UNKNOWN_FORMAT")

    def _emit_json(ok: bool, errors: list[TreeError], exit_code: int) -> None:
        payload = {
            "tool": "techtree",
            "command": "lint",
            "ok": ok,
            "error_count": len(errors),
            "errors": [_to_item(e) for e in errors],
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        raise typer.Exit(code=exit_code)

    try:
        raw = load_tree(path)
    except TreeLoadError as e:
        if format == "json":
            _emit_json(False, [e], 1)
        _print_errors([e])
        raise typer.Exit(code=1)

    _, error = validate_tree(raw)
    errors: list[TreeError] = list(lint_tree(raw))
    if error is not None:
        errors.append(error)

    if format == "json":
        _emit_json(not errors, errors, 2 if errors else 0)

    if errors:
        _print_errors(errors)
        raise typer.Exit(code=2)
    typer.echo("OK: lint passed")


@app.command("show")
def show(
    path: str = typer.Argument(..., help="Path to a tree file (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Print the computed tree: nodes grouped by tier, plus dev point progress."""
    _check_format(format, "E_SHOW_UNKNOWN_FORMAT")
    computed = _load_computed(path)

    if format == "json":
        typer.echo(json.dumps(computed_tree_to_dict(computed), indent=2, sort_keys=True))
        return

    typer.echo(f"{computed.name} (v{computed.tree.version})")
    for tier, nodes in computed.tiers.items():
        typer.echo(f"Tier {tier}:")
        for n in nodes:
            typer.echo(f"  - {n.id} [{n.status.value}] {n.node.name}")
    typer.echo(f"Progress: {computed.completed_dev_points}/{computed.total_dev_points} dev points")


@app.command("ready")
def ready(
    path: str = typer.Argument(..., help="Path to a tree file (.yaml/.yml/.json)"),
) -> None:
    """List nodes that can be started now (all prerequisites completed)."""
    computed = _load_computed(path)
    nodes = ready_nodes(computed)
    if not nodes:
        typer.echo("No nodes are ready to start")
        return
    for n in nodes:
        typer.echo(f"{n.id}\t{n.node.name}")


@app.command("ancestors")
def ancestors_cmd(
    path: str = typer.Argument(..., help="Path to a tree file (.yaml/.yml/.json)"),
    node_id: str = typer.Argument(..., help="Node id"),
) -> None:
    """List every transitive prerequisite of a node."""
    computed = _load_computed(path)
    _require_node(computed, node_id, path)
    for nid in _in_tree_order(computed, ancestors(computed, node_id)):
        typer.echo(nid)


@app.command("descendants")
def descendants_cmd(
    path: str = typer.Argument(..., help="Path to a tree file (.yaml/.yml/.json)"),
    node_id: str = typer.Argument(..., help="Node id"),
) -> None:
    """List every node that transitively depends on a node."""
    computed = _load_computed(path)
    _require_node(computed, node_id, path)
    for nid in _in_tree_order(computed, descendants(computed, node_id)):
        typer.echo(nid)


@app.command("trees")
def trees(
    directory: str = typer.Option("trees", "--dir", envvar="TECHTREE_DIR", help=DIR_OPTION_HELP),
) -> None:
    """List the trees available in the store directory."""
    store = TreeStore(directory)
    try:
        names = store.list_trees()
    except TreeStoreError as e:
        _print_errors([e])
        raise typer.Exit(code=1)
    for name in names:
        typer.echo(name)


@app.command("update-node")
def update_node(
    tree_name: str = typer.Argument(..., help="Tree name (file name without .yaml)"),
    node_id: str = typer.Argument(..., help="Node id"),
    set_: list[str] = typer.Option(
        [],
        "--set",
        help="Field update as key=value; values are parsed as YAML (e.g. status=completed, devPoints=5)",
    ),
    directory: str = typer.Option("trees", "--dir", envvar="TECHTREE_DIR", help=DIR_OPTION_HELP),
) -> None:
    """Update fields of one node, then re-validate and recompute the tree."""
    updates: dict[str, Any] = {}
    for item in set_:
        key, sep, value = item.partition("=")
        try:
            parsed = yaml.safe_load(value) if value else None
        except yaml.YAMLError:
            sep = ""
        if not sep or not key.strip():
            _print_errors(
                [
                    TreeValidationError(
                        code="E_UPDATE_BAD_FIELD",
                        message=f"expected key=value with a YAML value, got: {item}",
                        path="set",
                    )
                ]
            )
            raise typer.Exit(code=2)
        updates[key.strip()] = parsed

    if "id" in updates:
        typer.echo("WARN: node id is immutable; ignoring id update", err=True)

    logger.debug(f"Applying updates to {tree_name}/{node_id}: {updates}")
    store = TreeStore(directory)
    computed = _run_store(lambda: store.update_node(tree_name, node_id, updates))
    node = computed.get(node_id)
    assert node is not None
    typer.echo(f"OK: updated {node_id} in {tree_name} (tier {node.computed_tier}, status {node.status.value})")


@app.command("add-subtree")
def add_subtree(
    path: str = typer.Argument(..., help="Path to a YAML tree to add as a subtree"),
    attach_to: Optional[str] = typer.Option(
        None, "--attach-to", help="Existing node in the parent tree to link the subtree from"
    ),
    parent: str = typer.Option(DEFAULT_TREE, "--parent", help="Parent tree name"),
    directory: str = typer.Option("trees", "--dir", envvar="TECHTREE_DIR", help=DIR_OPTION_HELP),
) -> None:
    """Store a new subtree and link it from the parent tree."""
    p = Path(path)
    if not p.is_file():
        _print_errors([TreeLoadError(code="E_FILE_NOT_FOUND", message="file does not exist", file=str(p))])
        raise typer.Exit(code=1)

    store = TreeStore(directory)
    subtree, _ = _run_store(
        lambda: store.create_subtree(read_tree_text(p), attach_to=attach_to, parent=parent)
    )
    link = f"node {attach_to}" if attach_to else "a new node"
    typer.echo(f"OK: created subtree '{subtree.name}' linked from {link} in {parent}")


def _load_computed(path: str) -> ComputedTree:
    try:
        raw = load_tree(path)
    except TreeLoadError as e:
        _print_errors([e])
        raise typer.Exit(code=1)

    tree, error = validate_tree(raw)
    if error is not None:
        _print_errors([error])
        raise typer.Exit(code=2)

    assert tree is not None
    return compute_tree(tree)


def _run_store(fn):
    try:
        return fn()
    except (TreeLoadError, TreeStoreError) as e:
        _print_errors([e])
        raise typer.Exit(code=1)
    except TreeValidationError as e:
        _print_errors([e])
        raise typer.Exit(code=2)


def _require_node(computed: ComputedTree, node_id: str, path: str) -> None:
    if computed.get(node_id) is None:
        _print_errors(
            [
                TreeValidationError(
                    code="E_UNKNOWN_NODE",
                    message=f"unknown node id: {node_id}",
                    file=path,
                    path="node_id",
                )
            ]
        )
        raise typer.Exit(code=2)


def _in_tree_order(computed: ComputedTree, ids: set[str]) -> list[str]:
    return [n.id for n in computed.nodes if n.id in ids]


def _check_format(format: str, code: str) -> None:
    if format not in ("text", "json"):
        err = TreeValidationError(
            code=code,
            message=f"unknown format: {format} (choose one of: text, json)",
            file=None,
            path="format",
        )
        _print_errors([err])
        raise typer.Exit(code=2)


def _to_item(e: TreeError) -> dict:
    if isinstance(e, TreeLoadError):
        source = "load"
    elif e.code.startswith("L_"):
        source = "lint"
    else:
        source = "validate"
    return {
        "code": e.code,
        "message": e.message,
        "file": e.file,
        "path": e.path,
        "details": list(e.details),
        "severity": "error",
        "source": source,
    }


def _print_errors(errors: list[TreeError]) -> None:
    errors_sorted = sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
    for e in errors_sorted:
        typer.echo(str(e), err=True)
        for d in e.details:
            typer.echo(f"  - {d}", err=True)


def main() -> None:
    app(prog_name="techtree")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
