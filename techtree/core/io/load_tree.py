from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from techtree.core.errors import TreeError, TreeLoadError
from techtree.core.model import ComputedNode, ComputedTree, TechNode, TechTree
from techtree.core.validate.validate_tree import validate_tree

logger = logging.getLogger(__name__)


def load_tree(path: str) -> dict[str, Any]:
    """Load a YAML/JSON tech tree file.

    Returns the raw mapping plus a __file__ key. Does not coerce types;
    validator owns shape checking.
    """

    p = Path(path)
    if not p.exists():
        raise TreeLoadError(
            code="E_FILE_NOT_FOUND",
            message="file does not exist",
            file=str(p),
        )

    suffix = p.suffix.lower()
    raw_text = read_tree_text(p)

    if suffix in {".yaml", ".yml"}:
        data = parse_tree_text(raw_text, file=str(p))
    elif suffix == ".json":
        try:
            data = json.loads(raw_text)
        except json.JSONDecodeError as e:
            raise TreeLoadError(code="E_JSON_PARSE", message=str(e), file=str(p)) from e
        if not isinstance(data, dict):
            raise TreeLoadError(
                code="E_INVALID_TOP_LEVEL",
                message="top-level document must be a mapping/object",
                file=str(p),
            )
    else:
        raise TreeLoadError(
            code="E_UNSUPPORTED_FORMAT",
            message="supported formats are .yaml/.yml and .json",
            file=str(p),
        )

    data["__file__"] = str(p)
    logger.debug(f"Loaded tree document from {p}")
    return data


def read_tree_text(path: str | Path) -> str:
    p = Path(path)
    try:
        return p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise TreeLoadError(code="E_FILE_READ", message=str(e), file=str(p)) from e


def parse_tree_text(text: str, file: Optional[str] = None) -> dict[str, Any]:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise TreeLoadError(code="E_YAML_PARSE", message=str(e), file=file) from e

    if not isinstance(data, dict):
        raise TreeLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="top-level document must be a mapping/object",
            file=file,
        )
    return data


def parse_tree(text: str) -> tuple[Optional[TechTree], Optional[TreeError]]:
    """Parse YAML text and validate it. Errors come back as data."""
    try:
        raw = parse_tree_text(text)
    except TreeLoadError as e:
        return None, e
    return validate_tree(raw)


def node_to_dict(node: TechNode) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": node.id,
        "name": node.name,
    }
    if node.description is not None:
        out["description"] = node.description
    if node.repo is not None:
        out["repo"] = node.repo
    if node.tier is not None:
        out["tier"] = node.tier
    out["status"] = node.status.value
    out["prerequisites"] = list(node.prerequisites)
    if node.dev_points is not None:
        out["devPoints"] = node.dev_points
    if node.blocked_reason is not None:
        out["blockedReason"] = node.blocked_reason
    out["tags"] = list(node.tags)
    if node.subtree is not None:
        out["subtree"] = node.subtree
    return out


def tree_to_dict(tree: TechTree) -> dict[str, Any]:
    """Persisted form of a tree. Feeding it back to validate_tree yields an equal tree."""
    out: dict[str, Any] = {"name": tree.name, "version": tree.version}
    if tree.description is not None:
        out["description"] = tree.description
    out["nodes"] = [node_to_dict(n) for n in tree.nodes]
    return out


def computed_node_to_dict(node: ComputedNode) -> dict[str, Any]:
    out = node_to_dict(node.node)
    out["computedTier"] = node.computed_tier
    out["dependents"] = list(node.dependents)
    return out


def computed_tree_to_dict(tree: ComputedTree) -> dict[str, Any]:
    out = tree_to_dict(tree.tree)
    out["nodes"] = [computed_node_to_dict(n) for n in tree.nodes]
    # JSON object keys are strings
    out["tiers"] = {str(t): [n.id for n in nodes] for t, nodes in tree.tiers.items()}
    out["totalDevPoints"] = tree.total_dev_points
    out["completedDevPoints"] = tree.completed_dev_points
    out["warnings"] = list(tree.warnings)
    return out


def dump_tree_yaml(tree: TechTree, path: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(tree_to_dict(tree), f, sort_keys=False, default_flow_style=False, allow_unicode=True)
