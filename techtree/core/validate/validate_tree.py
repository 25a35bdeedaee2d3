from __future__ import annotations

from collections import Counter
from typing import Any, Optional, cast

from techtree.core.errors import TreeValidationError
from techtree.core.model import NodeStatus, TechNode, TechTree


ALLOWED_STATUSES: list[str] = [s.value for s in NodeStatus]

_OPTIONAL_STR_FIELDS: list[str] = ["description", "repo", "blockedReason", "subtree"]


def _is_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def _is_list_of_str(v: Any) -> bool:
    return isinstance(v, list) and all(isinstance(x, str) for x in v)


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and len(v) > 0


def validate_tree(
    tree: dict[str, Any],
) -> tuple[Optional[TechTree], Optional[TreeValidationError]]:
    """Validate a raw tech tree document.

    Runs three checks in order: structural schema, prerequisite references,
    then id uniqueness. The first check with any violation ends validation and
    its messages (all of them) become the error details.

    Returns (tree, error). Tree is None when error is set.
    """

    file = cast(Optional[str], tree.get("__file__")) if isinstance(tree, dict) else None

    schema_errors = _check_schema(tree)
    if schema_errors:
        return None, TreeValidationError(
            code="E_SCHEMA",
            message="Schema validation failed",
            file=file,
            details=tuple(schema_errors),
        )

    raw_nodes = cast(list[dict[str, Any]], tree["nodes"])

    all_ids = {n["id"] for n in raw_nodes}
    invalid_prereqs: list[str] = []
    for raw in raw_nodes:
        for prereq in raw.get("prerequisites") or []:
            if prereq not in all_ids:
                invalid_prereqs.append(f'Node "{raw["id"]}" has invalid prerequisite "{prereq}"')
    if invalid_prereqs:
        return None, TreeValidationError(
            code="E_INVALID_PREREQUISITE",
            message="Invalid prerequisites",
            file=file,
            path="nodes",
            details=tuple(invalid_prereqs),
        )

    duplicates = _find_duplicates([n["id"] for n in raw_nodes])
    if duplicates:
        return None, TreeValidationError(
            code="E_DUPLICATE_ID",
            message="Duplicate node IDs",
            file=file,
            path="nodes",
            details=tuple(f'Duplicate ID: "{nid}"' for nid in duplicates),
        )

    return _build_tree(tree), None


def summarize_tree(tree: TechTree) -> str:
    counts = Counter([n.status.value for n in tree.nodes])
    parts = [f"{s}={counts.get(s, 0)}" for s in ALLOWED_STATUSES]
    return f"OK: {tree.name}: {len(tree.nodes)} nodes (" + ", ".join(parts) + ")"


def _check_schema(tree: Any) -> list[str]:
    if not isinstance(tree, dict):
        return [": expected an object"]

    errors: list[str] = []

    if not _is_non_empty_str(tree.get("name")):
        errors.append("name: must be a non-empty string")
    if "version" in tree and not isinstance(tree["version"], str):
        errors.append("version: must be a string")
    if tree.get("description") is not None and not isinstance(tree["description"], str):
        errors.append("description: must be a string")

    nodes = tree.get("nodes")
    if not isinstance(nodes, list):
        errors.append("nodes: is required and must be an array")
        return errors
    if not nodes:
        errors.append("nodes: must contain at least 1 node")
        return errors

    for i, raw in enumerate(nodes):
        errors.extend(_check_node(f"nodes.{i}", raw))

    return errors


def _check_node(node_path: str, raw: Any) -> list[str]:
    if not isinstance(raw, dict):
        return [f"{node_path}: node must be an object"]

    errors: list[str] = []

    if not _is_non_empty_str(raw.get("id")):
        errors.append(f"{node_path}.id: is required and must be a non-empty string")
    if not _is_non_empty_str(raw.get("name")):
        errors.append(f"{node_path}.name: is required and must be a non-empty string")

    status = raw.get("status")
    if status is not None and status not in ALLOWED_STATUSES:
        errors.append(f"{node_path}.status: must be one of {ALLOWED_STATUSES}")

    prereqs = raw.get("prerequisites")
    if prereqs is not None and not _is_list_of_str(prereqs):
        errors.append(f"{node_path}.prerequisites: must be an array of strings")

    tier = raw.get("tier")
    if tier is not None and not (_is_int(tier) and tier > 0):
        errors.append(f"{node_path}.tier: must be a positive integer")

    dev_points = raw.get("devPoints")
    if dev_points is not None and not (_is_int(dev_points) and dev_points >= 0):
        errors.append(f"{node_path}.devPoints: must be a non-negative integer")

    tags = raw.get("tags")
    if tags is not None and not _is_list_of_str(tags):
        errors.append(f"{node_path}.tags: must be an array of strings")

    for key in _OPTIONAL_STR_FIELDS:
        v = raw.get(key)
        if v is not None and not isinstance(v, str):
            errors.append(f"{node_path}.{key}: must be a string")

    return errors


def _build_tree(tree: dict[str, Any]) -> TechTree:
    nodes: list[TechNode] = []
    for raw in tree["nodes"]:
        nodes.append(
            TechNode(
                id=raw["id"],
                name=raw["name"],
                status=NodeStatus(raw.get("status") or NodeStatus.PLANNED.value),
                prerequisites=list(raw.get("prerequisites") or []),
                tier=raw.get("tier"),
                dev_points=raw.get("devPoints"),
                description=raw.get("description"),
                repo=raw.get("repo"),
                blocked_reason=raw.get("blockedReason"),
                tags=list(raw.get("tags") or []),
                subtree=raw.get("subtree"),
            )
        )

    return TechTree(
        name=tree["name"],
        nodes=nodes,
        version=tree.get("version", "1.0.0"),
        description=tree.get("description"),
    )


def _find_duplicates(ids: list[str]) -> list[str]:
    seen: set[str] = set()
    duplicates: list[str] = []
    for nid in ids:
        if nid in seen and nid not in duplicates:
            duplicates.append(nid)
        seen.add(nid)
    return duplicates
