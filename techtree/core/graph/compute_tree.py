from __future__ import annotations

import logging
from typing import Optional

from techtree.core.model import ComputedNode, ComputedTree, NodeStatus, TechNode, TechTree

logger = logging.getLogger(__name__)


def compute_tree(tree: TechTree) -> ComputedTree:
    """Compute tiers, dependents and dev point totals for a validated tree."""

    nodes_by_id: dict[str, TechNode] = {}
    dependents: dict[str, list[str]] = {}
    for node in tree.nodes:
        nodes_by_id.setdefault(node.id, node)
        dependents.setdefault(node.id, [])

    for node in tree.nodes:
        for prereq in node.prerequisites:
            deps = dependents.get(prereq)
            if deps is not None and node.id not in deps:
                deps.append(node.id)

    tiers, warnings = _calculate_tiers(tree.nodes, nodes_by_id)

    computed: list[ComputedNode] = [
        ComputedNode(
            node=node,
            computed_tier=node.tier if node.tier is not None else tiers.get(node.id, 1),
            dependents=list(dependents[node.id]),
        )
        for node in tree.nodes
    ]

    groups: dict[int, list[ComputedNode]] = {}
    for cn in computed:
        groups.setdefault(cn.computed_tier, []).append(cn)

    total = 0
    completed = 0
    for node in tree.nodes:
        points = node.dev_points or 0
        total += points
        if node.status == NodeStatus.COMPLETED:
            completed += points

    return ComputedTree(
        tree=tree,
        nodes=computed,
        tiers={t: groups[t] for t in sorted(groups)},
        total_dev_points=total,
        completed_dev_points=completed,
        warnings=warnings,
    )


def _calculate_tiers(
    nodes: list[TechNode], nodes_by_id: dict[str, TechNode]
) -> tuple[dict[str, int], list[str]]:
    """Tier = 1 + max(tier of prerequisites); 1 without prerequisites.

    Depth-first with an explicit stack so long prerequisite chains do not hit
    the recursion limit. Each frame is [node_id, next_prereq_index, max_tier].
    Every node on a detected cycle is pinned to tier 1.
    """

    tiers: dict[str, int] = {}
    visiting: set[str] = set()
    pinned: set[str] = set()
    warnings: list[str] = []
    stack: list[list] = []

    def settled(nid: str) -> Optional[int]:
        if nid in tiers:
            return tiers[nid]

        node = nodes_by_id.get(nid)
        if node is None:
            return 1

        if node.tier is not None:
            tiers[nid] = node.tier
            return node.tier

        if nid in visiting:
            msg = f"Cycle detected involving node: {nid}"
            logger.warning(msg)
            warnings.append(msg)
            start = next(i for i, frame in enumerate(stack) if frame[0] == nid)
            pinned.update(frame[0] for frame in stack[start:])
            return 1

        if not node.prerequisites:
            tiers[nid] = 1
            return 1

        return None

    for node in nodes:
        if settled(node.id) is not None:
            continue

        visiting.add(node.id)
        stack.append([node.id, 0, 0])

        while stack:
            frame = stack[-1]
            nid, idx, best = frame
            prereqs = nodes_by_id[nid].prerequisites

            if idx < len(prereqs):
                frame[1] = idx + 1
                pid = prereqs[idx]
                t = settled(pid)
                if t is None:
                    visiting.add(pid)
                    stack.append([pid, 0, 0])
                else:
                    frame[2] = max(best, t)
                continue

            stack.pop()
            visiting.discard(nid)
            tier = 1 if nid in pinned else best + 1
            tiers[nid] = tier
            logger.debug(f"Resolved tier {tier} for node '{nid}'")
            if stack:
                stack[-1][2] = max(stack[-1][2], tier)

    return tiers, warnings
