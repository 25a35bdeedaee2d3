from __future__ import annotations

from techtree.core.model import ComputedNode, ComputedTree, NodeStatus


def _completed_ids(tree: ComputedTree) -> set[str]:
    return {n.id for n in tree.nodes if n.status == NodeStatus.COMPLETED}


def can_start(tree: ComputedTree, node_id: str) -> bool:
    """True when every prerequisite of node_id is completed. Unknown ids are False."""
    node = tree.get(node_id)
    if node is None:
        return False
    completed = _completed_ids(tree)
    return all(p in completed for p in node.prerequisites)


def ready_nodes(tree: ComputedTree) -> list[ComputedNode]:
    """Next development targets: not started, with all prerequisites completed."""
    completed = _completed_ids(tree)
    return [
        n
        for n in tree.nodes
        if n.status not in (NodeStatus.COMPLETED, NodeStatus.IN_PROGRESS)
        and all(p in completed for p in n.prerequisites)
    ]


def ancestors(tree: ComputedTree, node_id: str) -> set[str]:
    """All transitive prerequisites of node_id."""
    edges = {n.id: n.prerequisites for n in tree.nodes}
    return _walk(edges, node_id)


def descendants(tree: ComputedTree, node_id: str) -> set[str]:
    """All nodes that transitively depend on node_id."""
    edges = {n.id: n.dependents for n in tree.nodes}
    return _walk(edges, node_id)


def _walk(edges: dict[str, list[str]], start: str) -> set[str]:
    seen: set[str] = set()
    todo: list[str] = list(edges.get(start, []))
    while todo:
        cur = todo.pop()
        if cur in seen:
            continue
        seen.add(cur)
        for nxt in edges.get(cur, []):
            if nxt not in seen:
                todo.append(nxt)
    return seen
