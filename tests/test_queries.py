from techtree.core.graph.compute_tree import compute_tree
from techtree.core.graph.queries import ancestors, can_start, descendants, ready_nodes
from techtree.core.io.load_tree import load_tree
from techtree.core.model import NodeStatus, TechNode, TechTree
from techtree.core.validate.validate_tree import validate_tree


def _basic():
    tree, _ = validate_tree(load_tree("examples/basic-tree.yaml"))
    assert tree is not None
    return compute_tree(tree)


def _chain():
    return compute_tree(
        TechTree(
            name="chain",
            nodes=[
                TechNode(id="A", name="A"),
                TechNode(id="B", name="B", prerequisites=["A"]),
                TechNode(id="C", name="C", prerequisites=["B"]),
            ],
        )
    )


def test_chain_ancestors_and_descendants():
    computed = _chain()
    assert ancestors(computed, "C") == {"A", "B"}
    assert descendants(computed, "A") == {"B", "C"}
    assert ancestors(computed, "A") == set()
    assert descendants(computed, "C") == set()


def test_ancestors_and_descendants_disjoint_on_dag():
    computed = _basic()
    for n in computed.nodes:
        up = ancestors(computed, n.id)
        down = descendants(computed, n.id)
        assert n.id not in up
        assert n.id not in down
        assert not (up & down)


def test_unknown_node_yields_empty_sets():
    computed = _basic()
    assert ancestors(computed, "nope") == set()
    assert descendants(computed, "nope") == set()


def test_traversal_terminates_on_cycle():
    tree, _ = validate_tree(load_tree("examples/cyclic-tree.yaml"))
    assert tree is not None
    computed = compute_tree(tree)
    assert ancestors(computed, "C") == {"A", "B"}
    assert descendants(computed, "B") == {"A", "B", "C"}


def test_can_start():
    computed = _basic()
    assert can_start(computed, "core") is True
    assert can_start(computed, "auth") is True
    assert can_start(computed, "api") is True
    assert can_start(computed, "ui") is False
    assert can_start(computed, "missing") is False


def test_ready_nodes_in_tree_order():
    computed = _basic()
    assert [n.id for n in ready_nodes(computed)] == ["auth", "docs"]


def test_ready_nodes_excludes_started_and_blocked_by_prerequisites():
    computed = _basic()
    ready = ready_nodes(computed)
    for n in ready:
        assert n.status not in (NodeStatus.COMPLETED, NodeStatus.IN_PROGRESS)
        for p in n.prerequisites:
            assert computed.get(p).status == NodeStatus.COMPLETED


def test_blocked_node_with_completed_prerequisites_is_ready():
    computed = compute_tree(
        TechTree(
            name="T",
            nodes=[
                TechNode(id="a", name="a", status=NodeStatus.COMPLETED),
                TechNode(id="b", name="b", status=NodeStatus.BLOCKED, prerequisites=["a"]),
            ],
        )
    )
    assert [n.id for n in ready_nodes(computed)] == ["b"]
