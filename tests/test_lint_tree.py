from techtree.core.io.load_tree import load_tree
from techtree.core.lint.lint_tree import lint_tree


def _codes(errors):
    return [e.code for e in errors]


def test_lint_clean_tree():
    assert lint_tree(load_tree("examples/basic-tree.yaml")) == []


def test_lint_cycle_reported_once():
    errors = lint_tree(load_tree("examples/cyclic-tree.yaml"))
    assert _codes(errors) == ["L_CYCLE_DETECTED"]
    assert "A -> B -> A" in errors[0].message


def test_lint_self_prerequisite():
    raw = {"name": "T", "nodes": [{"id": "a", "name": "A", "prerequisites": ["a"]}]}
    assert _codes(lint_tree(raw)) == ["L_SELF_PREREQUISITE"]


def test_lint_blocked_without_reason():
    raw = {
        "name": "T",
        "nodes": [
            {"id": "a", "name": "A", "status": "blocked"},
            {"id": "b", "name": "B", "status": "blocked", "blockedReason": "vendor"},
        ],
    }
    errors = lint_tree(raw)
    assert _codes(errors) == ["L_BLOCKED_MISSING_REASON"]
    assert errors[0].path == "nodes.0.blockedReason"


def test_lint_explicit_tier_too_low():
    raw = {
        "name": "T",
        "nodes": [
            {"id": "a", "name": "A", "tier": 3},
            {"id": "b", "name": "B", "tier": 3, "prerequisites": ["a"]},
            {"id": "c", "name": "C", "tier": 4, "prerequisites": ["a"]},
        ],
    }
    errors = lint_tree(raw)
    assert _codes(errors) == ["L_EXPLICIT_TIER_TOO_LOW"]
    assert errors[0].path == "nodes.1.tier"


def test_lint_tolerates_invalid_shapes():
    assert lint_tree({"name": "T"}) == []
    assert lint_tree({"name": "T", "nodes": ["junk", {"id": 3}]}) == []
