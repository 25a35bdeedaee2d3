from __future__ import annotations

from typing import Any, Optional

from techtree.core.errors import TreeValidationError


# Tree lint rules. These run on top of schema validation and flag trees that
# are valid but will render or compute badly:
# - L_SELF_PREREQUISITE: node lists itself as a prerequisite
# - L_CYCLE_DETECTED: prerequisite cycle exists (tiers degrade to 1)
# - L_BLOCKED_MISSING_REASON: blocked node without blockedReason
# - L_EXPLICIT_TIER_TOO_LOW: explicit tier does not sit above an explicit-tier prerequisite


def lint_tree(tree: dict[str, Any]) -> list[TreeValidationError]:
    """Lint a raw tree document.

    Lint is allowed to operate on partially-invalid inputs (best effort). The
    CLI prints lint + validation errors together.
    """

    file = _cast_optional_str(tree.get("__file__"))

    nodes = tree.get("nodes")
    if not isinstance(nodes, list):
        # Let validator handle shape.
        return []

    id_to_index: dict[str, int] = {}
    id_to_raw: dict[str, dict[str, Any]] = {}

    for i, raw in enumerate(nodes):
        if not isinstance(raw, dict):
            continue
        nid = raw.get("id")
        if not isinstance(nid, str):
            continue
        id_to_index.setdefault(nid, i)
        id_to_raw.setdefault(nid, raw)

    id_to_prereqs: dict[str, list[str]] = {}
    for nid, raw in id_to_raw.items():
        prereqs_raw = raw.get("prerequisites")
        prereqs: list[str] = []
        if isinstance(prereqs_raw, list):
            prereqs = [p for p in prereqs_raw if isinstance(p, str)]
        id_to_prereqs[nid] = prereqs

    errors: list[TreeValidationError] = []

    for nid, prereqs in id_to_prereqs.items():
        if nid in prereqs:
            errors.append(
                TreeValidationError(
                    code="L_SELF_PREREQUISITE",
                    message=f"node lists itself as a prerequisite: {nid}",
                    file=file,
                    path=f"nodes.{id_to_index[nid]}.prerequisites",
                )
            )

    for nid, msg in _detect_cycles(id_to_prereqs):
        errors.append(
            TreeValidationError(
                code="L_CYCLE_DETECTED",
                message=msg,
                file=file,
                path=f"nodes.{id_to_index.get(nid, 0)}.prerequisites",
            )
        )

    for nid, raw in id_to_raw.items():
        if raw.get("status") != "blocked":
            continue
        reason = raw.get("blockedReason")
        if not isinstance(reason, str) or not reason.strip():
            errors.append(
                TreeValidationError(
                    code="L_BLOCKED_MISSING_REASON",
                    message="blocked node must specify a non-empty blockedReason",
                    file=file,
                    path=f"nodes.{id_to_index[nid]}.blockedReason",
                )
            )

    for nid, raw in id_to_raw.items():
        tier = _explicit_tier(raw)
        if tier is None:
            continue
        for p in id_to_prereqs[nid]:
            p_tier = _explicit_tier(id_to_raw.get(p, {}))
            if p_tier is not None and tier <= p_tier:
                errors.append(
                    TreeValidationError(
                        code="L_EXPLICIT_TIER_TOO_LOW",
                        message=f"tier {tier} is not above prerequisite {p} (tier {p_tier})",
                        file=file,
                        path=f"nodes.{id_to_index[nid]}.tier",
                    )
                )

    return _sorted(errors)


def _explicit_tier(raw: dict[str, Any]) -> Optional[int]:
    tier = raw.get("tier")
    if isinstance(tier, int) and not isinstance(tier, bool):
        return tier
    return None


def _detect_cycles(id_to_prereqs: dict[str, list[str]]) -> list[tuple[str, str]]:
    WHITE, GRAY, BLACK = 0, 1, 2
    state: dict[str, int] = {nid: WHITE for nid in id_to_prereqs.keys()}
    emitted: set[frozenset[str]] = set()
    out: list[tuple[str, str]] = []

    # Iterative DFS; frames are (node_id, iterator over prerequisites).
    for start in list(state.keys()):
        if state[start] != WHITE:
            continue
        path: list[str] = [start]
        frames = [(start, iter(id_to_prereqs.get(start, [])))]
        state[start] = GRAY
        while frames:
            u, it = frames[-1]
            v = next(it, None)
            if v is None:
                frames.pop()
                path.pop()
                state[u] = BLACK
                continue
            if v not in state or v == u:
                continue
            if state[v] == GRAY:
                cycle = path[path.index(v):] + [v]
                key = frozenset(cycle)
                if key not in emitted:
                    emitted.add(key)
                    out.append((u, "prerequisite cycle detected: " + " -> ".join(cycle)))
            elif state[v] == WHITE:
                state[v] = GRAY
                path.append(v)
                frames.append((v, iter(id_to_prereqs.get(v, []))))

    return out


def _sorted(errors: list[TreeValidationError]) -> list[TreeValidationError]:
    return sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))


def _cast_optional_str(v: Any) -> Optional[str]:
    return v if isinstance(v, str) else None
