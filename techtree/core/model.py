from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class NodeStatus(str, Enum):
    COMPLETED = "completed"
    IN_PROGRESS = "in-progress"
    PLANNED = "planned"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class TechNode:
    id: str
    name: str
    status: NodeStatus = NodeStatus.PLANNED
    prerequisites: list[str] = field(default_factory=list)

    tier: Optional[int] = None  # explicit tier, overrides the computed one
    dev_points: Optional[int] = None

    description: Optional[str] = None
    repo: Optional[str] = None
    blocked_reason: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    subtree: Optional[str] = None


@dataclass(frozen=True)
class TechTree:
    name: str
    nodes: list[TechNode]
    version: str = "1.0.0"
    description: Optional[str] = None


@dataclass(frozen=True)
class ComputedNode:
    node: TechNode
    computed_tier: int
    dependents: list[str]

    @property
    def id(self) -> str:
        return self.node.id

    @property
    def status(self) -> NodeStatus:
        return self.node.status

    @property
    def prerequisites(self) -> list[str]:
        return self.node.prerequisites


@dataclass(frozen=True)
class ComputedTree:
    tree: TechTree
    nodes: list[ComputedNode]
    tiers: dict[int, list[ComputedNode]]
    total_dev_points: int
    completed_dev_points: int
    warnings: list[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.tree.name

    def get(self, node_id: str) -> Optional[ComputedNode]:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None
