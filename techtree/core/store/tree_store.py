from __future__ import annotations

import logging
import re
from dataclasses import replace
from pathlib import Path
from typing import Any, Optional

from techtree.core.errors import TreeStoreError, TreeValidationError
from techtree.core.graph.compute_tree import compute_tree
from techtree.core.io.load_tree import dump_tree_yaml, node_to_dict, parse_tree_text, read_tree_text, tree_to_dict
from techtree.core.model import ComputedTree, NodeStatus, TechNode, TechTree
from techtree.core.validate.validate_tree import validate_tree

logger = logging.getLogger(__name__)

DEFAULT_TREE = "system"


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


class TreeStore:
    """A directory of <name>.yaml tech trees.

    Every mutation is a whole-tree read-modify-write that re-validates before
    anything is written. A single writer per directory is assumed.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def list_trees(self) -> list[str]:
        if not self.directory.is_dir():
            raise TreeStoreError(
                code="E_STORE_DIR_NOT_FOUND",
                message="tree directory does not exist",
                file=str(self.directory),
            )
        return sorted(
            p.stem for p in self.directory.iterdir() if p.is_file() and p.suffix in {".yaml", ".yml"}
        )

    def exists(self, name: str) -> bool:
        return self._file_path(name).is_file()

    def load_raw(self, name: str) -> TechTree:
        p = self._file_path(name)
        if not p.is_file():
            raise TreeStoreError(code="E_TREE_NOT_FOUND", message=f"tree not found: {name}", file=str(p))

        raw = parse_tree_text(read_tree_text(p), file=str(p))
        raw["__file__"] = str(p)
        tree, error = validate_tree(raw)
        if error is not None:
            raise error
        assert tree is not None
        return tree

    def load(self, name: str) -> ComputedTree:
        return compute_tree(self.load_raw(name))

    def save(self, name: str, tree: TechTree) -> None:
        self._write(name, tree_to_dict(tree))

    def update_node(self, tree_name: str, node_id: str, updates: dict[str, Any]) -> ComputedTree:
        """Apply a partial field update to one node using persisted (camelCase) keys.

        The node id is not mutable: an "id" key in updates is ignored.
        """
        raw = tree_to_dict(self.load_raw(tree_name))

        target = _find_node(raw["nodes"], node_id)
        if target is None:
            raise TreeStoreError(
                code="E_NODE_NOT_FOUND",
                message=f"node not found: {node_id}",
                file=str(self._file_path(tree_name)),
            )

        for k, v in updates.items():
            if k == "id":
                continue
            if v is None:
                target.pop(k, None)
            else:
                target[k] = v

        tree = self._write(tree_name, raw)
        logger.info(f"Updated node '{node_id}' in tree '{tree_name}'")
        return compute_tree(tree)

    def add_node(self, tree_name: str, node: TechNode | dict[str, Any]) -> ComputedTree:
        raw = tree_to_dict(self.load_raw(tree_name))
        node_raw = node_to_dict(node) if isinstance(node, TechNode) else dict(node)

        if _find_node(raw["nodes"], node_raw.get("id")) is not None:
            raise TreeStoreError(
                code="E_NODE_EXISTS",
                message=f"node already exists: {node_raw.get('id')}",
                file=str(self._file_path(tree_name)),
            )

        raw["nodes"].append(node_raw)
        tree = self._write(tree_name, raw)
        logger.info(f"Added node '{node_raw.get('id')}' to tree '{tree_name}'")
        return compute_tree(tree)

    def create_from_yaml(self, name: str, yaml_text: str) -> ComputedTree:
        p = self._file_path(name)
        if self.exists(name):
            raise TreeStoreError(code="E_TREE_EXISTS", message=f"tree already exists: {name}", file=str(p))

        raw = parse_tree_text(yaml_text, file=str(p))
        tree, error = validate_tree(raw)
        if error is not None:
            raise error
        assert tree is not None

        # Keep the author's formatting; the text was validated as-is.
        self.directory.mkdir(parents=True, exist_ok=True)
        p.write_text(yaml_text, encoding="utf-8")
        logger.info(f"Created tree '{name}' at {p}")
        return compute_tree(tree)

    def create_subtree(
        self,
        yaml_text: str,
        attach_to: Optional[str] = None,
        parent: str = DEFAULT_TREE,
    ) -> tuple[ComputedTree, ComputedTree]:
        """Create a subtree file and link it from the parent tree.

        With attach_to, the existing parent node gets a subtree reference.
        Otherwise a new planned node named after the subtree is appended to the
        parent. Returns (subtree, parent tree), both computed.
        """
        raw = parse_tree_text(yaml_text)
        tree, error = validate_tree(raw)
        if error is not None:
            raise error
        assert tree is not None

        subtree_name = slugify(tree.name)
        if not subtree_name:
            raise TreeValidationError(
                code="E_SUBTREE_NAME",
                message=f"tree name does not produce a usable file name: {tree.name!r}",
                path="name",
            )
        if self.exists(subtree_name):
            raise TreeStoreError(
                code="E_TREE_EXISTS",
                message=f"subtree already exists: {subtree_name}",
                file=str(self._file_path(subtree_name)),
            )
        if not self.exists(parent):
            raise TreeStoreError(
                code="E_TREE_NOT_FOUND",
                message=f"tree not found: {parent}",
                file=str(self._file_path(parent)),
            )
        parent_ids = {n.id for n in self.load_raw(parent).nodes}
        if attach_to is not None and attach_to not in parent_ids:
            raise TreeStoreError(
                code="E_NODE_NOT_FOUND",
                message=f"node not found: {attach_to}",
                file=str(self._file_path(parent)),
            )
        if attach_to is None and subtree_name in parent_ids:
            raise TreeStoreError(
                code="E_NODE_EXISTS",
                message=f"node already exists: {subtree_name}",
                file=str(self._file_path(parent)),
            )

        subtree = self.create_from_yaml(subtree_name, yaml_text)

        if attach_to is not None:
            parent_tree = self.update_node(parent, attach_to, {"subtree": subtree_name})
        else:
            parent_tree = self.add_node(
                parent,
                TechNode(
                    id=subtree_name,
                    name=tree.name,
                    description=tree.description,
                    status=NodeStatus.PLANNED,
                    subtree=subtree_name,
                ),
            )
        return subtree, parent_tree

    def _file_path(self, name: str) -> Path:
        yml = self.directory / f"{name}.yml"
        yaml_path = self.directory / f"{name}.yaml"
        # New trees are written as .yaml; an existing .yml file is used in place.
        if not yaml_path.is_file() and yml.is_file():
            return yml
        return yaml_path

    def _write(self, name: str, raw: dict[str, Any]) -> TechTree:
        p = self._file_path(name)
        tree, error = validate_tree(raw)
        if error is not None:
            raise replace(error, file=str(p))
        assert tree is not None

        self.directory.mkdir(parents=True, exist_ok=True)
        dump_tree_yaml(tree, str(p))
        return tree


def _find_node(nodes: list[dict[str, Any]], node_id: Any) -> Optional[dict[str, Any]]:
    for n in nodes:
        if n.get("id") == node_id:
            return n
    return None
