"""Rooted file-tree model built from flat node and edge lists."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Set

from repoverse.core.logging import get_logger

logger = get_logger(__name__)

ROOT_ID = "ROOT"
DEFAULT_LEAF_WEIGHT_FLOOR = 100
DEFAULT_MAX_DEPTH = 256


class NodeKind(Enum):
    """Kinds of entries in a repository tree."""

    FILE = "file"
    DIRECTORY = "directory"


@dataclass
class GraphNode:
    """A file or directory in the repository tree."""

    id: str
    name: str
    kind: NodeKind
    path: str
    size: Optional[int] = None
    extension: Optional[str] = None
    parent_id: Optional[str] = None

    @property
    def is_root(self) -> bool:
        return self.id == ROOT_ID

    @property
    def is_file(self) -> bool:
        return self.kind is NodeKind.FILE

    @property
    def is_directory(self) -> bool:
        return self.kind is NodeKind.DIRECTORY


@dataclass(frozen=True)
class GraphEdge:
    """Parent to child link."""

    source: str
    target: str


@dataclass
class RepoTree:
    """Pre-fetched tree payload handed to the core."""

    nodes: List[GraphNode] = field(default_factory=list)
    links: List[GraphEdge] = field(default_factory=list)


@dataclass
class CommitFileChange:
    filename: str
    status: str
    additions: int = 0
    deletions: int = 0


@dataclass
class CommitAuthor:
    name: str
    email: str = ""
    avatar: str = ""


@dataclass
class Commit:
    sha: str
    message: str
    timestamp: str
    author: CommitAuthor
    files: List[CommitFileChange] = field(default_factory=list)


def node_radius(node: GraphNode) -> float:
    """Visual radius used by the force layout for collision and drawing."""

    if node.is_root:
        return 18.0
    if node.is_directory:
        return 10.0
    if node.size:
        log_size = math.log10(node.size + 1)
        return min(12.0, max(3.0, log_size * 2))
    return 4.0


class GraphModel:
    """Tree of repository entries rooted at the synthetic ``ROOT`` node.

    Nodes whose parent is missing are attached directly to ``ROOT``. Parent
    walks are bounded by a depth cap and a visited set, so malformed input with
    cycles is truncated rather than looping forever.
    """

    def __init__(
        self,
        leaf_weight_floor: int = DEFAULT_LEAF_WEIGHT_FLOOR,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self.leaf_weight_floor = leaf_weight_floor
        self.max_depth = max_depth
        self._nodes: Dict[str, GraphNode] = {}
        self._order: List[str] = []
        self._children: Dict[str, List[str]] = {}
        self._edges: List[GraphEdge] = []
        self._weights: Dict[str, int] = {}

    # --- Construction ---------------------------------------------------

    @classmethod
    def from_tree(cls, tree: RepoTree, **kwargs) -> "GraphModel":
        model = cls(**kwargs)
        model.build_hierarchy(tree.nodes, tree.links)
        return model

    def build_hierarchy(self, nodes: Iterable[GraphNode], edges: Iterable[GraphEdge] = ()) -> None:
        """Attach every node to its parent and compute aggregate weights.

        The tree is rebuilt wholesale; edges are derived from parent links so an
        edge exists exactly when a ``parent_id`` links two known nodes.
        """

        self._nodes.clear()
        self._order.clear()
        self._children.clear()
        self._edges.clear()
        self._weights.clear()

        for node in nodes:
            if node.id in self._nodes:
                logger.warning("Duplicate node id %s ignored", node.id)
                continue
            self._nodes[node.id] = node
            self._order.append(node.id)

        if ROOT_ID not in self._nodes:
            root = GraphNode(id=ROOT_ID, name=ROOT_ID, kind=NodeKind.DIRECTORY, path="")
            self._nodes[ROOT_ID] = root
            self._order.insert(0, ROOT_ID)
        self._nodes[ROOT_ID].parent_id = None

        # Edges in the payload only fill in parents the nodes did not declare.
        for edge in edges:
            child = self._nodes.get(edge.target)
            if child is not None and not child.parent_id and edge.source in self._nodes and not child.is_root:
                child.parent_id = edge.source

        for node_id in self._order:
            node = self._nodes[node_id]
            if node.is_root:
                continue
            if not node.parent_id or node.parent_id not in self._nodes or node.parent_id == node.id:
                if node.parent_id and node.parent_id != ROOT_ID:
                    logger.debug("Parent %s of %s missing; attaching to ROOT", node.parent_id, node.id)
                node.parent_id = ROOT_ID

        self._break_cycles()

        for node_id in self._order:
            node = self._nodes[node_id]
            if node.parent_id is None:
                continue
            self._children.setdefault(node.parent_id, []).append(node_id)
            self._edges.append(GraphEdge(node.parent_id, node_id))

        self._compute_weights()
        logger.info("Built hierarchy with %d nodes and %d edges", len(self._nodes), len(self._edges))

    def _break_cycles(self) -> None:
        """Reattach nodes whose parent chain never reaches ROOT."""

        reaches_root: Set[str] = {ROOT_ID}
        for node_id in self._order:
            chain: List[str] = []
            seen: Set[str] = set()
            current: Optional[str] = node_id
            while current is not None and current not in reaches_root:
                if current in seen or len(chain) > self.max_depth:
                    logger.warning("Parent cycle detected at %s; attaching to ROOT", current)
                    self._nodes[current].parent_id = ROOT_ID
                    break
                seen.add(current)
                chain.append(current)
                current = self._nodes[current].parent_id
            reaches_root.update(chain)

    def _compute_weights(self) -> None:
        def _leaf_weight(node: GraphNode) -> int:
            return max(node.size or self.leaf_weight_floor, self.leaf_weight_floor)

        # Children always appear after their parent in a pre-order walk.
        for node_id in reversed(self._preorder()):
            node = self._nodes[node_id]
            children = self._children.get(node_id, [])
            if not children:
                self._weights[node_id] = _leaf_weight(node)
            else:
                self._weights[node_id] = sum(self._weights[child] for child in children)

    def _preorder(self) -> List[str]:
        order: List[str] = []
        stack = [ROOT_ID]
        while stack:
            current = stack.pop()
            order.append(current)
            stack.extend(reversed(self._children.get(current, [])))
        return order

    # --- Queries --------------------------------------------------------

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    @property
    def root(self) -> GraphNode:
        return self._nodes[ROOT_ID]

    def node(self, node_id: str) -> Optional[GraphNode]:
        return self._nodes.get(node_id)

    def nodes(self) -> List[GraphNode]:
        """All nodes in input order (ROOT first when synthesized)."""

        return [self._nodes[node_id] for node_id in self._order]

    def edges(self) -> List[GraphEdge]:
        return list(self._edges)

    def files(self) -> List[GraphNode]:
        return [node for node in self.nodes() if node.is_file]

    def directories(self) -> List[GraphNode]:
        return [node for node in self.nodes() if node.is_directory]

    def get_children(self, node_id: str) -> List[GraphNode]:
        return [self._nodes[child] for child in self._children.get(node_id, [])]

    def child_count(self, node_id: str) -> int:
        return len(self._children.get(node_id, []))

    def descendants(self, node_id: str) -> Set[str]:
        """Transitive children of ``node_id`` (excluding the node itself)."""

        result: Set[str] = set()
        stack = list(self._children.get(node_id, []))
        while stack:
            current = stack.pop()
            if current in result:
                continue
            result.add(current)
            stack.extend(self._children.get(current, []))
        return result

    def get_path_to_root(self, node_id: str) -> List[str]:
        """Ids from ``node_id`` up to and including ``ROOT``.

        Unknown ids yield just ``[ROOT]``. A missing parent is treated as a
        direct child of ``ROOT``.
        """

        path: List[str] = []
        seen: Set[str] = set()
        current = self._nodes.get(node_id)
        while current is not None and current.id not in seen and len(path) <= self.max_depth:
            seen.add(current.id)
            path.append(current.id)
            if current.is_root or not current.parent_id:
                break
            current = self._nodes.get(current.parent_id)
        if not path or path[-1] != ROOT_ID:
            path.append(ROOT_ID)
        return path

    def depth(self, node_id: str) -> int:
        if node_id not in self._nodes:
            return 0
        return len(self.get_path_to_root(node_id)) - 1

    def weight(self, node_id: str) -> int:
        return self._weights.get(node_id, 0)

    def find_by_path(self, path: str) -> Optional[GraphNode]:
        normalized = path.strip("/")
        for node in self._nodes.values():
            if node.path.strip("/") == normalized:
                return node
        return None

    def subtree_order(self, node_ids: Optional[Sequence[str]] = None) -> List[str]:
        """Pre-order ids, optionally restricted to ``node_ids``."""

        order = self._preorder()
        if node_ids is None:
            return order
        allowed = set(node_ids)
        return [node_id for node_id in order if node_id in allowed]
