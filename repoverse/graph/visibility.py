"""Visibility state machine for large repository graphs.

Three modes decide which part of the tree is shown:
- Full: every node
- Folders only: ROOT plus every directory
- Collapsible tree: ROOT plus the direct children of expanded nodes

Collapsing a node removes it and all of its descendants from the expanded
set, while expanding only reveals one level. Re-expanding a node therefore
shows its children with their own subtrees collapsed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, List, Optional, Set

from PySide6.QtCore import QObject, Signal

from repoverse.core.logging import get_logger
from repoverse.graph.model import ROOT_ID, GraphEdge, GraphModel, GraphNode

logger = get_logger(__name__)


class VisibilityMode(Enum):
    """Which subset of the tree is visible."""

    FULL = "full"
    FOLDERS_ONLY = "folders_only"
    COLLAPSIBLE_TREE = "collapsible_tree"


@dataclass(frozen=True)
class VisibilityState:
    """Current mode plus the expanded ids used by the collapsible tree."""

    mode: VisibilityMode = VisibilityMode.FULL
    expanded: FrozenSet[str] = field(default_factory=lambda: frozenset({ROOT_ID}))


@dataclass(frozen=True)
class VisibleGraph:
    """Derived visible subgraph, nodes in model order."""

    nodes: tuple[GraphNode, ...] = ()
    edges: tuple[GraphEdge, ...] = ()

    @property
    def node_ids(self) -> FrozenSet[str]:
        return frozenset(node.id for node in self.nodes)


def toggle_expanded(state: VisibilityState, node_id: str, model: GraphModel) -> VisibilityState:
    """Pure transition for ``ToggleExpand``."""

    expanded: Set[str] = set(state.expanded)
    if node_id in expanded:
        expanded.discard(node_id)
        expanded.difference_update(model.descendants(node_id))
    else:
        expanded.add(node_id)
    expanded.add(ROOT_ID)
    return VisibilityState(mode=state.mode, expanded=frozenset(expanded))


def switch_mode(state: VisibilityState, mode: VisibilityMode) -> VisibilityState:
    """Pure transition for ``SwitchMode``."""

    if mode is VisibilityMode.COLLAPSIBLE_TREE:
        return VisibilityState(mode=mode, expanded=frozenset({ROOT_ID}))
    return VisibilityState(mode=mode, expanded=state.expanded)


def derive_visible(state: VisibilityState, model: GraphModel) -> VisibleGraph:
    """Compute the visible nodes and the edges between them."""

    nodes: List[GraphNode] = []
    for node in model.nodes():
        if node.is_root:
            nodes.append(node)
        elif state.mode is VisibilityMode.FULL:
            nodes.append(node)
        elif state.mode is VisibilityMode.FOLDERS_ONLY:
            if node.is_directory:
                nodes.append(node)
        elif node.parent_id in state.expanded:
            nodes.append(node)

    # Children of a visible parent are only reachable when the parent is
    # visible too, which keeps the subgraph connected.
    visible_ids = {node.id for node in nodes}
    if state.mode is VisibilityMode.COLLAPSIBLE_TREE:
        connected = {ROOT_ID}
        for node_id in model.subtree_order(list(visible_ids)):
            node = model.node(node_id)
            if node is not None and (node.is_root or node.parent_id in connected):
                connected.add(node_id)
        nodes = [node for node in nodes if node.id in connected]
        visible_ids = connected

    edges = [edge for edge in model.edges() if edge.source in visible_ids and edge.target in visible_ids]
    return VisibleGraph(nodes=tuple(nodes), edges=tuple(edges))


class VisibilityFilter(QObject):
    """Owns the visibility state and the derived visible subgraph.

    Signals:
        visibility_changed: Emitted with the new :class:`VisibleGraph`
        mode_changed: Emitted with the new :class:`VisibilityMode`
    """

    visibility_changed = Signal(object)
    mode_changed = Signal(object)

    def __init__(self, model: GraphModel | None = None, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._model = model or GraphModel()
        self._state = VisibilityState()
        self._visible = derive_visible(self._state, self._model)

    # --- Graph data ---

    @property
    def model(self) -> GraphModel:
        return self._model

    def set_model(self, model: GraphModel) -> None:
        """Replace the graph; expanded ids that no longer exist are dropped."""

        self._model = model
        expanded = frozenset(node_id for node_id in self._state.expanded if node_id in model) | {ROOT_ID}
        self._state = VisibilityState(mode=self._state.mode, expanded=expanded)
        self._refresh()

    # --- State ---

    @property
    def state(self) -> VisibilityState:
        return self._state

    @property
    def mode(self) -> VisibilityMode:
        return self._state.mode

    @property
    def expanded(self) -> FrozenSet[str]:
        return self._state.expanded

    def is_expanded(self, node_id: str) -> bool:
        return node_id in self._state.expanded

    # --- Transitions ---

    def toggle_expand(self, node_id: str) -> None:
        if node_id not in self._model:
            logger.debug("Ignoring expand toggle for unknown node %s", node_id)
            return
        self._state = toggle_expanded(self._state, node_id, self._model)
        self._refresh()

    def switch_mode(self, mode: VisibilityMode) -> None:
        previous = self._state.mode
        self._state = switch_mode(self._state, mode)
        logger.info("Visibility mode %s -> %s", previous.value, mode.value)
        self._refresh()
        self.mode_changed.emit(mode)

    # --- Derived output ---

    @property
    def visible(self) -> VisibleGraph:
        return self._visible

    def visible_nodes(self) -> List[GraphNode]:
        return list(self._visible.nodes)

    def visible_edges(self) -> List[GraphEdge]:
        return list(self._visible.edges)

    def visible_ids(self) -> FrozenSet[str]:
        return self._visible.node_ids

    def is_visible(self, node_id: str) -> bool:
        return node_id in self._visible.node_ids

    def node_at(self, index: int) -> Optional[GraphNode]:
        if 0 <= index < len(self._visible.nodes):
            return self._visible.nodes[index]
        return None

    def _refresh(self) -> None:
        previous = self._visible
        self._visible = derive_visible(self._state, self._model)
        if previous != self._visible:
            self.visibility_changed.emit(self._visible)
