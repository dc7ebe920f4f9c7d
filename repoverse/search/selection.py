"""Search highlighting, hover paths and keyboard cursor navigation."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional

from PySide6.QtCore import QObject, Signal

from repoverse.core.logging import get_logger
from repoverse.graph.model import GraphEdge, GraphNode
from repoverse.graph.visibility import VisibilityFilter, VisibilityMode, VisibleGraph

logger = get_logger(__name__)

DEFAULT_RESULT_LIMIT = 8


class NavigationAction(Enum):
    """Keyboard actions understood by the selection model and the session."""

    NEXT = "next"
    PREVIOUS = "previous"
    ACTIVATE = "activate"
    CLEAR = "clear"
    TOGGLE_TREE = "toggle_tree"
    TOGGLE_PACK = "toggle_pack"


KEY_BINDINGS: Dict[str, NavigationAction] = {
    "j": NavigationAction.NEXT,
    "ArrowDown": NavigationAction.NEXT,
    "k": NavigationAction.PREVIOUS,
    "ArrowUp": NavigationAction.PREVIOUS,
    "Enter": NavigationAction.ACTIVATE,
    "Escape": NavigationAction.CLEAR,
    "t": NavigationAction.TOGGLE_TREE,
    "p": NavigationAction.TOGGLE_PACK,
}


def action_for_key(key: str) -> Optional[NavigationAction]:
    return KEY_BINDINGS.get(key)


@dataclass(frozen=True)
class HoverPath:
    """Nodes and edges between a hovered node and ``ROOT``."""

    node_ids: FrozenSet[str] = field(default_factory=frozenset)
    edges: FrozenSet[GraphEdge] = field(default_factory=frozenset)

    def __bool__(self) -> bool:
        return bool(self.node_ids)


def matching_nodes(
    nodes: Iterable[GraphNode],
    query: str = "",
    extension: Optional[str] = None,
) -> List[GraphNode]:
    """Nodes whose name or path contains ``query``, filtered by extension.

    Matching is case-insensitive and never includes ``ROOT``. With no query and
    no extension nothing matches.
    """

    needle = query.strip().lower()
    if not needle and not extension:
        return []

    matches: List[GraphNode] = []
    for node in nodes:
        if node.is_root:
            continue
        if needle and needle not in node.name.lower() and needle not in node.path.lower():
            continue
        if extension and node.extension != extension:
            continue
        matches.append(node)
    return matches


def hover_path(path_to_root: List[str]) -> HoverPath:
    """Build the in-path sets from an ordered ``node -> ROOT`` id list."""

    edges = {
        GraphEdge(source=parent, target=child)
        for child, parent in zip(path_to_root, path_to_root[1:])
    }
    return HoverPath(node_ids=frozenset(path_to_root), edges=frozenset(edges))


class SelectionModel(QObject):
    """Tracks search highlights, hover path, keyboard cursor and selection.

    Everything operates on the visible subgraph of the given
    :class:`VisibilityFilter` and is recomputed when it changes.

    Signals:
        highlight_changed: Frozenset of highlighted node ids
        hover_changed: The current :class:`HoverPath`
        cursor_changed: Cursor index, ``-1`` when nothing is focused
        node_selected: The selected :class:`GraphNode`, or ``None`` when cleared
    """

    highlight_changed = Signal(object)
    hover_changed = Signal(object)
    cursor_changed = Signal(int)
    node_selected = Signal(object)

    def __init__(
        self,
        visibility: VisibilityFilter,
        settings: Mapping | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._visibility = visibility
        self._result_limit = int((settings or {}).get("result_limit", DEFAULT_RESULT_LIMIT))
        self._query = ""
        self._extension: Optional[str] = None
        self._matches: List[GraphNode] = []
        self._highlighted: FrozenSet[str] = frozenset()
        self._hovered: Optional[str] = None
        self._hover_path = HoverPath()
        self._cursor = -1
        self._selected: Optional[GraphNode] = None
        self._visibility.visibility_changed.connect(self._on_visibility_changed)

    # --- Search ---

    @property
    def query(self) -> str:
        return self._query

    @property
    def extension(self) -> Optional[str]:
        return self._extension

    @property
    def highlighted(self) -> FrozenSet[str]:
        return self._highlighted

    def search(self, query: str, extension: Optional[str] = None) -> FrozenSet[str]:
        self._query = query or ""
        self._extension = extension or None
        self._update_highlight()
        return self._highlighted

    def set_extension_filter(self, extension: Optional[str]) -> None:
        self.search(self._query, extension)

    def clear_search(self) -> None:
        self.search("", None)

    def results(self, limit: Optional[int] = None) -> List[GraphNode]:
        """First matching visible nodes, in visible order."""

        limit = self._result_limit if limit is None else limit
        return self._matches[: max(0, limit)]

    def extensions(self) -> List[str]:
        """Distinct extensions among visible files, most common first."""

        counts: Dict[str, int] = {}
        for node in self._visibility.visible_nodes():
            if node.is_file and node.extension:
                counts[node.extension] = counts.get(node.extension, 0) + 1
        return sorted(counts, key=lambda ext: (-counts[ext], ext))

    def _update_highlight(self) -> None:
        self._matches = matching_nodes(self._visibility.visible_nodes(), self._query, self._extension)
        highlighted = frozenset(node.id for node in self._matches)
        if highlighted != self._highlighted:
            self._highlighted = highlighted
            logger.debug("Search %r/%s highlights %d nodes", self._query, self._extension, len(highlighted))
            self.highlight_changed.emit(highlighted)

    # --- Hover ---

    @property
    def hovered(self) -> Optional[str]:
        return self._hovered

    @property
    def hover_path(self) -> HoverPath:
        return self._hover_path

    def hover(self, node_id: Optional[str]) -> None:
        """Mark the path from ``node_id`` to ``ROOT``; ``None`` clears it."""

        if node_id is not None and not self._visibility.is_visible(node_id):
            node_id = None
        self._hovered = node_id
        if node_id is None:
            path = HoverPath()
        else:
            path = hover_path(self._visibility.model.get_path_to_root(node_id))
        if path != self._hover_path:
            self._hover_path = path
            self.hover_changed.emit(path)

    # --- Cursor ---

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def focused_node(self) -> Optional[GraphNode]:
        return self._visibility.node_at(self._cursor)

    def move_cursor(self, delta: int) -> int:
        """Move the cursor by ``delta`` positions, wrapping at both ends."""

        count = len(self._visibility.visible.nodes)
        if count == 0:
            self._set_cursor(-1)
            return self._cursor
        if self._cursor < 0:
            index = 0 if delta > 0 else count - 1
        else:
            index = (self._cursor + delta) % count
        self._set_cursor(index)
        return self._cursor

    def reset_cursor(self) -> None:
        self._set_cursor(-1)

    def _set_cursor(self, index: int) -> None:
        if index != self._cursor:
            self._cursor = index
            self.cursor_changed.emit(index)

    # --- Selection ---

    @property
    def selected(self) -> Optional[GraphNode]:
        return self._selected

    def select(self, node_id: str) -> Optional[GraphNode]:
        """Select a visible node, toggling a non-empty directory in tree mode."""

        if not self._visibility.is_visible(node_id):
            return None
        node = self._visibility.model.node(node_id)
        if node is None:
            return None
        self._selected = node
        self.node_selected.emit(node)
        if (
            self._visibility.mode is VisibilityMode.COLLAPSIBLE_TREE
            and node.is_directory
            and self._visibility.model.child_count(node.id) > 0
        ):
            self._visibility.toggle_expand(node.id)
        return node

    def clear_selection(self) -> None:
        if self._selected is not None:
            self._selected = None
            self.node_selected.emit(None)

    def handle_action(self, action: NavigationAction) -> bool:
        """Apply a navigation action; layout toggles are left to the caller."""

        if action is NavigationAction.NEXT:
            self.move_cursor(1)
        elif action is NavigationAction.PREVIOUS:
            self.move_cursor(-1)
        elif action is NavigationAction.ACTIVATE:
            focused = self.focused_node
            if focused is None:
                return False
            self.select(focused.id)
        elif action is NavigationAction.CLEAR:
            self.clear_selection()
            self.reset_cursor()
        else:
            return False
        return True

    # --- Visibility changes ---

    def _on_visibility_changed(self, visible: VisibleGraph) -> None:
        self._update_highlight()
        if self._hovered is not None and self._hovered not in visible.node_ids:
            self.hover(None)
        if self._selected is not None and self._selected.id not in visible.node_ids:
            self.clear_selection()
        if self._cursor >= len(visible.nodes):
            self._set_cursor(len(visible.nodes) - 1)
