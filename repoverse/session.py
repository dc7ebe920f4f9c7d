"""Facade wiring the graph, layout, animation and selection components.

Data flows one way: tree data builds a :class:`GraphModel`, the
:class:`VisibilityFilter` derives the visible subgraph, the active layout
engine writes the shared :class:`PositionStore`, and the commit animator and
selection model read from it. The host drives time through :meth:`tick` and
pulls a :class:`RenderSnapshot` whenever it draws.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple, Union

from PySide6.QtCore import QObject, Signal

from repoverse.animation.commit_animator import AuthorMarker, CommitAnimator, ImpactPulse, Projectile
from repoverse.animation.playback import PlaybackController
from repoverse.core.config import ConfigManager
from repoverse.core.logging import get_logger
from repoverse.core.scheduler import Scheduler
from repoverse.graph.ingest import DEFAULT_MAX_NODES, parse_commit_history, parse_repo_tree, tree_from_listing
from repoverse.graph.model import Commit, GraphEdge, GraphModel, GraphNode, RepoTree
from repoverse.graph.visibility import VisibilityFilter, VisibilityMode, VisibleGraph
from repoverse.layout import LayoutMode
from repoverse.layout.force import ForceLayoutEngine
from repoverse.layout.pack import PackLayoutEngine
from repoverse.layout.store import Position, PositionStore
from repoverse.layout.viewport import FORCE_INITIAL_SCALE, PACK_INITIAL_SCALE, Viewport
from repoverse.search.selection import NavigationAction, SelectionModel, action_for_key

logger = get_logger(__name__)

_INITIAL_SCALES = {
    LayoutMode.FORCE: FORCE_INITIAL_SCALE,
    LayoutMode.PACK: PACK_INITIAL_SCALE,
}


@dataclass(frozen=True)
class RenderSnapshot:
    """Everything an external renderer needs for one frame."""

    layout_mode: LayoutMode
    visibility_mode: VisibilityMode
    viewport: Viewport
    positions: Dict[str, Position] = field(default_factory=dict)
    nodes: Tuple[GraphNode, ...] = ()
    edges: Tuple[GraphEdge, ...] = ()
    highlighted: FrozenSet[str] = frozenset()
    hover_nodes: FrozenSet[str] = frozenset()
    hover_edges: FrozenSet[GraphEdge] = frozenset()
    cursor: int = -1
    labels: FrozenSet[str] = frozenset()
    projectiles: Tuple[Projectile, ...] = ()
    pulses: Tuple[ImpactPulse, ...] = ()
    author_marker: Optional[AuthorMarker] = None
    active_files: FrozenSet[str] = frozenset()


class VisualizerSession(QObject):
    """Owns one repository view and routes host input to the core.

    Signals:
        node_selected: The selected :class:`GraphNode` (``None`` when cleared)
        files_active: Frozenset of files alive at the current commit
        commit_changed: ``(Commit, index)`` on every commit index change
        layout_mode_changed: The new :class:`LayoutMode`
        visibility_changed: The new :class:`VisibleGraph`
    """

    node_selected = Signal(object)
    files_active = Signal(object)
    commit_changed = Signal(object, int)
    layout_mode_changed = Signal(object)
    visibility_changed = Signal(object)

    def __init__(
        self,
        config: ConfigManager | None = None,
        scheduler: Scheduler | None = None,
        seed: int | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self.config = config or ConfigManager()
        self.scheduler = scheduler or Scheduler()

        graph_settings = self.config.section("graph")
        self._leaf_weight_floor = int(graph_settings.get("leaf_weight_floor", 100))
        self._max_depth = int(graph_settings.get("max_depth", 256))
        self._max_nodes = int(graph_settings.get("max_nodes", DEFAULT_MAX_NODES))
        visibility_settings = self.config.section("visibility")
        self._large_graph_nodes = int(visibility_settings.get("large_graph_nodes", 600))
        self._narrow_width = float(visibility_settings.get("narrow_viewport_width", 640))

        self.store = PositionStore(self)
        self.model = GraphModel(self._leaf_weight_floor, self._max_depth)
        self.visibility = VisibilityFilter(self.model, self)
        self.force = ForceLayoutEngine(self.store, self.config.section("force"), seed=seed, parent=self)
        self.pack = PackLayoutEngine(self.store, self.config.section("pack"))
        self.animator = CommitAnimator(self.scheduler, self.store, self.config.section("animation"), self)
        self.playback = PlaybackController(self.scheduler, self.animator, self.config.section("playback"), self)
        self.selection = SelectionModel(self.visibility, self.config.section("search"), self)

        self._layout_mode = LayoutMode.FORCE
        self._viewport = Viewport.centered(800, 600, FORCE_INITIAL_SCALE)
        self._auto_tree_applied = False
        self._suspend_relayout = False
        self.animator.set_viewport(self._viewport)

        self.visibility.visibility_changed.connect(self._on_visibility_changed)
        self.selection.node_selected.connect(self.node_selected.emit)
        self.animator.files_active.connect(self.files_active.emit)
        self.animator.commit_changed.connect(self.commit_changed.emit)

    # --- Data ---

    def load_tree(self, tree: Union[RepoTree, Mapping[str, Any]]) -> GraphModel:
        """Rebuild the model from new tree data and lay it out."""

        if not isinstance(tree, RepoTree):
            tree = parse_repo_tree(tree)

        self.animator.cancel_all()
        self._deactivate_engines()
        self.store.clear()

        self.model = GraphModel.from_tree(
            tree, leaf_weight_floor=self._leaf_weight_floor, max_depth=self._max_depth
        )
        logger.info("Loaded repository tree with %d nodes", len(self.model))

        self._suspend_relayout = True
        try:
            self.visibility.set_model(self.model)
            self._maybe_enter_tree_mode()
        finally:
            self._suspend_relayout = False
        self._relayout()
        self.visibility_changed.emit(self.visibility.visible)
        return self.model

    def load_listing(self, items: Iterable[Mapping[str, Any]], repo_name: str) -> GraphModel:
        """Load a flat path listing, truncated to the configured node budget."""

        return self.load_tree(tree_from_listing(items, repo_name, max_nodes=self._max_nodes))

    def load_commits(self, commits: Union[Iterable[Commit], Mapping[str, Any]]) -> None:
        if isinstance(commits, Mapping):
            commits = parse_commit_history(commits)
        else:
            commits = list(commits)
            if commits and not isinstance(commits[0], Commit):
                commits = parse_commit_history(commits)
        self.playback.stop()
        self.animator.set_commits(commits)

    # --- Modes ---

    @property
    def layout_mode(self) -> LayoutMode:
        return self._layout_mode

    def set_layout_mode(self, mode: LayoutMode) -> None:
        if mode is self._layout_mode:
            return
        logger.info("Layout mode %s -> %s", self._layout_mode.value, mode.value)
        self._layout_mode = mode
        self._set_viewport(self._viewport.with_scale(_INITIAL_SCALES[mode]))
        self._relayout()
        self.layout_mode_changed.emit(mode)

    @property
    def visibility_mode(self) -> VisibilityMode:
        return self.visibility.mode

    def set_visibility_mode(self, mode: VisibilityMode) -> None:
        if mode is self.visibility.mode:
            return
        self.visibility.switch_mode(mode)

    def toggle_expand(self, node_id: str) -> None:
        self.visibility.toggle_expand(node_id)

    def _maybe_enter_tree_mode(self) -> None:
        """Switch large graphs on narrow viewports to the collapsible tree once."""

        if self._auto_tree_applied:
            return
        if len(self.model) <= self._large_graph_nodes or self._viewport.width >= self._narrow_width:
            return
        self._auto_tree_applied = True
        if self.visibility.mode is not VisibilityMode.COLLAPSIBLE_TREE:
            logger.info(
                "Large graph (%d nodes) on a %dpx viewport, switching to collapsible tree",
                len(self.model),
                self._viewport.width,
            )
            self.visibility.switch_mode(VisibilityMode.COLLAPSIBLE_TREE)

    # --- Viewport ---

    @property
    def viewport(self) -> Viewport:
        return self._viewport

    def resize(self, width: float, height: float) -> None:
        self._set_viewport(self._viewport.resized(width, height))
        self._maybe_enter_tree_mode()
        if self._layout_mode is LayoutMode.PACK:
            self._relayout()

    def focus_node(self, node_id: str) -> Optional[Viewport]:
        """Center the viewport on a node with a known position."""

        position = self.store.get(node_id)
        if position is None:
            return None
        self._set_viewport(self._viewport.focus_on(position.x, position.y))
        return self._viewport

    def reset_zoom(self) -> None:
        self._set_viewport(self._viewport.with_scale(_INITIAL_SCALES[self._layout_mode]))

    def _set_viewport(self, viewport: Viewport) -> None:
        self._viewport = viewport
        self.animator.set_viewport(viewport)

    # --- Host input ---

    def tick(self, dt_ms: float) -> int:
        return self.scheduler.tick(dt_ms)

    def start_drag(self, node_id: str) -> bool:
        if self._layout_mode is not LayoutMode.FORCE or not self.visibility.is_visible(node_id):
            return False
        self.force.start_drag(node_id)
        return True

    def drag_to(self, node_id: str, x: float, y: float) -> None:
        if self._layout_mode is LayoutMode.FORCE:
            self.force.drag_to(node_id, x, y)

    def end_drag(self, node_id: str) -> None:
        if self._layout_mode is LayoutMode.FORCE:
            self.force.end_drag(node_id)

    def hover(self, node_id: Optional[str]) -> None:
        self.selection.hover(node_id)

    def click(self, node_id: str) -> Optional[GraphNode]:
        return self.selection.select(node_id)

    def search(self, query: str, extension: Optional[str] = None) -> FrozenSet[str]:
        return self.selection.search(query, extension)

    def handle_action(self, action: Union[NavigationAction, str]) -> bool:
        """Apply a navigation action or a raw key name."""

        if isinstance(action, str):
            resolved = action_for_key(action)
            if resolved is None:
                return False
            action = resolved

        if action is NavigationAction.TOGGLE_PACK:
            self.set_layout_mode(LayoutMode.FORCE if self._layout_mode is LayoutMode.PACK else LayoutMode.PACK)
            return True
        if action is NavigationAction.TOGGLE_TREE:
            if self._layout_mode is not LayoutMode.FORCE:
                return False
            if self.visibility.mode is VisibilityMode.COLLAPSIBLE_TREE:
                self.set_visibility_mode(VisibilityMode.FULL)
            else:
                self.set_visibility_mode(VisibilityMode.COLLAPSIBLE_TREE)
            return True
        return self.selection.handle_action(action)

    def set_commit_index(self, index: int) -> None:
        self.animator.set_commit_index(index)

    # --- Layout ---

    def _on_visibility_changed(self, visible: VisibleGraph) -> None:
        if self._suspend_relayout:
            return
        self._relayout()
        self.visibility_changed.emit(visible)

    def _relayout(self) -> None:
        visible = self.visibility.visible
        self.animator.set_visible_nodes(visible.nodes)
        if self._layout_mode is LayoutMode.FORCE:
            self.pack.deactivate()
            self.force.stop()
            self.force.load(list(visible.nodes), visible.edges)
            self.force.start(self.scheduler)
        else:
            self.force.deactivate()
            self.pack.apply(
                self.model,
                [node.id for node in visible.nodes],
                self._viewport.width,
                self._viewport.height,
            )

    def _deactivate_engines(self) -> None:
        self.force.deactivate()
        self.pack.deactivate()

    def shutdown(self) -> None:
        """Stop every timer so nothing fires against a discarded session."""

        self.playback.stop()
        self.animator.cancel_all()
        self._deactivate_engines()

    # --- Output ---

    def snapshot(self) -> RenderSnapshot:
        visible = self.visibility.visible
        hover = self.selection.hover_path
        if self._layout_mode is LayoutMode.PACK:
            labels = frozenset(
                node_id for node_id, circle in self.pack.circles.items() if circle.label_visible
            )
        else:
            labels = frozenset()
        return RenderSnapshot(
            layout_mode=self._layout_mode,
            visibility_mode=self.visibility.mode,
            viewport=self._viewport,
            positions=self.store.snapshot(node.id for node in visible.nodes),
            nodes=visible.nodes,
            edges=visible.edges,
            highlighted=self.selection.highlighted,
            hover_nodes=hover.node_ids,
            hover_edges=hover.edges,
            cursor=self.selection.cursor,
            labels=labels,
            projectiles=tuple(self.animator.active_projectiles()),
            pulses=tuple(self.animator.active_pulses()),
            author_marker=self.animator.author_marker,
            active_files=self.animator.active_files(),
        )
