"""Force-directed layout for the visible repository subgraph.

The simulation keeps per-node state in flat arrays indexed by position in the
node list (x, y, vx, vy and optional pinned fx/fy). Each tick cools ``alpha``
toward ``alpha_target`` and applies, in order:

- link: springs along parent/child edges toward a target distance
- charge: pairwise repulsion limited to ``charge_distance_max``
- center: shifts the mean position back to the origin
- collision: keeps circles of radius ``node_radius + padding`` apart
- x / y: weak pull of every node toward the origin

Charge and collision only look at neighbouring cells of a uniform grid, which
bounds per-tick cost on dense graphs. The simulation is considered settled
once ``alpha`` drops below ``alpha_min``.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from PySide6.QtCore import QObject, Signal

from repoverse.core.logging import get_logger
from repoverse.core.scheduler import Scheduler, TimerHandle
from repoverse.graph.model import ROOT_ID, GraphEdge, GraphNode, node_radius
from repoverse.layout.store import Position, PositionStore

logger = get_logger(__name__)

INITIAL_RADIUS = 10.0
INITIAL_ANGLE = math.pi * (3 - math.sqrt(5))

_TIER_DEFAULTS: Dict[str, Dict[str, float]] = {
    "small": {
        "link_distance": 35.0,
        "link_strength": 0.5,
        "charge_strength": -90.0,
        "charge_distance_max": 180.0,
        "centering_strength": 0.03,
        "collision_padding": 5.0,
    },
    "medium": {
        "link_distance": 32.0,
        "link_strength": 0.55,
        "charge_strength": -85.0,
        "charge_distance_max": 160.0,
        "centering_strength": 0.05,
        "collision_padding": 5.0,
    },
    "large": {
        "link_distance": 30.0,
        "link_strength": 0.6,
        "charge_strength": -80.0,
        "charge_distance_max": 150.0,
        "centering_strength": 0.08,
        "collision_padding": 3.0,
    },
}


@dataclass
class ForceConfig:
    """Force parameters for one simulation run."""

    link_distance: float = 35.0
    link_strength: float = 0.5
    charge_strength: float = -90.0
    charge_distance_max: float = 180.0
    charge_distance_min: float = 1.0
    centering_strength: float = 0.03
    collision_padding: float = 5.0
    alpha_min: float = 0.001
    velocity_decay: float = 0.4
    drag_alpha_target: float = 0.3
    pin_root: bool = True

    @property
    def alpha_decay(self) -> float:
        return 1 - self.alpha_min ** (1 / 300)

    @classmethod
    def for_node_count(cls, count: int, settings: Mapping | None = None) -> "ForceConfig":
        """Pick the parameter tier for ``count`` visible nodes.

        Graphs past the medium and large thresholds get shorter, stiffer links,
        weaker repulsion and a stronger pull to the origin.
        """

        settings = settings or {}
        medium = int(settings.get("medium_threshold", 200))
        large = int(settings.get("large_threshold", 500))
        tier = "large" if count > large else "medium" if count > medium else "small"

        values = dict(_TIER_DEFAULTS[tier])
        tiers = settings.get("tiers") or {}
        if isinstance(tiers.get(tier), Mapping):
            values.update({key: float(value) for key, value in tiers[tier].items() if key in values})

        return cls(
            alpha_min=float(settings.get("alpha_min", 0.001)),
            velocity_decay=float(settings.get("velocity_decay", 0.4)),
            drag_alpha_target=float(settings.get("drag_alpha_target", 0.3)),
            **values,
        )


@dataclass
class SimulationState:
    """Struct-of-arrays simulation state for the visible nodes."""

    ids: List[str] = field(default_factory=list)
    x: List[float] = field(default_factory=list)
    y: List[float] = field(default_factory=list)
    vx: List[float] = field(default_factory=list)
    vy: List[float] = field(default_factory=list)
    fx: List[Optional[float]] = field(default_factory=list)
    fy: List[Optional[float]] = field(default_factory=list)
    radii: List[float] = field(default_factory=list)
    links: List[Tuple[int, int]] = field(default_factory=list)
    alpha: float = 1.0
    alpha_target: float = 0.0
    ticks: int = 0

    def __post_init__(self) -> None:
        self.index: Dict[str, int] = {node_id: i for i, node_id in enumerate(self.ids)}

    def __len__(self) -> int:
        return len(self.ids)

    def positions(self) -> Dict[str, Position]:
        return {node_id: Position(self.x[i], self.y[i]) for i, node_id in enumerate(self.ids)}


def initial_state(
    nodes: Sequence[GraphNode],
    edges: Iterable[GraphEdge],
    previous: Mapping[str, Position] | None = None,
    pin_root: bool = True,
) -> SimulationState:
    """Seed positions from ``previous`` where known.

    New nodes start on a phyllotaxis spiral around their parent's known
    position, or around the origin when the parent is unknown too.
    """

    previous = previous or {}
    ids = [node.id for node in nodes]
    state = SimulationState(
        ids=ids,
        x=[0.0] * len(ids),
        y=[0.0] * len(ids),
        vx=[0.0] * len(ids),
        vy=[0.0] * len(ids),
        fx=[None] * len(ids),
        fy=[None] * len(ids),
        radii=[node_radius(node) for node in nodes],
    )

    for i, node in enumerate(nodes):
        known = previous.get(node.id)
        if known is not None and known.is_finite:
            state.x[i], state.y[i] = known.x, known.y
            continue
        anchor = previous.get(node.parent_id or "")
        cx, cy = (anchor.x, anchor.y) if anchor is not None and anchor.is_finite else (0.0, 0.0)
        radius = INITIAL_RADIUS * math.sqrt(0.5 + i)
        angle = i * INITIAL_ANGLE
        state.x[i] = cx + radius * math.cos(angle)
        state.y[i] = cy + radius * math.sin(angle)

    if pin_root and ROOT_ID in state.index:
        root = state.index[ROOT_ID]
        state.fx[root] = state.fy[root] = 0.0
        state.x[root] = state.y[root] = 0.0

    for edge in edges:
        source = state.index.get(edge.source)
        target = state.index.get(edge.target)
        if source is not None and target is not None and source != target:
            state.links.append((source, target))
    return state


def _jiggle(rng: random.Random) -> float:
    return (rng.random() - 0.5) * 1e-6


def _grid(xs: Sequence[float], ys: Sequence[float], cell: float) -> Dict[Tuple[int, int], List[int]]:
    grid: Dict[Tuple[int, int], List[int]] = {}
    for i, (px, py) in enumerate(zip(xs, ys)):
        grid.setdefault((math.floor(px / cell), math.floor(py / cell)), []).append(i)
    return grid


def _neighbours(grid: Dict[Tuple[int, int], List[int]], key: Tuple[int, int]) -> Iterable[int]:
    gx, gy = key
    for dx in (-1, 0, 1):
        for dy in (-1, 0, 1):
            yield from grid.get((gx + dx, gy + dy), ())


def _apply_links(state: SimulationState, config: ForceConfig, rng: random.Random) -> None:
    if not state.links:
        return
    degree = [0] * len(state)
    for source, target in state.links:
        degree[source] += 1
        degree[target] += 1

    alpha = state.alpha
    for source, target in state.links:
        dx = state.x[target] + state.vx[target] - state.x[source] - state.vx[source] or _jiggle(rng)
        dy = state.y[target] + state.vy[target] - state.y[source] - state.vy[source] or _jiggle(rng)
        length = math.sqrt(dx * dx + dy * dy)
        scale = (length - config.link_distance) / length * alpha * config.link_strength
        dx *= scale
        dy *= scale
        bias = degree[source] / (degree[source] + degree[target])
        state.vx[target] -= dx * bias
        state.vy[target] -= dy * bias
        state.vx[source] += dx * (1 - bias)
        state.vy[source] += dy * (1 - bias)


def _apply_charge(state: SimulationState, config: ForceConfig, rng: random.Random) -> None:
    reach = config.charge_distance_max
    reach2 = reach * reach
    min2 = config.charge_distance_min * config.charge_distance_min
    strength = config.charge_strength * state.alpha
    grid = _grid(state.x, state.y, reach)

    for key, members in grid.items():
        for i in members:
            xi, yi = state.x[i], state.y[i]
            for j in _neighbours(grid, key):
                if j <= i:
                    continue
                dx = state.x[j] - xi
                dy = state.y[j] - yi
                dist2 = dx * dx + dy * dy
                if dist2 >= reach2:
                    continue
                if dx == 0:
                    dx = _jiggle(rng)
                    dist2 += dx * dx
                if dy == 0:
                    dy = _jiggle(rng)
                    dist2 += dy * dy
                if dist2 < min2:
                    dist2 = math.sqrt(min2 * dist2)
                weight = strength / dist2
                state.vx[i] += dx * weight
                state.vy[i] += dy * weight
                state.vx[j] -= dx * weight
                state.vy[j] -= dy * weight


def _apply_center(state: SimulationState) -> None:
    count = len(state)
    shift_x = sum(state.x) / count
    shift_y = sum(state.y) / count
    for i in range(count):
        state.x[i] -= shift_x
        state.y[i] -= shift_y


def _apply_collision(state: SimulationState, config: ForceConfig, rng: random.Random) -> None:
    radii = [radius + config.collision_padding for radius in state.radii]
    px = [x + vx for x, vx in zip(state.x, state.vx)]
    py = [y + vy for y, vy in zip(state.y, state.vy)]
    cell = 2 * max(radii)
    grid = _grid(px, py, cell)

    for i in range(len(state)):
        ri = radii[i]
        ri2 = ri * ri
        xi = state.x[i] + state.vx[i]
        yi = state.y[i] + state.vy[i]
        key = (math.floor(px[i] / cell), math.floor(py[i] / cell))
        for j in _neighbours(grid, key):
            if j <= i:
                continue
            rj = radii[j]
            reach = ri + rj
            dx = xi - state.x[j] - state.vx[j]
            dy = yi - state.y[j] - state.vy[j]
            dist2 = dx * dx + dy * dy
            if dist2 >= reach * reach:
                continue
            if dx == 0:
                dx = _jiggle(rng)
                dist2 += dx * dx
            if dy == 0:
                dy = _jiggle(rng)
                dist2 += dy * dy
            dist = math.sqrt(dist2)
            push = (reach - dist) / dist
            dx *= push
            dy *= push
            rj2 = rj * rj
            share = rj2 / (ri2 + rj2)
            state.vx[i] += dx * share
            state.vy[i] += dy * share
            state.vx[j] -= dx * (1 - share)
            state.vy[j] -= dy * (1 - share)


def _apply_centering(state: SimulationState, config: ForceConfig) -> None:
    pull = config.centering_strength * state.alpha
    for i in range(len(state)):
        state.vx[i] -= state.x[i] * pull
        state.vy[i] -= state.y[i] * pull


def step(state: SimulationState, config: ForceConfig, rng: random.Random) -> SimulationState:
    """Advance the simulation by one tick in place."""

    state.alpha += (state.alpha_target - state.alpha) * config.alpha_decay
    state.ticks += 1
    if not state.ids:
        return state

    _apply_links(state, config, rng)
    _apply_charge(state, config, rng)
    _apply_center(state)
    _apply_collision(state, config, rng)
    _apply_centering(state, config)

    decay = 1 - config.velocity_decay
    for i in range(len(state)):
        if state.fx[i] is None:
            state.vx[i] *= decay
            state.x[i] += state.vx[i]
        else:
            state.x[i] = state.fx[i]
            state.vx[i] = 0.0
        if state.fy[i] is None:
            state.vy[i] *= decay
            state.y[i] += state.vy[i]
        else:
            state.y[i] = state.fy[i]
            state.vy[i] = 0.0
    return state


class ForceLayoutEngine(QObject):
    """Runs the force simulation one tick per host frame.

    Signals:
        ticked: Emitted after every tick with the tick count
        converged: Emitted once ``alpha`` falls below ``alpha_min``
    """

    ticked = Signal(int)
    converged = Signal()

    def __init__(
        self,
        store: PositionStore,
        settings: Mapping | None = None,
        seed: int | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._store = store
        self._settings = dict(settings or {})
        self._rng = random.Random(seed)
        self._config = ForceConfig.for_node_count(0, self._settings)
        self._state = SimulationState()
        self._scheduler: Optional[Scheduler] = None
        self._frame: Optional[TimerHandle] = None
        self._dragging: set[str] = set()

    @property
    def config(self) -> ForceConfig:
        return self._config

    @property
    def state(self) -> SimulationState:
        return self._state

    @property
    def alpha(self) -> float:
        return self._state.alpha

    @property
    def is_running(self) -> bool:
        return self._frame is not None and self._frame.active

    @property
    def is_settled(self) -> bool:
        return self._state.alpha < self._config.alpha_min and not self._dragging

    # --- Setup ---

    def load(self, nodes: Sequence[GraphNode], edges: Iterable[GraphEdge]) -> None:
        """Rebuild the simulation for a new visible subgraph."""

        self._config = ForceConfig.for_node_count(len(nodes), self._settings)
        previous = self._store.snapshot(node.id for node in nodes)
        self._state = initial_state(nodes, edges, previous, pin_root=self._config.pin_root)
        self._dragging.clear()
        logger.info(
            "Force layout loaded %d nodes, %d links (distance=%s, charge=%s)",
            len(self._state),
            len(self._state.links),
            self._config.link_distance,
            self._config.charge_strength,
        )

    def start(self, scheduler: Scheduler) -> None:
        """Take over the position store and tick once per scheduler frame."""

        self._scheduler = scheduler
        self._store.acquire(self)
        self._store.update(self, self._state.positions())
        self._ensure_running()

    def stop(self) -> None:
        """Stop ticking and cancel anything still scheduled for this engine."""

        if self._scheduler is not None:
            self._scheduler.cancel_all(self)
        self._frame = None

    def deactivate(self) -> None:
        self.stop()
        self._store.release(self)
        self._scheduler = None

    def _ensure_running(self) -> None:
        if self._scheduler is None or self.is_running:
            return
        self._frame = self._scheduler.add_frame_callback(self.tick, owner=self)

    # --- Ticking ---

    def tick(self) -> None:
        step(self._state, self._config, self._rng)
        self._store.update(self, self._state.positions())
        self.ticked.emit(self._state.ticks)
        if self.is_settled:
            logger.debug("Force layout settled after %d ticks", self._state.ticks)
            self.stop()
            self.converged.emit()

    def run(self, max_ticks: int = 300) -> int:
        """Tick synchronously until settled or ``max_ticks`` is reached."""

        ticks = 0
        while ticks < max_ticks:
            step(self._state, self._config, self._rng)
            ticks += 1
            if self.is_settled:
                break
        self._store.update(self, self._state.positions())
        return ticks

    def reheat(self, alpha: float = 1.0) -> None:
        self._state.alpha = max(self._state.alpha, alpha)
        self._ensure_running()

    # --- Dragging ---

    def start_drag(self, node_id: str) -> None:
        index = self._state.index.get(node_id)
        if index is None:
            return
        self._dragging.add(node_id)
        self._state.alpha_target = self._config.drag_alpha_target
        self._state.fx[index] = self._state.x[index]
        self._state.fy[index] = self._state.y[index]
        self._ensure_running()

    def drag_to(self, node_id: str, x: float, y: float) -> None:
        index = self._state.index.get(node_id)
        if index is None or not (math.isfinite(x) and math.isfinite(y)):
            return
        self._state.fx[index] = x
        self._state.fy[index] = y

    def end_drag(self, node_id: str) -> None:
        index = self._state.index.get(node_id)
        if index is None:
            return
        self._dragging.discard(node_id)
        if not self._dragging:
            self._state.alpha_target = 0.0
        if node_id == ROOT_ID and self._config.pin_root:
            self._state.fx[index] = self._state.fy[index] = 0.0
        else:
            self._state.fx[index] = None
            self._state.fy[index] = None
        self._ensure_running()

    def positions(self) -> Dict[str, Position]:
        return self._state.positions()
