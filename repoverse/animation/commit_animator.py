"""Commit replay: fire projectiles from the author marker at touched files.

The animator has no clock of its own. The host (a scrubber or the playback
controller) sets the current commit index; every change resolves the touched
files against the currently visible nodes and schedules one projectile per
resolved target on the shared :class:`~repoverse.core.scheduler.Scheduler`.

Target resolution, in order:
1. a visible file node whose path equals, or is a path-suffix of, the filename
2. the nearest visible ancestor directory of the filename
3. nothing; the file is skipped (for example when it lies beyond visibility)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence

from PySide6.QtCore import QObject, Signal

from repoverse.core.logging import get_logger
from repoverse.core.scheduler import Scheduler, TimerHandle
from repoverse.graph.model import Commit, CommitAuthor, GraphNode
from repoverse.layout.store import Position, PositionStore
from repoverse.layout.viewport import Viewport
from repoverse.animation.transitions import EasingType, Transition, clamp_duration

logger = get_logger(__name__)


@dataclass
class AnimationSettings:
    distance_factor: float = 0.5
    min_duration_ms: float = 300.0
    max_duration_ms: float = 800.0
    pulse_duration_ms: float = 600.0
    author_hold_ms: float = 1500.0
    author_fade_ms: float = 500.0
    origin_offset_x: float = 80.0
    origin_offset_bottom: float = 200.0
    max_depth: int = 256

    def __post_init__(self) -> None:
        if self.min_duration_ms < 0 or self.max_duration_ms < self.min_duration_ms:
            raise ValueError("animation durations must satisfy 0 <= min <= max")

    @classmethod
    def from_settings(cls, settings: Mapping | None = None) -> "AnimationSettings":
        settings = settings or {}
        defaults = cls()
        values = {}
        for name in (
            "distance_factor",
            "min_duration_ms",
            "max_duration_ms",
            "pulse_duration_ms",
            "author_hold_ms",
            "author_fade_ms",
            "origin_offset_x",
            "origin_offset_bottom",
        ):
            values[name] = float(settings.get(name, getattr(defaults, name)))
        return cls(**values)


@dataclass(frozen=True)
class AnimationTarget:
    """Where a changed file's projectile lands."""

    filename: str
    node_id: str
    position: Position
    via_ancestor: bool = False


@dataclass(eq=False)
class Projectile:
    commit_index: int
    filename: str
    target: AnimationTarget
    flight: Transition
    trail: Transition
    handle: Optional[TimerHandle] = None

    def position_at(self, now: float) -> tuple[float, float]:
        return self.flight.position_at(now)


@dataclass(frozen=True)
class ImpactPulse:
    node_id: str
    position: Position
    started_at: float
    duration: float

    def progress(self, now: float) -> float:
        if self.duration <= 0:
            return 1.0
        return min(1.0, max(0.0, (now - self.started_at) / self.duration))


@dataclass
class AuthorMarker:
    commit_index: int
    sha: str
    author: CommitAuthor
    position: Position
    started_at: float
    hold_ms: float
    fade_ms: float
    handle: Optional[TimerHandle] = None

    def opacity_at(self, now: float) -> float:
        elapsed = now - self.started_at
        if elapsed <= self.hold_ms:
            return 1.0
        if self.fade_ms <= 0:
            return 0.0
        return max(0.0, 1.0 - (elapsed - self.hold_ms) / self.fade_ms)


@dataclass
class AnimationCycle:
    """Timing contract for one commit's projectiles."""

    commit_index: int
    sha: str
    started_at: float
    targets: List[AnimationTarget] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    duration: float = 0.0
    remaining: int = 0

    @property
    def finishes_at(self) -> float:
        return self.started_at + self.duration


def replay_active_files(commits: Sequence[Commit], index: int) -> FrozenSet[str]:
    """Files alive after replaying commits ``0..index`` in order."""

    alive: set[str] = set()
    for commit in commits[: max(0, index + 1)]:
        for change in commit.files:
            if change.status == "removed":
                alive.discard(change.filename)
            else:
                alive.add(change.filename)
    return frozenset(alive)


def _normalize(path: str) -> str:
    return path.strip().strip("/")


def _is_path_suffix(longer: str, shorter: str) -> bool:
    return longer == shorter or longer.endswith("/" + shorter)


def resolve_target(
    filename: str,
    visible_nodes: Iterable[GraphNode],
    store: PositionStore,
    max_depth: int = 256,
) -> Optional[AnimationTarget]:
    """Resolve ``filename`` to a visible node with a known position."""

    wanted = _normalize(filename)
    if not wanted:
        return None

    nodes = list(visible_nodes)
    exact: List[GraphNode] = []
    suffix: List[GraphNode] = []
    directories: Dict[str, GraphNode] = {}
    for node in nodes:
        path = _normalize(node.path)
        if node.is_directory:
            directories.setdefault(path, node)
            continue
        if not path:
            continue
        if path == wanted:
            exact.append(node)
        elif _is_path_suffix(wanted, path) or _is_path_suffix(path, wanted):
            suffix.append(node)

    for node in exact + suffix:
        position = store.get(node.id)
        if position is not None:
            return AnimationTarget(filename, node.id, position)

    parts = wanted.split("/")
    for depth, i in enumerate(range(len(parts) - 1, 0, -1)):
        if depth >= max_depth:
            logger.warning("Ancestor search for %s truncated at depth %d", filename, max_depth)
            break
        ancestor = directories.get("/".join(parts[:i]))
        if ancestor is None:
            continue
        position = store.get(ancestor.id)
        if position is not None:
            return AnimationTarget(filename, ancestor.id, position, via_ancestor=True)
    return None


class CommitAnimator(QObject):
    """Reacts to commit index changes with timed projectile animations.

    Signals:
        commit_changed: ``(Commit | None, index)`` whenever the index changes
        files_active: Frozenset of files alive at the current index
        projectile_launched: Emitted with each new :class:`Projectile`
        impact: Emitted with an :class:`ImpactPulse` when a projectile lands
        author_marker_changed: Emitted with the new marker, or ``None``
        cycle_finished: Emitted with the commit index once its last projectile lands
    """

    commit_changed = Signal(object, int)
    files_active = Signal(object)
    projectile_launched = Signal(object)
    impact = Signal(object)
    author_marker_changed = Signal(object)
    cycle_finished = Signal(int)

    def __init__(
        self,
        scheduler: Scheduler,
        store: PositionStore,
        settings: Mapping | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._scheduler = scheduler
        self._store = store
        self._settings = AnimationSettings.from_settings(settings)
        self._commits: List[Commit] = []
        self._index: Optional[int] = None
        self._visible: List[GraphNode] = []
        self._viewport = Viewport()
        self._projectiles: List[Projectile] = []
        self._pulses: List[ImpactPulse] = []
        self._author_marker: Optional[AuthorMarker] = None
        self._last_cycle: Optional[AnimationCycle] = None

    # --- Inputs ---

    @property
    def settings(self) -> AnimationSettings:
        return self._settings

    @property
    def commits(self) -> List[Commit]:
        return list(self._commits)

    @property
    def current_index(self) -> Optional[int]:
        return self._index

    @property
    def current_commit(self) -> Optional[Commit]:
        if self._index is None or not 0 <= self._index < len(self._commits):
            return None
        return self._commits[self._index]

    def set_commits(self, commits: Sequence[Commit]) -> None:
        """Replace the history and drop every running animation."""

        self.cancel_all()
        self._commits = list(commits)
        self._index = None
        logger.info("Commit history loaded: %d commits", len(self._commits))

    def set_visible_nodes(self, nodes: Iterable[GraphNode]) -> None:
        self._visible = list(nodes)

    def set_viewport(self, viewport: Viewport) -> None:
        self._viewport = viewport

    def origin(self) -> Position:
        """Fixed launch point near the bottom-left corner of the viewport."""

        x, y = self._viewport.invert(
            (self._settings.origin_offset_x, self._viewport.height - self._settings.origin_offset_bottom)
        )
        return Position(x, y)

    def set_commit_index(self, index: int) -> None:
        if not self._commits:
            return
        if not 0 <= index < len(self._commits):
            logger.debug("Commit index %d out of range (0..%d)", index, len(self._commits) - 1)
            return
        if index == self._index:
            return

        self._index = index
        commit = self._commits[index]
        self.files_active.emit(replay_active_files(self._commits, index))
        self.commit_changed.emit(commit, index)
        self._animate(commit, index)

    def active_files(self) -> FrozenSet[str]:
        if self._index is None:
            return frozenset()
        return replay_active_files(self._commits, self._index)

    # --- Animation ---

    def _animate(self, commit: Commit, index: int) -> None:
        now = self._scheduler.now
        origin = self.origin()
        self._replace_author_marker(commit, index, origin, now)

        cycle = AnimationCycle(commit_index=index, sha=commit.sha, started_at=now)
        for change in commit.files:
            target = resolve_target(change.filename, self._visible, self._store, self._settings.max_depth)
            if target is None:
                logger.debug("No visible target for %s in %s", change.filename, commit.sha[:7])
                cycle.skipped.append(change.filename)
                continue
            cycle.targets.append(target)

        self._last_cycle = cycle
        logger.debug(
            "Commit %s: %d targets, %d skipped",
            commit.sha[:7],
            len(cycle.targets),
            len(cycle.skipped),
        )
        if not cycle.targets:
            self.cycle_finished.emit(index)
            return

        cycle.remaining = len(cycle.targets)
        for target in cycle.targets:
            distance = origin.distance_to(target.position)
            duration = clamp_duration(
                distance,
                self._settings.distance_factor,
                self._settings.min_duration_ms,
                self._settings.max_duration_ms,
            )
            cycle.duration = max(cycle.duration, duration)
            projectile = Projectile(
                commit_index=index,
                filename=target.filename,
                target=target,
                flight=Transition(origin, target.position, now, duration, EasingType.EASE_OUT),
                trail=Transition(origin, target.position, now, duration, EasingType.LINEAR),
            )
            projectile.handle = self._scheduler.call_later(
                duration,
                lambda p=projectile, c=cycle: self._land(p, c),
                owner=self,
            )
            self._projectiles.append(projectile)
            self.projectile_launched.emit(projectile)

    def _replace_author_marker(self, commit: Commit, index: int, origin: Position, now: float) -> None:
        if self._author_marker is not None and self._author_marker.handle is not None:
            self._author_marker.handle.cancel()

        marker = AuthorMarker(
            commit_index=index,
            sha=commit.sha,
            author=commit.author,
            position=origin,
            started_at=now,
            hold_ms=self._settings.author_hold_ms,
            fade_ms=self._settings.author_fade_ms,
        )
        marker.handle = self._scheduler.call_later(
            marker.hold_ms + marker.fade_ms,
            lambda m=marker: self._expire_marker(m),
            owner=self,
        )
        self._author_marker = marker
        self.author_marker_changed.emit(marker)

    def _expire_marker(self, marker: AuthorMarker) -> None:
        if self._author_marker is marker:
            self._author_marker = None
            self.author_marker_changed.emit(None)

    def _land(self, projectile: Projectile, cycle: AnimationCycle) -> None:
        if projectile in self._projectiles:
            self._projectiles.remove(projectile)
        pulse = ImpactPulse(
            node_id=projectile.target.node_id,
            position=projectile.target.position,
            started_at=self._scheduler.now,
            duration=self._settings.pulse_duration_ms,
        )
        self._pulses.append(pulse)
        self._scheduler.call_later(pulse.duration, lambda p=pulse: self._expire_pulse(p), owner=self)
        self.impact.emit(pulse)

        cycle.remaining -= 1
        if cycle.remaining == 0:
            self.cycle_finished.emit(cycle.commit_index)

    def _expire_pulse(self, pulse: ImpactPulse) -> None:
        if pulse in self._pulses:
            self._pulses.remove(pulse)

    def cancel_all(self) -> None:
        """Cancel every projectile, pulse and the author marker."""

        self._scheduler.cancel_all(self)
        self._projectiles.clear()
        self._pulses.clear()
        if self._author_marker is not None:
            self._author_marker = None
            self.author_marker_changed.emit(None)

    # --- Renderable state ---

    @property
    def author_marker(self) -> Optional[AuthorMarker]:
        return self._author_marker

    @property
    def last_cycle(self) -> Optional[AnimationCycle]:
        return self._last_cycle

    def active_projectiles(self) -> List[Projectile]:
        return list(self._projectiles)

    def active_pulses(self) -> List[ImpactPulse]:
        return list(self._pulses)
