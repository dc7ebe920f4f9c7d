from __future__ import annotations

import pytest

from repoverse.animation.commit_animator import CommitAnimator, replay_active_files, resolve_target
from repoverse.core.scheduler import Scheduler
from repoverse.graph.model import ROOT_ID, GraphModel
from repoverse.graph.visibility import VisibilityMode, VisibilityState, derive_visible
from repoverse.layout.store import Position, PositionStore
from repoverse.layout.viewport import Viewport
from tests.factories import commit

LAYOUT = {
    ROOT_ID: Position(0, 0),
    "src": Position(10, 0),
    "src/a.ts": Position(20, 0),
    "src/lib": Position(10, 10),
    "src/lib/util.ts": Position(10, 20),
    "docs": Position(-10, 0),
    "docs/guide.md": Position(-20, 0),
    "README.md": Position(0, -10),
}


@pytest.fixture
def laid_out(store: PositionStore) -> PositionStore:
    store.acquire("layout")
    store.update("layout", LAYOUT)
    return store


@pytest.fixture
def animator(scheduler: Scheduler, laid_out: PositionStore, sample_model: GraphModel, sample_commits) -> CommitAnimator:
    animator = CommitAnimator(scheduler, laid_out)
    animator.set_visible_nodes(sample_model.nodes())
    animator.set_commits(sample_commits)
    return animator


def _record(signal) -> list:
    received: list = []
    signal.connect(lambda *args: received.append(args if len(args) > 1 else args[0]))
    return received


def test_resolves_exact_and_normalized_paths(sample_model: GraphModel, laid_out: PositionStore) -> None:
    nodes = sample_model.nodes()

    exact = resolve_target("src/a.ts", nodes, laid_out)
    assert (exact.node_id, exact.via_ancestor) == ("src/a.ts", False)
    assert resolve_target("/src/a.ts", nodes, laid_out).node_id == "src/a.ts"
    assert resolve_target("checkout/src/a.ts", nodes, laid_out).node_id == "src/a.ts"


def test_falls_back_to_nearest_visible_ancestor(sample_model: GraphModel, laid_out: PositionStore) -> None:
    target = resolve_target("src/lib/new.ts", sample_model.nodes(), laid_out)
    assert (target.node_id, target.via_ancestor) == ("src/lib", True)

    tree = derive_visible(VisibilityState(mode=VisibilityMode.COLLAPSIBLE_TREE), sample_model)
    hidden = resolve_target("src/lib/util.ts", tree.nodes, laid_out)
    assert hidden.node_id == "src"
    assert hidden.position == LAYOUT["src"]


def test_ancestor_walk_stops_at_max_depth(sample_model: GraphModel, laid_out: PositionStore) -> None:
    deep = "src/lib/x/y/z/new.ts"

    assert resolve_target(deep, sample_model.nodes(), laid_out, max_depth=3) is None
    assert resolve_target(deep, sample_model.nodes(), laid_out, max_depth=4).node_id == "src/lib"


def test_unresolvable_files_are_skipped(sample_model: GraphModel, laid_out: PositionStore) -> None:
    assert resolve_target("other/x.ts", sample_model.nodes(), laid_out) is None
    assert resolve_target("", sample_model.nodes(), laid_out) is None


def test_missing_positions_are_skipped(sample_model: GraphModel, store: PositionStore) -> None:
    store.acquire("layout")
    store.update("layout", {key: value for key, value in LAYOUT.items() if key != "src/a.ts"})

    assert resolve_target("src/a.ts", sample_model.nodes(), store).node_id == "src"


def test_files_active_replays_history(sample_commits) -> None:
    assert replay_active_files(sample_commits, 0) == {"src/a.ts", "README.md"}
    assert replay_active_files(sample_commits, 2) == {"src/a.ts", "src/lib/util.ts", "docs/guide.md"}
    assert replay_active_files(sample_commits, -1) == frozenset()


def test_index_change_emits_callbacks(animator: CommitAnimator, sample_commits) -> None:
    active = _record(animator.files_active)
    changed = _record(animator.commit_changed)

    animator.set_commit_index(1)

    assert active == [frozenset({"src/a.ts", "README.md", "src/lib/util.ts"})]
    assert changed == [(sample_commits[1], 1)]
    assert animator.current_commit is sample_commits[1]


def test_one_target_for_a_visible_and_an_unresolvable_file(
    scheduler: Scheduler, laid_out: PositionStore, sample_model: GraphModel
) -> None:
    animator = CommitAnimator(scheduler, laid_out)
    animator.set_visible_nodes(sample_model.nodes())
    animator.set_commits([commit("feed", ("src/a.ts", "modified"), ("vendor/b.js", "added"))])
    launched = _record(animator.projectile_launched)

    animator.set_commit_index(0)
    animator.set_commit_index(0)

    assert len(launched) == 1
    assert launched[0].target.node_id == "src/a.ts"
    assert animator.last_cycle.skipped == ["vendor/b.js"]


def test_duration_is_clamped_to_distance(scheduler: Scheduler, store: PositionStore, sample_model: GraphModel) -> None:
    store.acquire("layout")
    store.update("layout", {"src/a.ts": Position(0, 0), "docs/guide.md": Position(3000, 0)})
    animator = CommitAnimator(scheduler, store)
    animator.set_visible_nodes(sample_model.nodes())
    animator.set_commits([commit("feed", ("src/a.ts", "modified"), ("docs/guide.md", "modified"))])

    animator.set_commit_index(0)
    durations = {p.target.node_id: p.flight.duration for p in animator.active_projectiles()}

    assert durations == {"src/a.ts": 300, "docs/guide.md": 800}
    assert animator.last_cycle.duration == 800


def test_origin_is_anchored_to_the_viewport(animator: CommitAnimator) -> None:
    animator.set_viewport(Viewport.centered(1000, 800, scale=1.0))

    assert animator.origin() == Position(80 - 500, (800 - 200) - 400)


def test_projectile_lands_then_pulses(animator: CommitAnimator, scheduler: Scheduler) -> None:
    impacts = _record(animator.impact)
    finished = _record(animator.cycle_finished)

    animator.set_commit_index(0)
    assert len(animator.active_projectiles()) == 2

    scheduler.tick(299)
    assert impacts == [] and finished == []

    scheduler.tick(1)
    assert {pulse.node_id for pulse in impacts} == {"src/a.ts", "README.md"}
    assert finished == [0]
    assert animator.active_projectiles() == []
    assert len(animator.active_pulses()) == 2

    scheduler.tick(600)
    assert animator.active_pulses() == []


def test_commit_without_targets_finishes_immediately(
    scheduler: Scheduler, laid_out: PositionStore, sample_model: GraphModel
) -> None:
    animator = CommitAnimator(scheduler, laid_out)
    animator.set_visible_nodes(sample_model.nodes())
    animator.set_commits([commit("0ff", ("nowhere/x.c", "added"))])
    finished = _record(animator.cycle_finished)

    animator.set_commit_index(0)

    assert finished == [0]


def test_author_marker_is_replaced_while_projectiles_overlap(
    animator: CommitAnimator, scheduler: Scheduler
) -> None:
    animator.set_commit_index(0)
    first_marker = animator.author_marker
    scheduler.tick(100)
    animator.set_commit_index(1)

    marker = animator.author_marker
    assert marker is not first_marker
    assert marker.author.name == "Grace"
    assert not first_marker.handle.active
    assert {p.commit_index for p in animator.active_projectiles()} == {0, 1}

    scheduler.advance(1900)
    assert animator.author_marker is marker
    assert marker.opacity_at(scheduler.now) == pytest.approx(1 - 400 / 500)

    scheduler.advance(100)
    assert animator.author_marker is None


def test_new_history_cancels_running_animations(animator: CommitAnimator, scheduler: Scheduler, sample_commits) -> None:
    impacts = _record(animator.impact)
    animator.set_commit_index(0)

    animator.set_commits(sample_commits[:1])
    scheduler.advance(1000)

    assert impacts == []
    assert animator.author_marker is None
    assert animator.current_index is None
    assert scheduler.pending() == 0


def test_out_of_range_index_is_ignored(animator: CommitAnimator) -> None:
    changed = _record(animator.commit_changed)

    animator.set_commit_index(5)
    animator.set_commit_index(-1)

    assert changed == []
    assert animator.current_index is None
