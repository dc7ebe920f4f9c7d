from __future__ import annotations

import math

import pytest

from repoverse.graph.model import ROOT_ID, GraphModel, RepoTree
from repoverse.graph.visibility import VisibilityMode, VisibilityState, derive_visible
from repoverse.layout.pack import PackConfig, PackLayoutEngine, build_pack_tree
from repoverse.layout.store import Position, PositionStore
from tests.factories import directory, file, root

EPSILON = 1e-4


def _two_folders(a_size: int) -> GraphModel:
    return GraphModel.from_tree(
        RepoTree(
            nodes=[
                root(),
                directory("a"),
                file("a/f", "a", a_size),
                directory("b"),
                file("b/g", "b", 2000),
            ]
        )
    )


def test_children_lie_inside_their_parent(sample_model: GraphModel, store: PositionStore) -> None:
    circles = PackLayoutEngine(store).compute(sample_model, None, 800, 600)

    assert set(circles) == {node.id for node in sample_model.nodes()}
    for node in sample_model.nodes():
        if node.is_root:
            continue
        child, parent = circles[node.id], circles[node.parent_id]
        distance = math.hypot(child.x - parent.x, child.y - parent.y)
        assert distance + child.r <= parent.r + EPSILON


def test_siblings_do_not_overlap(sample_model: GraphModel, store: PositionStore) -> None:
    circles = PackLayoutEngine(store).compute(sample_model, None, 800, 600)
    siblings = [circles[node.id] for node in sample_model.get_children(ROOT_ID)]

    for i, first in enumerate(siblings):
        for second in siblings[i + 1 :]:
            distance = math.hypot(first.x - second.x, first.y - second.y)
            assert distance >= first.r + second.r - EPSILON


def test_root_fills_the_centered_square(sample_model: GraphModel, store: PositionStore) -> None:
    engine = PackLayoutEngine(store)
    circles = engine.compute(sample_model, None, 800, 600)
    size = engine.config.size_for(800, 600)

    assert size == pytest.approx((600 - 80) * 0.85)
    assert circles[ROOT_ID].x == pytest.approx(0.0)
    assert circles[ROOT_ID].y == pytest.approx(0.0)
    assert circles[ROOT_ID].r == pytest.approx(size / 2)
    assert circles[ROOT_ID].depth == 0
    assert circles["src/lib/util.ts"].depth == 3


def test_pack_size_has_a_floor() -> None:
    assert PackConfig().size_for(300, 200) == 400


def test_directory_radius_grows_with_weight(store: PositionStore) -> None:
    engine = PackLayoutEngine(store)
    small = engine.compute(_two_folders(1000), None, 800, 800)["a"].r
    large = engine.compute(_two_folders(5000), None, 800, 800)["a"].r

    assert large > small


def test_packing_is_deterministic(sample_model: GraphModel, store: PositionStore) -> None:
    engine = PackLayoutEngine(store)

    assert engine.compute(sample_model, None, 800, 600) == engine.compute(sample_model, None, 800, 600)


def test_empty_directory_still_gets_a_circle(store: PositionStore) -> None:
    model = GraphModel.from_tree(RepoTree(nodes=[root(), directory("empty"), file("big.bin", size=10_000)]))
    circles = PackLayoutEngine(store).compute(model, None, 800, 600)

    assert circles["empty"].r > 0


def test_labels_follow_radius(sample_model: GraphModel, store: PositionStore) -> None:
    engine = PackLayoutEngine(store)
    circles = engine.compute(sample_model, None, 800, 600)

    for circle in circles.values():
        assert circle.label_visible == (circle.r > engine.config.label_radius)
    assert circles[ROOT_ID].label_visible


def test_only_visible_nodes_are_packed(sample_model: GraphModel, store: PositionStore) -> None:
    visible = [ROOT_ID, "src", "docs", "README.md"]
    circles = PackLayoutEngine(store).compute(sample_model, visible, 800, 600)

    assert set(circles) == set(visible)
    assert PackLayoutEngine(store).compute(sample_model, [], 800, 600) == {}
    assert build_pack_tree(sample_model, ["src"]) is None


def test_apply_replaces_store_contents(sample_model: GraphModel, store: PositionStore) -> None:
    store.acquire("force")
    store.update("force", {"stale": Position(1, 1)})

    engine = PackLayoutEngine(store)
    circles = engine.apply(sample_model, None, 800, 600)

    assert store.writer is engine
    assert store.get("stale") is None
    assert store.get("src") == Position(circles["src"].x, circles["src"].y, circles["src"].r)

    engine.deactivate()
    assert store.writer is None


@pytest.mark.parametrize("mode", [VisibilityMode.FOLDERS_ONLY, VisibilityMode.COLLAPSIBLE_TREE])
def test_childless_directory_keeps_its_file_weight(store: PositionStore, mode: VisibilityMode) -> None:
    model = GraphModel.from_tree(
        RepoTree(
            nodes=[
                root(),
                directory("big"),
                file("big/data.bin", "big", 5_000_000),
                directory("small"),
                file("small/note.txt", "small", 10),
            ]
        )
    )
    visible = derive_visible(VisibilityState(mode=mode), model).node_ids

    assert visible == {ROOT_ID, "big", "small"}
    circles = PackLayoutEngine(store).compute(model, visible, 800, 800)

    assert circles["big"].r > circles["small"].r


def test_directory_leaf_uses_aggregate_weight() -> None:
    model = _two_folders(5000)
    pack_root = build_pack_tree(model, [ROOT_ID, "a", "b"])

    values = {child.node_id: child.value for child in pack_root.children}
    assert values == {"a": 5000.0, "b": 2000.0}
