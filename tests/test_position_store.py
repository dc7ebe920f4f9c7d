from __future__ import annotations

import math

from repoverse.layout.store import Position, PositionStore


def test_only_the_current_writer_may_write(store: PositionStore) -> None:
    force, pack = object(), object()
    store.acquire(force)

    assert store.update(force, {"a": Position(1, 2)})
    store.acquire(pack)
    assert not store.update(force, {"a": Position(9, 9)})

    assert store.get("a") == Position(1, 2)
    assert store.writer is pack


def test_missing_and_non_finite_entries_read_as_unknown(store: PositionStore) -> None:
    store.acquire("layout")
    store.update("layout", {"ok": Position(0, 0), "bad": Position(math.nan, 1)})

    assert store.get("missing") is None
    assert store.get("bad") is None
    assert store.snapshot() == {"ok": Position(0, 0)}
    assert store.snapshot(["ok", "missing"]) == {"ok": Position(0, 0)}


def test_update_keeps_and_replace_discards(store: PositionStore) -> None:
    store.acquire("layout")
    store.update("layout", {"a": Position(1, 1)})
    store.update("layout", {"b": Position(2, 2)})
    assert set(store.snapshot()) == {"a", "b"}

    store.replace("layout", {"c": Position(3, 3, radius=5)})
    assert set(store.snapshot()) == {"c"}
    assert store.get("c").radius == 5
    assert len(store) == 1


def test_signals(store: PositionStore) -> None:
    changes: list[None] = []
    writers: list[object] = []
    store.positions_changed.connect(lambda: changes.append(None))
    store.writer_changed.connect(writers.append)

    store.acquire("layout")
    store.acquire("layout")
    store.update("layout", {"a": Position(0, 0)})
    store.update("other", {"a": Position(1, 1)})
    store.release("other")
    store.release("layout")

    assert len(changes) == 1
    assert writers == ["layout", None]


def test_position_distance() -> None:
    assert Position(0, 0).distance_to(Position(3, 4)) == 5
    assert not Position(math.inf, 0).is_finite
