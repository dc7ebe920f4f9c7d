"""Shared id to coordinate map written by the active layout engine."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Hashable, Iterable, Mapping, Optional

from PySide6.QtCore import QObject, Signal

from repoverse.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Position:
    """Last known coordinates of a node; ``radius`` is set by the pack layout."""

    x: float
    y: float
    radius: Optional[float] = None

    @property
    def is_finite(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y)

    def distance_to(self, other: "Position") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)


class PositionStore(QObject):
    """Single-writer position map.

    Exactly one owner may write at a time; :meth:`acquire` hands ownership to a
    layout engine and writes from any other owner are dropped. Readers get
    ``None`` for unknown ids and should skip them.

    Signals:
        positions_changed: Emitted after every accepted write
        writer_changed: Emitted with the new owner when ownership moves
    """

    positions_changed = Signal()
    writer_changed = Signal(object)

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._positions: Dict[str, Position] = {}
        self._writer: Hashable | None = None

    @property
    def writer(self) -> Hashable | None:
        return self._writer

    def acquire(self, owner: Hashable) -> None:
        if owner is not self._writer:
            self._writer = owner
            self.writer_changed.emit(owner)

    def release(self, owner: Hashable) -> None:
        if owner is self._writer:
            self._writer = None
            self.writer_changed.emit(None)

    def _accepts(self, owner: Hashable) -> bool:
        if owner is not self._writer:
            logger.debug("Dropping position write from inactive owner %r", owner)
            return False
        return True

    # --- Writes ---

    def update(self, owner: Hashable, positions: Mapping[str, Position]) -> bool:
        """Overwrite the given entries, keeping everything else."""

        if not self._accepts(owner):
            return False
        self._positions.update(positions)
        self.positions_changed.emit()
        return True

    def replace(self, owner: Hashable, positions: Mapping[str, Position]) -> bool:
        """Discard every entry and store ``positions`` wholesale."""

        if not self._accepts(owner):
            return False
        self._positions = dict(positions)
        self.positions_changed.emit()
        return True

    def clear(self) -> None:
        self._positions.clear()
        self.positions_changed.emit()

    # --- Reads ---

    def get(self, node_id: str) -> Optional[Position]:
        position = self._positions.get(node_id)
        if position is None or not position.is_finite:
            return None
        return position

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._positions

    def __len__(self) -> int:
        return len(self._positions)

    def snapshot(self, node_ids: Iterable[str] | None = None) -> Dict[str, Position]:
        """Copy of the finite entries, optionally limited to ``node_ids``."""

        if node_ids is None:
            return {key: value for key, value in self._positions.items() if value.is_finite}
        snapshot: Dict[str, Position] = {}
        for node_id in node_ids:
            position = self.get(node_id)
            if position is not None:
                snapshot[node_id] = position
        return snapshot
