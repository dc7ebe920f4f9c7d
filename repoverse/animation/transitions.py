"""Time-based transitions evaluated against the scheduler clock."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple

from PySide6.QtCore import QEasingCurve

from repoverse.layout.store import Position


class EasingType(Enum):
    """Supported easing curves for animations."""

    LINEAR = "linear"
    EASE_OUT = "ease_out"
    EASE_IN_OUT = "ease_in_out"


_CURVE_TYPES: Dict[EasingType, QEasingCurve.Type] = {
    EasingType.LINEAR: QEasingCurve.Type.Linear,
    EasingType.EASE_OUT: QEasingCurve.Type.OutQuad,
    EasingType.EASE_IN_OUT: QEasingCurve.Type.InOutCubic,
}

_CURVES: Dict[EasingType, QEasingCurve] = {easing: QEasingCurve(kind) for easing, kind in _CURVE_TYPES.items()}


def get_easing_curve(easing: EasingType) -> QEasingCurve:
    """Qt easing curve for ``easing``, ease-out when unknown."""

    return _CURVES.get(easing, _CURVES[EasingType.EASE_OUT])


def ease(easing: EasingType, progress: float) -> float:
    """Apply ``easing`` to a linear progress value clamped to [0, 1]."""

    progress = min(1.0, max(0.0, progress))
    return get_easing_curve(easing).valueForProgress(progress)


def clamp_duration(distance: float, factor: float, minimum: float, maximum: float) -> float:
    """Duration proportional to travel distance, bounded on both ends."""

    return min(maximum, max(minimum, distance * factor))


@dataclass(frozen=True)
class Transition:
    """A movement from ``start`` to ``end`` beginning at ``started_at``."""

    start: Position
    end: Position
    started_at: float
    duration: float
    easing: EasingType = EasingType.EASE_OUT

    @property
    def finishes_at(self) -> float:
        return self.started_at + self.duration

    def progress(self, now: float) -> float:
        if self.duration <= 0:
            return 1.0
        return min(1.0, max(0.0, (now - self.started_at) / self.duration))

    def is_finished(self, now: float) -> bool:
        return now >= self.finishes_at

    def position_at(self, now: float) -> Tuple[float, float]:
        """Interpolated point at ``now``."""

        eased = ease(self.easing, self.progress(now))
        return (
            self.start.x + (self.end.x - self.start.x) * eased,
            self.start.y + (self.end.y - self.start.y) * eased,
        )
