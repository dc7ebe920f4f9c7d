"""Viewport size and zoom transform supplied by the host."""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Tuple

FORCE_INITIAL_SCALE = 0.75
PACK_INITIAL_SCALE = 0.9
FOCUS_SCALE = 1.5


@dataclass(frozen=True)
class Viewport:
    """Screen dimensions plus a translate/scale zoom transform."""

    width: float = 800.0
    height: float = 600.0
    translate_x: float = 400.0
    translate_y: float = 300.0
    scale: float = FORCE_INITIAL_SCALE

    @classmethod
    def centered(cls, width: float, height: float, scale: float = FORCE_INITIAL_SCALE) -> "Viewport":
        return cls(width=width, height=height, translate_x=width / 2, translate_y=height / 2, scale=scale)

    def resized(self, width: float, height: float) -> "Viewport":
        return Viewport.centered(width, height, self.scale)

    def with_scale(self, scale: float) -> "Viewport":
        return Viewport.centered(self.width, self.height, scale)

    def invert(self, screen: Tuple[float, float]) -> Tuple[float, float]:
        """Map a screen point into layout coordinates."""

        sx, sy = screen
        scale = self.scale or 1.0
        return (sx - self.translate_x) / scale, (sy - self.translate_y) / scale

    def apply(self, point: Tuple[float, float]) -> Tuple[float, float]:
        x, y = point
        return x * self.scale + self.translate_x, y * self.scale + self.translate_y

    def focus_on(self, x: float, y: float, scale: float = FOCUS_SCALE) -> "Viewport":
        """Transform that centers ``(x, y)`` at ``scale``."""

        return replace(
            self,
            translate_x=self.width / 2 - x * scale,
            translate_y=self.height / 2 - y * scale,
            scale=scale,
        )