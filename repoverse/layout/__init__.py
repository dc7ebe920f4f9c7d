"""Layout engines and the shared position store.

Modules:
- store: single-writer id -> position map
- force: iterative force simulation for the visible subgraph
- pack: deterministic hierarchical circle packing
- viewport: screen size and zoom transform
"""

from enum import Enum

from .store import Position, PositionStore
from .viewport import FOCUS_SCALE, FORCE_INITIAL_SCALE, PACK_INITIAL_SCALE, Viewport
from .force import ForceConfig, ForceLayoutEngine, SimulationState
from .pack import PackConfig, PackedCircle, PackLayoutEngine


class LayoutMode(Enum):
    """Which engine owns the position store."""

    FORCE = "force"
    PACK = "pack"


__all__ = [
    "LayoutMode",
    "Position",
    "PositionStore",
    "Viewport",
    "FOCUS_SCALE",
    "FORCE_INITIAL_SCALE",
    "PACK_INITIAL_SCALE",
    "ForceConfig",
    "ForceLayoutEngine",
    "SimulationState",
    "PackConfig",
    "PackedCircle",
    "PackLayoutEngine",
]
