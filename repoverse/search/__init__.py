from .selection import (
    HoverPath,
    KEY_BINDINGS,
    NavigationAction,
    SelectionModel,
    action_for_key,
    hover_path,
    matching_nodes,
)

__all__ = [
    "HoverPath",
    "KEY_BINDINGS",
    "NavigationAction",
    "SelectionModel",
    "action_for_key",
    "hover_path",
    "matching_nodes",
]
