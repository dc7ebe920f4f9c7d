"""Repository tree visualization core.

Turns a pre-fetched repository tree into a spatial graph (force or circle-pack
layout), keeps a collapsible visibility state for large trees and replays
commit history as timed animations over the visible nodes. Nothing here draws;
a host renderer reads :class:`~repoverse.session.RenderSnapshot` objects.

Subpackages:
- core: configuration, logging and the host-driven scheduler
- graph: tree model, ingest, visibility and statistics
- layout: force and pack engines sharing one position store
- animation: commit replay and playback
- search: highlight, hover path and keyboard navigation
"""

from .session import RenderSnapshot, VisualizerSession

__all__ = ["RenderSnapshot", "VisualizerSession"]
