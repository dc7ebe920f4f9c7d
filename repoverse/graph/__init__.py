"""Repository tree model, ingest and visibility."""

from .model import (
    ROOT_ID,
    Commit,
    CommitAuthor,
    CommitFileChange,
    GraphEdge,
    GraphModel,
    GraphNode,
    NodeKind,
    RepoTree,
    node_radius,
)
from .ingest import parse_commit_history, parse_repo_tree, tree_from_listing
from .visibility import VisibilityFilter, VisibilityMode, VisibilityState, VisibleGraph
from .stats import RepoStatistics, compute_statistics

__all__ = [
    "ROOT_ID",
    "Commit",
    "CommitAuthor",
    "CommitFileChange",
    "GraphEdge",
    "GraphModel",
    "GraphNode",
    "NodeKind",
    "RepoTree",
    "node_radius",
    "parse_commit_history",
    "parse_repo_tree",
    "tree_from_listing",
    "VisibilityFilter",
    "VisibilityMode",
    "VisibilityState",
    "VisibleGraph",
    "RepoStatistics",
    "compute_statistics",
]
