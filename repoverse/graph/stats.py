"""Summary statistics for a loaded repository tree and its history."""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, List, Tuple

from repoverse.graph.model import Commit, GraphModel


@dataclass(frozen=True)
class ContributorSummary:
    name: str
    email: str
    avatar: str
    commits: int


@dataclass(frozen=True)
class RepoStatistics:
    total_files: int = 0
    total_folders: int = 0
    top_extensions: List[Tuple[str, int]] = field(default_factory=list)
    top_folders: List[Tuple[str, int]] = field(default_factory=list)
    total_size: int = 0
    max_depth: int = 0
    average_depth: float = 0.0
    top_contributors: List[ContributorSummary] = field(default_factory=list)
    total_commits: int = 0


def compute_statistics(
    model: GraphModel,
    commits: Iterable[Commit] = (),
    extension_limit: int = 8,
    folder_limit: int = 6,
    contributor_limit: int = 5,
) -> RepoStatistics:
    nodes = model.nodes()
    files = [node for node in nodes if node.is_file]
    folders = [node for node in nodes if node.is_directory and not node.is_root]

    extensions = Counter(node.extension or "other" for node in files)
    folder_counts = sorted(
        ((folder.id, model.child_count(folder.id)) for folder in folders),
        key=lambda item: item[1],
        reverse=True,
    )

    # Depth is the number of path segments, as the dashboard shows it.
    depths = [len(node.path.split("/")) for node in nodes]
    max_depth = max(depths, default=0)
    average_depth = round(sum(depths) / len(depths), 1) if depths else 0.0

    commit_list = list(commits)
    per_author: dict[str, ContributorSummary] = {}
    counts: Counter[str] = Counter()
    for commit in commit_list:
        key = commit.author.email or commit.author.name
        counts[key] += 1
        if key not in per_author:
            per_author[key] = ContributorSummary(commit.author.name, commit.author.email, commit.author.avatar, 0)
    contributors = [
        ContributorSummary(per_author[key].name, per_author[key].email, per_author[key].avatar, count)
        for key, count in counts.most_common(contributor_limit)
    ]

    return RepoStatistics(
        total_files=len(files),
        total_folders=len(folders),
        top_extensions=extensions.most_common(extension_limit),
        top_folders=folder_counts[:folder_limit],
        total_size=sum(node.size or 0 for node in files),
        max_depth=max_depth,
        average_depth=average_depth,
        top_contributors=contributors,
        total_commits=len(commit_list),
    )
