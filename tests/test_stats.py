from __future__ import annotations

import pytest

from repoverse.graph.ingest import tree_from_listing
from repoverse.graph.model import GraphModel
from repoverse.graph.stats import compute_statistics


def test_tree_statistics(sample_model: GraphModel) -> None:
    stats = compute_statistics(sample_model)

    assert stats.total_files == 4
    assert stats.total_folders == 3
    assert stats.top_extensions == [("ts", 2), ("md", 2)]
    assert stats.top_folders[0] == ("src", 2)
    assert stats.total_size == 6500
    assert stats.max_depth == 3
    assert stats.average_depth == pytest.approx(1.6, abs=0.05)
    assert stats.total_commits == 0
    assert stats.top_contributors == []


def test_contributors_ranked_by_commit_count(sample_model: GraphModel, sample_commits) -> None:
    stats = compute_statistics(sample_model, sample_commits, contributor_limit=1)

    assert stats.total_commits == 3
    assert len(stats.top_contributors) == 1
    top = stats.top_contributors[0]
    assert (top.name, top.email, top.commits) == ("Ada", "ada@example.com", 2)


def test_files_without_extension_count_as_other() -> None:
    model = GraphModel.from_tree(
        tree_from_listing([{"path": "Makefile", "type": "blob"}, {"path": "LICENSE", "type": "blob"}], "demo")
    )

    assert compute_statistics(model).top_extensions == [("other", 2)]
