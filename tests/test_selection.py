from __future__ import annotations

import pytest

from repoverse.graph.model import ROOT_ID, GraphEdge, GraphModel
from repoverse.graph.visibility import VisibilityFilter, VisibilityMode
from repoverse.search.selection import (
    HoverPath,
    NavigationAction,
    SelectionModel,
    action_for_key,
    matching_nodes,
)


@pytest.fixture
def visibility(sample_model: GraphModel, qt_app) -> VisibilityFilter:
    return VisibilityFilter(sample_model)


@pytest.fixture
def selection(visibility: VisibilityFilter) -> SelectionModel:
    return SelectionModel(visibility)


def test_empty_query_highlights_nothing(selection: SelectionModel) -> None:
    assert selection.search("") == frozenset()
    assert selection.results() == []


def test_search_round_trip(selection: SelectionModel) -> None:
    changes: list[frozenset] = []
    selection.highlight_changed.connect(changes.append)

    assert selection.search("UTIL") == {"src/lib/util.ts"}
    selection.clear_search()

    assert selection.highlighted == frozenset()
    assert changes == [frozenset({"src/lib/util.ts"}), frozenset()]


def test_query_matches_name_or_path_and_skips_root(selection: SelectionModel) -> None:
    assert selection.search("src") == {"src", "src/a.ts", "src/lib", "src/lib/util.ts"}
    assert selection.search("demo") == frozenset()


def test_extension_filter_alone_and_combined(selection: SelectionModel) -> None:
    assert selection.search("", extension="ts") == {"src/a.ts", "src/lib/util.ts"}
    assert selection.search("lib", extension="ts") == {"src/lib/util.ts"}
    assert selection.extensions() == ["md", "ts"]


def test_search_only_sees_visible_nodes(selection: SelectionModel, visibility: VisibilityFilter) -> None:
    selection.search("util")
    visibility.switch_mode(VisibilityMode.COLLAPSIBLE_TREE)

    assert selection.highlighted == frozenset()


def test_results_are_limited(sample_model: GraphModel) -> None:
    assert len(matching_nodes(sample_model.nodes(), "s")) > 2
    assert [node.id for node in matching_nodes(sample_model.nodes(), "s")][:2] == ["src", "src/a.ts"]


def test_result_limit_comes_from_settings(visibility: VisibilityFilter) -> None:
    selection = SelectionModel(visibility, {"result_limit": 2})
    selection.search("s")

    assert [node.id for node in selection.results()] == ["src", "src/a.ts"]
    assert len(selection.results(limit=3)) == 3


def test_hover_marks_the_path_to_root(selection: SelectionModel) -> None:
    selection.hover("src/lib/util.ts")
    path = selection.hover_path

    assert path.node_ids == {"src/lib/util.ts", "src/lib", "src", ROOT_ID}
    assert path.edges == {
        GraphEdge("src/lib", "src/lib/util.ts"),
        GraphEdge("src", "src/lib"),
        GraphEdge(ROOT_ID, "src"),
    }

    selection.hover(None)
    assert selection.hover_path == HoverPath()
    assert not selection.hover_path


def test_cursor_wraps_at_both_ends(selection: SelectionModel, visibility: VisibilityFilter) -> None:
    count = len(visibility.visible_nodes())
    assert selection.cursor == -1

    selection.handle_action(NavigationAction.PREVIOUS)
    assert selection.cursor == count - 1

    selection.handle_action(NavigationAction.NEXT)
    assert selection.cursor == 0

    selection.handle_action(NavigationAction.PREVIOUS)
    assert selection.cursor == count - 1


def test_cursor_is_clamped_when_the_visible_set_shrinks(
    selection: SelectionModel, visibility: VisibilityFilter
) -> None:
    selection.handle_action(NavigationAction.PREVIOUS)
    visibility.switch_mode(VisibilityMode.COLLAPSIBLE_TREE)

    assert selection.cursor == len(visibility.visible_nodes()) - 1


def test_activate_selects_and_expands_in_tree_mode(
    selection: SelectionModel, visibility: VisibilityFilter
) -> None:
    selected: list[object] = []
    selection.node_selected.connect(selected.append)
    visibility.switch_mode(VisibilityMode.COLLAPSIBLE_TREE)

    selection.handle_action(NavigationAction.NEXT)
    selection.handle_action(NavigationAction.NEXT)
    assert selection.focused_node.id == "src"

    assert selection.handle_action(NavigationAction.ACTIVATE)
    assert [node.id for node in selected] == ["src"]
    assert visibility.is_expanded("src")
    assert visibility.is_visible("src/a.ts")


def test_selecting_a_file_does_not_touch_expansion(
    selection: SelectionModel, visibility: VisibilityFilter
) -> None:
    visibility.switch_mode(VisibilityMode.COLLAPSIBLE_TREE)

    assert selection.select("README.md").id == "README.md"
    assert visibility.expanded == {ROOT_ID}
    assert selection.select("src/a.ts") is None


def test_clear_drops_selection_and_resets_cursor(selection: SelectionModel) -> None:
    cursors = []
    selection.cursor_changed.connect(cursors.append)
    selection.handle_action(NavigationAction.NEXT)
    selection.handle_action(NavigationAction.ACTIVATE)
    assert selection.selected is not None

    assert selection.handle_action(NavigationAction.CLEAR)
    assert selection.selected is None
    assert selection.cursor == -1
    assert selection.focused_node is None
    assert cursors == [0, -1]

    assert selection.handle_action(NavigationAction.CLEAR)
    assert cursors == [0, -1]


def test_layout_toggles_are_not_handled_here(selection: SelectionModel) -> None:
    assert not selection.handle_action(NavigationAction.TOGGLE_PACK)
    assert action_for_key("j") is NavigationAction.NEXT
    assert action_for_key("ArrowUp") is NavigationAction.PREVIOUS
    assert action_for_key("x") is None
