from __future__ import annotations

import asyncio

from tabsync.adapters.scenario import InMemorySettings, ScenarioSession
from tabsync.domain.association.repair import (
    fix_all_pinned_unpinned_order,
    fix_bad_nodes,
    move_pages_to_correct_windows,
    remove_old_windows,
    remove_zero_child_windows,
    swap_pages_by_index,
)
from tabsync.domain.model import NodeKind
from tabsync.domain.ports import REMEMBER_OPEN_PAGES_SETTING
from tests.helpers.engine import make_tab, make_tree, page_node, window_node

URL = "https://example.com/page"


def test_stray_page_moves_into_preceding_window() -> None:
    window = window_node(page_node("https://example.com/kept"))
    stray = page_node(URL)
    tree = make_tree(window, stray)

    fixed = asyncio.run(fix_bad_nodes(tree, ScenarioSession()))

    assert fixed == 1
    assert stray.parent is window
    assert window.children[-1] is stray


def test_stray_page_without_window_gets_a_new_one() -> None:
    stray = page_node(URL)
    tree = make_tree(stray)

    fixed = asyncio.run(fix_bad_nodes(tree, ScenarioSession()))

    assert fixed == 1
    window = stray.parent
    assert window is not None
    assert window.is_window
    assert window.hibernated is True
    assert window.parent is tree.root


def test_nested_window_returns_to_root() -> None:
    inner = window_node(page_node(URL))
    outer = window_node(page_node("https://example.com/outer"), inner)
    tree = make_tree(outer)

    fixed = asyncio.run(fix_bad_nodes(tree, ScenarioSession()))

    assert fixed == 1
    assert inner.parent is tree.root
    assert tree.root.children == [outer, inner]
    assert asyncio.run(fix_bad_nodes(tree, ScenarioSession())) == 0


def test_zero_child_windows_are_removed() -> None:
    empty = window_node()
    full = window_node(page_node(URL))
    tree = make_tree(empty, full)

    assert remove_zero_child_windows(tree) == 1
    assert tree.root.children == [full]
    assert remove_zero_child_windows(tree) == 0


def test_old_hibernated_windows_are_archived() -> None:
    old = window_node(page_node(URL), old=True)
    live_old = window_node(page_node(URL, live_id=10, window_id=3), live_id=3, old=True)
    tree = make_tree(old, live_old)

    removed = remove_old_windows(tree, InMemorySettings())

    assert removed == 1
    assert tree.get_node(old.id) is None
    assert old in list(tree.archive)
    assert live_old.old is False


def test_old_windows_kept_when_remembering_open_pages() -> None:
    old = window_node(page_node(URL), old=True)
    tree = make_tree(old)
    settings = InMemorySettings({REMEMBER_OPEN_PAGES_SETTING: True})

    removed = remove_old_windows(tree, settings)

    assert removed == 0
    assert tree.get_node(old.id) is old
    assert old.old is False


def test_old_windows_archived_when_younger_restorable_window_exists() -> None:
    old = window_node(page_node(URL), old=True)
    young = window_node(page_node("https://example.com/young"))
    tree = make_tree(old, young)
    settings = InMemorySettings({REMEMBER_OPEN_PAGES_SETTING: True})

    assert remove_old_windows(tree, settings) == 1
    assert tree.root.children == [young]


def test_pinned_pages_move_ahead_of_unpinned() -> None:
    unpinned = page_node("https://example.com/a", live_id=10, window_id=1, index=1)
    pinned = page_node("https://example.com/b", live_id=11, window_id=1, index=0, pinned=True)
    window = window_node(unpinned, pinned, live_id=1)
    tree = make_tree(window)

    assert fix_all_pinned_unpinned_order(tree) == 1
    assert window.children == [pinned, unpinned]
    assert fix_all_pinned_unpinned_order(tree) == 0


def test_same_key_pages_swap_to_match_positions() -> None:
    first = page_node(URL, live_id=11, window_id=1, index=1)
    second = page_node(URL, live_id=10, window_id=1, index=0)
    tree = make_tree(window_node(first, second, live_id=1))

    assert swap_pages_by_index(tree) == 1
    assert (first.live_id, first.index) == (10, 0)
    assert (second.live_id, second.index) == (11, 1)
    assert tree.get_by_live_id(10, kind=NodeKind.PAGE) is first
    assert tree.get_by_live_id(11, kind=NodeKind.PAGE) is second
    assert swap_pages_by_index(tree) == 0


def test_pages_move_to_the_window_their_tab_lives_in() -> None:
    wandering = page_node(URL, live_id=10, window_id=1, index=0)
    neighbour = page_node("https://example.com/n", live_id=20, window_id=2, index=0)
    first_window = window_node(wandering, page_node("https://example.com/x"), live_id=1)
    second_window = window_node(neighbour, live_id=2)
    session = ScenarioSession(
        [
            make_tab(10, URL, window_id=2, index=1),
            make_tab(20, "https://example.com/n", window_id=2, index=0),
        ]
    )
    tree = make_tree(first_window, second_window, session=session)

    moved = asyncio.run(move_pages_to_correct_windows(tree, session))

    assert moved == 1
    assert second_window.children == [neighbour, wandering]
    assert wandering.window_id == 2
    assert asyncio.run(move_pages_to_correct_windows(tree, session)) == 0
