from __future__ import annotations

import asyncio

import pytest

from tabsync.adapters import InMemoryArchive, InMemoryPageTree, InvalidMoveError, NodeNotFoundError
from tabsync.adapters.scenario import ScenarioSession
from tabsync.domain.model import MoveRelation, NodeKind
from tests.helpers.engine import live_tab, make_tab, make_tree, page_node, window_node

URL = "https://example.com/"


def test_add_and_remove_keep_indexes_in_sync() -> None:
    page = page_node(URL, live_id=10, window_id=1, index=0)
    window = window_node(page, live_id=1)
    tree = make_tree(window)

    assert len(tree) == 2
    assert tree.get_node(page.id) is page
    assert tree.get_by_live_id(10, kind=NodeKind.PAGE) is page
    assert tree.get_by_live_id(1, kind=NodeKind.WINDOW) is window
    assert tree.get_by_live_id(1, kind=NodeKind.PAGE) is None

    tree.remove_node(window)

    assert len(tree) == 0
    assert tree.get_node(page.id) is None
    assert tree.get_by_live_id(10, kind=NodeKind.PAGE) is None


def test_require_node_raises_for_unknown_id() -> None:
    tree = InMemoryPageTree()

    with pytest.raises(NodeNotFoundError) as excinfo:
        tree.require_node("p-missing")

    assert str(excinfo.value) == "Node not found: p-missing"


def test_root_cannot_be_removed() -> None:
    tree = InMemoryPageTree()

    with pytest.raises(InvalidMoveError):
        tree.remove_node(tree.root)


def test_update_node_reindexes_live_id() -> None:
    page = page_node(URL, live_id=10, window_id=1, index=0)
    tree = make_tree(window_node(page, live_id=1))

    tree.update_node(page, live_id=11, referrer="https://ref.example/")

    assert tree.get_by_live_id(10, kind=NodeKind.PAGE) is None
    assert tree.get_by_live_id(11, kind=NodeKind.PAGE) is page
    assert page.referrer == "https://ref.example/"


@pytest.mark.parametrize("field", ["id", "children", "no_such_field"])
def test_update_node_rejects_protected_or_unknown_fields(field: str) -> None:
    page = page_node(URL)
    tree = make_tree(window_node(page))

    with pytest.raises(AttributeError):
        tree.update_node(page, **{field: "x"})


def test_move_node_relations() -> None:
    first = page_node("https://example.com/1")
    second = page_node("https://example.com/2")
    third = page_node("https://example.com/3")
    window = window_node(first, second)
    tree = make_tree(window, window_node(third))

    tree.move_node(third, MoveRelation.BEFORE, first)
    assert window.children == [third, first, second]

    tree.move_node(third, MoveRelation.AFTER, second)
    assert window.children == [first, second, third]

    tree.move_node(third, MoveRelation.PREPEND, first)
    assert first.children == [third]
    assert third.parent is first

    tree.move_node(third, MoveRelation.APPEND, window)
    assert window.children == [first, second, third]


def test_move_into_own_subtree_is_rejected() -> None:
    child = page_node("https://example.com/child")
    parent = page_node("https://example.com/parent", children=[child])
    tree = make_tree(window_node(parent))

    with pytest.raises(InvalidMoveError):
        tree.move_node(parent, MoveRelation.APPEND, child)
    with pytest.raises(InvalidMoveError):
        tree.move_node(parent, MoveRelation.AFTER, parent)


def test_merge_nodes_hands_over_children() -> None:
    moved = page_node("https://example.com/moved")
    source = window_node(moved)
    destination = window_node(page_node("https://example.com/kept"))
    tree = make_tree(source, destination)

    tree.merge_nodes(source, destination)

    assert tree.get_node(source.id) is None
    assert destination.children[-1] is moved
    assert moved.parent is destination


def test_remove_with_archive_and_take_back() -> None:
    child = page_node("https://example.com/child")
    closed = page_node(URL, session_guid="guid-1", children=[child])
    window = window_node(closed)
    tree = make_tree(window)

    tree.remove_node(window, archive=True)

    assert len(tree.archive) == 1
    found = tree.archive.find_by_session_guid("guid-1")
    assert found is closed

    taken = tree.archive.take(closed)

    assert taken.children == []
    assert window.children == [child]
    assert child.parent is window
    assert tree.archive.find_by_session_guid("guid-1") is None


def test_take_archive_root_promotes_children() -> None:
    archive = InMemoryArchive()
    child = page_node("https://example.com/child")
    closed = page_node(URL, children=[child])
    archive.add(closed)

    archive.take(closed)

    assert list(archive) == [child]
    assert child.parent is None


def test_queries_walk_in_tree_order() -> None:
    a = page_node("https://example.com/a", live_id=10, window_id=1, index=0)
    b = page_node("https://example.com/b")
    c = page_node("https://example.com/c", live_id=11, window_id=1, index=1)
    tree = make_tree(window_node(a, b, c, live_id=1))

    assert tree.find(lambda node: node.is_page) is a
    assert tree.filter(lambda node: node.is_tab) == [a, c]
    assert tree.reduce(lambda total, node: total + int(node.is_page), 0) == 3
    groups = tree.group_by(lambda node: node.hibernated if node.is_page else None)
    assert groups == {False: [a, c], True: [b]}


def test_tab_index_counts_only_bound_pages() -> None:
    a = page_node("https://example.com/a", live_id=10, window_id=1, index=0)
    sleeping = page_node("https://example.com/b")
    nested = page_node("https://example.com/n", live_id=12, window_id=1, index=1)
    c = page_node("https://example.com/c", live_id=11, window_id=1, index=2, children=[])
    a.children.append(nested)
    nested.parent = a
    tree = make_tree(window_node(a, sleeping, c, live_id=1))

    assert tree.get_tab_index(a) == 0
    assert tree.get_tab_index(nested) == 1
    assert tree.get_tab_index(c) == 2
    assert tree.get_tab_index(sleeping) is None


def test_add_tab_to_window_places_page_by_index() -> None:
    before = page_node("https://example.com/0", live_id=10, window_id=1, index=0)
    after = page_node("https://example.com/2", live_id=12, window_id=1, index=2)
    window = window_node(before, after, live_id=1)
    tree = make_tree(window)

    page, target = tree.add_tab_to_window(live_tab(11, URL, window_id=1, index=1))

    assert target is window
    assert window.children == [before, page, after]
    assert tree.get_by_live_id(11, kind=NodeKind.PAGE) is page


def test_add_tab_to_window_creates_missing_window() -> None:
    stored = page_node(URL)
    tree = make_tree(window_node(stored))

    page, window = tree.add_tab_to_window(live_tab(10, URL, window_id=9, index=0), stored)

    assert page is stored
    assert stored.hibernated is False
    assert stored.live_id == 10
    assert window.live_id == 9
    assert window.children == [stored]
    assert tree.get_by_live_id(9, kind=NodeKind.WINDOW) is window


def test_rebuild_indexes_recovers_from_direct_edits() -> None:
    page = page_node(URL, live_id=10, window_id=1, index=0)
    tree = make_tree(window_node(page, live_id=1))
    page.live_id = 20

    tree.rebuild_indexes()

    assert tree.get_by_live_id(20, kind=NodeKind.PAGE) is page
    assert tree.get_by_live_id(10, kind=NodeKind.PAGE) is None


def test_conform_tab_order_moves_host_tabs() -> None:
    session = ScenarioSession(
        [
            make_tab(10, "https://example.com/a", window_id=1, index=0),
            make_tab(11, "https://example.com/b", window_id=1, index=1),
            make_tab(12, "https://example.com/c", window_id=1, index=2),
        ]
    )
    c = page_node("https://example.com/c", live_id=12, window_id=1, index=2)
    b = page_node("https://example.com/b", live_id=11, window_id=1, index=1)
    a = page_node("https://example.com/a", live_id=10, window_id=1, index=0)
    tree = make_tree(window_node(c, b, a, live_id=1), session=session)

    asyncio.run(tree.conform_tab_order())

    assert session.moves == [(12, 0), (10, 2)]
    assert [c.index, b.index, a.index] == [0, 1, 2]
