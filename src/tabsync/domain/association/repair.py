"""Structural repair passes over the persisted tree.

Each function is idempotent: running it on a tree that already satisfies its
invariant changes nothing and returns 0 (or ``False``).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tabsync.domain.model import MoveRelation, NodeKind, WindowType, new_window_node
from tabsync.domain.ports import REMEMBER_OPEN_PAGES_SETTING

if TYPE_CHECKING:
    from collections.abc import Callable

    from tabsync.domain.model import TreeNode
    from tabsync.domain.ports import LiveSession, SettingsStore, TreeStore

log = logging.getLogger(__name__)


async def fix_bad_nodes(tree: TreeStore, session: LiveSession) -> int:
    """Relocate nodes sitting at a depth they are not allowed at.

    Pages stuck directly under the root go into the nearest preceding (else
    following) normal window, or a freshly created one. Windows nested below
    another node go back to the root.
    """

    fixed = 0
    root_children = list(tree.root.children)
    for position in range(len(root_children) - 1, -1, -1):
        stray = root_children[position]
        if stray.is_window:
            continue
        window = _nearest_window(root_children, position)
        if window is None:
            log.info("No window to put stray node %s into, creating one", stray.id)
            window = new_window_node(stray.window_id, incognito=stray.incognito)
            window.hibernated = stray.window_id is None
            tree.add_node(window)
            root_children.append(window)
        log.info("Fixing stray node %s, appending it to window %s", stray.id, window.id)
        tree.move_node(stray, MoveRelation.APPEND, window, quiet=True)
        fixed += 1

    nested = tree.filter(
        lambda node: node.is_window and node.parent is not None and not node.parent.is_root
    )
    for window in reversed(nested):
        log.info("Fixing nested window node %s, appending it to root", window.id)
        tree.move_node(window, MoveRelation.APPEND, tree.root, quiet=True)
        fixed += 1
    if nested:
        fixed += await move_pages_to_correct_windows(tree, session)
    return fixed


def _nearest_window(nodes: list[TreeNode], position: int) -> TreeNode | None:
    for node in reversed(nodes[:position]):
        if node.is_window and node.window_type is not WindowType.POPUP:
            return node
    for node in nodes[position + 1 :]:
        if node.is_window and node.window_type is not WindowType.POPUP:
            return node
    return None


async def move_pages_to_correct_windows(tree: TreeStore, session: LiveSession) -> int:
    """Put every bound page under the window node bound to its live window."""

    await tree.rebuild_page_window_ids()
    tabs = await session.query_tabs()
    moved = 0
    for tab in tabs:
        if session.is_control_surface(tab):
            continue

        page = tree.get_by_live_id(tab.id, kind=NodeKind.PAGE)
        if page is None or page.hibernated:
            log.error("Open tab %s (%s) has no page node in the tree", tab.id, tab.url)
            continue

        top_parent = page.top_parent()
        if not top_parent.is_window or top_parent.hibernated:
            continue
        if top_parent.live_id == tab.window_id:
            continue

        log.info("Page %s is under the wrong window node %s, moving it", page.id, top_parent.id)
        moved += 1

        following = tree.find(_tab_in_window_at(tab.window_id, tab.index + 1))
        if following is not None:
            tree.move_node(page, MoveRelation.BEFORE, following)
            continue

        preceding = tree.find(_tab_in_window_at(tab.window_id, tab.index - 1))
        if preceding is not None:
            tree.move_node(page, MoveRelation.AFTER, preceding)
            continue

        tree.add_tab_to_window(tab, page)
    return moved


def _tab_in_window_at(window_id: int, index: int) -> Callable[[TreeNode], bool]:
    def predicate(node: TreeNode) -> bool:
        return (
            node.is_tab
            and node.window_id == window_id
            and node.top_parent().live_id == window_id
            and node.index == index
        )

    return predicate


def remove_zero_child_windows(tree: TreeStore) -> int:
    empty = tree.filter(lambda node: node.is_window and not node.children)
    for window in reversed(empty):
        log.info("Removing zero-child window node %s", window.id)
        tree.remove_node(window)
    return len(empty)


def remove_old_windows(tree: TreeStore, settings: SettingsStore) -> int:
    """Archive leftover windows of an earlier session, or clear their ``old`` flag."""

    remember_open_pages = bool(settings.get(REMEMBER_OPEN_PAGES_SETTING, False))
    windows = [node for node in tree.root.children if node.is_window]
    young = [node for node in windows if node.hibernated and node.restorable and not node.old]
    removed = 0
    for window in windows:
        if not window.old:
            continue
        if window.hibernated and (not remember_open_pages or young):
            log.info("Archiving old window node %s", window.id)
            tree.remove_node(window, archive=True)
            removed += 1
            continue
        tree.update_node(window, old=False)
    return removed


def fix_pinned_unpinned_order(tree: TreeStore, page: TreeNode) -> bool:
    """Keep pinned pages ahead of unpinned siblings; return whether ``page`` moved."""

    if not page.is_tab or page.parent is None or page.parent.is_root:
        return False
    siblings = [node for node in page.parent.children if node.is_page]
    position = siblings.index(page)

    if page.pinned:
        first_unpinned = next((node for node in siblings[:position] if not node.pinned), None)
        if first_unpinned is None:
            return False
        tree.move_node(page, MoveRelation.BEFORE, first_unpinned)
        return True

    last_pinned = next(
        (node for node in reversed(siblings[position + 1 :]) if node.pinned), None
    )
    if last_pinned is None:
        return False
    tree.move_node(page, MoveRelation.AFTER, last_pinned)
    return True


def fix_all_pinned_unpinned_order(tree: TreeStore) -> int:
    moved = 0
    for window in list(tree.root.children):
        for page in list(window.children):
            if fix_pinned_unpinned_order(tree, page):
                moved += 1
    return moved


def swap_pages_by_index(tree: TreeStore) -> int:
    """Within a window, hand live tabs to the same-key page at the matching position."""

    groups = tree.group_by(_window_scoped_key)
    swaps = 0
    for items in groups.values():
        if len(items) < 2:
            continue
        for item in items:
            if item.index == tree.get_tab_index(item):
                continue
            partner = next(
                (
                    node
                    for node in items
                    if node is not item and tree.get_tab_index(node) == item.index
                ),
                None,
            )
            if partner is None:
                continue
            log.info(
                "Swapping pages %s and %s for index correction (%s <-> %s)",
                item.id,
                partner.id,
                item.index,
                partner.index,
            )
            item_index, item_live_id = item.index, item.live_id
            tree.update_node(item, index=partner.index, live_id=partner.live_id)
            tree.update_node(partner, index=item_index, live_id=item_live_id)
            swaps += 1
    return swaps


def _window_scoped_key(node: TreeNode) -> tuple[object, ...] | None:
    if not node.is_tab:
        return None
    return (node.top_parent().id, *node.fuzzy_key)
