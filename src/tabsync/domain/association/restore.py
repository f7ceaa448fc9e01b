"""Binding live tabs onto persisted pages ("restoring" them)."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tabsync.domain.model import WINDOW_DEFAULT_TITLE, NodeKind

from .matching import MatchCriteria
from .repair import fix_pinned_unpinned_order

if TYPE_CHECKING:
    from tabsync.domain.model import LiveTab, TreeNode
    from tabsync.domain.ports import LiveSession, TreeStore

    from .matching import Matcher
    from .merge import WindowMerger
    from .timers import TimerRegistry

log = logging.getLogger(__name__)


class PageRestorer:
    def __init__(
        self,
        *,
        tree: TreeStore,
        session: LiveSession,
        matcher: Matcher,
        merger: WindowMerger,
        timers: TimerRegistry,
    ) -> None:
        self._tree = tree
        self._session = session
        self._matcher = matcher
        self._merger = merger
        self._timers = timers

    def restore_binding(self, tab: LiveTab, page: TreeNode) -> TreeNode:
        """Bind ``tab``'s volatile ids onto ``page`` and wake it up.

        Afterwards the page's top-level window is bound too when this page is
        enough to identify it (see ``restore_parent_window``).
        """

        log.debug("Restoring page %s as tab %s (%s)", page.id, tab.id, tab.url)
        self._tree.update_node(
            page,
            restored=True,
            hibernated=False,
            restorable=False,
            live_id=tab.id,
            window_id=tab.window_id,
            index=tab.index,
            pinned=tab.pinned,
        )
        self._timers.spawn(self._refresh_status(page, tab.id))

        if tab.active and self._session.focused_window_id() == tab.window_id:
            self._tree.focus_page(tab.id)

        self.restore_parent_window(page.top_parent(), page, tab.window_id)
        fix_pinned_unpinned_order(self._tree, page)
        return page

    def restore_parent_window(self, window: TreeNode, page: TreeNode, window_id: int) -> bool:
        """Infer a hibernated window's live id from one of its restored pages.

        Only safe when no other page anywhere in the tree shares ``page``'s
        key: then the tab can only have come from this window.
        """

        if not window.is_window or not window.hibernated:
            return False

        twin = self._matcher.find_match(
            MatchCriteria(
                url=page.url,
                title=page.title,
                referrer=page.referrer,
                history_length=page.history_length,
                pinned=page.pinned,
                incognito=page.incognito,
                exclude=page,
            )
        )
        if twin is not None:
            return False

        existing = self._tree.get_by_live_id(window_id, kind=NodeKind.WINDOW)
        if existing is not None and existing is not window:
            log.info("Merging live window node %s into restored window %s", existing.id, window.id)
            self.merge_nodes(existing, window)

        log.info("Restoring window node %s as window %s", window.id, window_id)
        self._tree.update_node(
            window,
            restorable=False,
            hibernated=False,
            live_id=window_id,
            title=WINDOW_DEFAULT_TITLE,
        )
        self._tree.expand_node(window)
        return True

    def merge_nodes(self, source: TreeNode, destination: TreeNode) -> None:
        """Collapse ``source`` into ``destination``, keeping tab order for windows."""

        if source.is_window and destination.is_window:
            self._merger.merge(source, destination)
        self._tree.merge_nodes(source, destination)

    async def _refresh_status(self, page: TreeNode, tab_id: int) -> None:
        tab = await self._session.get_tab(tab_id)
        if tab is None or page.live_id != tab_id:
            return
        if page.status != tab.status:
            self._tree.update_node(page, status=tab.status)
