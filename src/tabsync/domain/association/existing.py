"""Folding an already-bound page into its restorable twin.

Used when a page was given a fresh node (for instance because its tab
appeared before the persisted tree was loaded) and a hibernated, restorable
node for the same page exists. The tab is asked for its details; when the
agent's channel is not up yet the request is retried a bounded number of
times.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tabsync.domain.model import DetailAction, DetailRequest, MoveRelation, NodeKind

from .matching import MatchCriteria

if TYPE_CHECKING:
    from tabsync.config import AssociationConfig
    from tabsync.domain.model import LiveTab, TreeNode
    from tabsync.domain.ports import LiveSession, RecentlyClosedRegistry, TreeStore

    from .matching import Matcher
    from .reconcile import Reconciler
    from .restore import PageRestorer
    from .timers import TimerRegistry

log = logging.getLogger(__name__)


def retry_label(tab_id: int) -> str:
    return f"associate-existing:{tab_id}"


class ExistingPageAssociator:
    def __init__(
        self,
        *,
        tree: TreeStore,
        session: LiveSession,
        matcher: Matcher,
        restorer: PageRestorer,
        reconciler: Reconciler,
        timers: TimerRegistry,
        config: AssociationConfig,
        recently_closed: RecentlyClosedRegistry | None = None,
    ) -> None:
        self._tree = tree
        self._session = session
        self._matcher = matcher
        self._restorer = restorer
        self._reconciler = reconciler
        self._timers = timers
        self._config = config
        self._recently_closed = recently_closed
        self._retries: dict[int, int] = {}

    def retries(self, tab_id: int) -> int:
        return self._retries.get(tab_id, 0)

    def request(self, page: TreeNode) -> bool:
        """Ask ``page``'s tab for its details; return whether the request went out."""

        tab_id = page.live_id
        if tab_id is None:
            log.error("No tab id available for page %s", page.id)
            return False

        if self._session.request_details(tab_id, DetailRequest(DetailAction.ASSOCIATE_EXISTING)):
            self._retries.pop(tab_id, None)
            return True

        current = self._tree.get_node(page.id)
        if current is None:
            log.debug("Page %s no longer exists to get details from", page.id)
            self._retries.pop(tab_id, None)
            return False

        tries = self._retries.get(tab_id, 0)
        if tries >= self._config.details_max_retries:
            log.error("Exceeded max retries for getting details of tab %s (page %s)", tab_id, page.id)
            self._retries.pop(tab_id, None)
            return False

        log.debug("No channel to tab %s yet, retrying shortly (attempt %s)", tab_id, tries + 1)
        self._retries[tab_id] = tries + 1
        self._timers.reset(
            retry_label(tab_id),
            self._config.details_retry_wait_ms,
            lambda: self._retry(current),
        )
        return False

    def associate(
        self,
        tab: LiveTab,
        *,
        referrer: str | None = None,
        history_length: int | None = None,
        session_guid: str | None = None,
    ) -> TreeNode | None:
        existing = self._tree.get_by_live_id(tab.id, kind=NodeKind.PAGE)
        log.debug(
            "Associating existing page %s for tab %s (referrer=%r history_length=%s)",
            existing.id if existing is not None else None,
            tab.id,
            referrer,
            history_length,
        )
        if existing is None:
            return None

        if session_guid and self._recently_closed is not None:
            closed = self._recently_closed.find_by_session_guid(session_guid)
            if closed is not None:
                self._recently_closed.take(closed)
                return self._reopen(tab, existing, closed)

        match = self._matcher.find_match(
            MatchCriteria(
                url=tab.url,
                referrer=referrer,
                history_length=history_length,
                pinned=tab.pinned,
                incognito=tab.incognito,
                must_be_hibernated=True,
                must_be_restorable=True,
            )
        )
        if match is None:
            log.debug("No restorable match for existing page %s", existing.id)
            return None

        log.info("Merging existing page %s into restorable page %s", existing.id, match.id)
        self._tree.merge_nodes(existing, match)
        self._restorer.restore_binding(tab, match)
        if referrer is not None:
            self._tree.update_node(match, referrer=referrer)
        if history_length is not None:
            self._tree.update_node(match, history_length=history_length)

        self._reconciler.schedule(self._config.existing_reconcile_delay_ms)
        return match

    def _retry(self, page: TreeNode) -> None:
        self.request(page)

    def _reopen(self, tab: LiveTab, existing: TreeNode, closed: TreeNode) -> TreeNode:
        """Put an archived node back where ``existing`` sits and bind it to ``tab``."""

        log.info("Reopening archived page %s in place of page %s", closed.id, existing.id)
        self._tree.add_node(closed, existing.parent)
        self._tree.move_node(closed, MoveRelation.BEFORE, existing, quiet=True)
        self._tree.merge_nodes(existing, closed)
        self._restorer.restore_binding(tab, closed)
        return closed
