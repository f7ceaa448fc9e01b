"""Fuzzy matching of live tabs against persisted page nodes.

A page is identified across restarts by its fuzzy key (url, referrer, history
length, pinned, incognito) since the host hands out fresh tab ids every
session. Two host quirks are absorbed here:
- search result urls gain a tracking parameter and fragment that change on
  every restart, so both sides are compared with those stripped
- some referrers are blanked by the host on restore, so such a referrer
  compares equal to an empty one; pinned tabs ignore the referrer entirely
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tabsync.domain.model import NodeKind

from .urls import comparable_referrer, is_scriptable_url, is_search_url, search_test_url

if TYPE_CHECKING:
    from tabsync.domain.model import LiveTab, TreeNode
    from tabsync.domain.ports import TreeStore

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True, kw_only=True)
class MatchCriteria:
    """What a candidate page must satisfy; ``None`` leaves a field unchecked."""

    url: str
    referrer: str | None = None
    history_length: int | None = None
    title: str | None = None
    pinned: bool | None = None
    incognito: bool | None = None
    must_be_hibernated: bool = False
    must_be_restorable: bool = False
    top_parent_must_be_real_or_restorable_window: bool = False
    exclude: TreeNode | None = None

    @classmethod
    def restorable_for_tab(
        cls,
        tab: LiveTab,
        *,
        referrer: str | None = None,
        history_length: int | None = None,
        require_window: bool = True,
    ) -> MatchCriteria:
        return cls(
            url=tab.url,
            referrer=referrer,
            history_length=history_length,
            pinned=tab.pinned,
            incognito=tab.incognito,
            must_be_hibernated=True,
            must_be_restorable=True,
            top_parent_must_be_real_or_restorable_window=require_window,
        )


class Matcher:
    def __init__(self, tree: TreeStore) -> None:
        self._tree = tree

    def find_match(self, criteria: MatchCriteria) -> TreeNode | None:
        """Return the first page satisfying ``criteria`` in tree order."""

        return self._tree.find(lambda node: self.matches(node, criteria))

    def find_all(self, criteria: MatchCriteria) -> list[TreeNode]:
        return self._tree.filter(lambda node: self.matches(node, criteria))

    def best_match(self, criteria: MatchCriteria, *, index: int | None) -> TreeNode | None:
        """Like ``find_match`` but prefer a candidate stored at ``index``."""

        candidates = self.find_all(criteria)
        if not candidates:
            return None
        for candidate in candidates:
            if candidate.index == index:
                return candidate
        return candidates[0]

    def matches(self, node: TreeNode, criteria: MatchCriteria) -> bool:
        if node.kind is not NodeKind.PAGE:
            return False
        if not _url_matches(criteria.url, node.url):
            return False

        matched = (
            (not criteria.must_be_hibernated or node.hibernated)
            and (not criteria.must_be_restorable or node.restorable)
            and (not criteria.title or node.title == criteria.title)
            and (criteria.incognito is None or node.incognito == criteria.incognito)
            and (criteria.pinned is None or node.pinned == criteria.pinned)
            and (criteria.history_length is None or node.history_length == criteria.history_length)
            and (criteria.exclude is None or node is not criteria.exclude)
        )
        if not matched:
            return False

        if criteria.top_parent_must_be_real_or_restorable_window:
            top_parent = node.top_parent()
            if not top_parent.is_window:
                return False
            if top_parent.hibernated and not top_parent.restorable:
                return False

        return _referrer_matches(criteria, node)

    def fast_candidates(self, tab: LiveTab, *, must_be_restorable: bool) -> list[TreeNode]:
        """Hibernated pages equal to ``tab`` on url, position, incognito and pinned.

        When a window node is already bound to the tab's window, only its
        subtree is searched.
        """

        window = self._tree.get_by_live_id(tab.window_id, kind=NodeKind.WINDOW)
        scope = list(window.children) if window is not None else None
        return self._tree.filter(
            lambda node: (
                node.is_page
                and node.hibernated
                and (not must_be_restorable or node.restorable)
                and node.url == tab.url
                and node.index == tab.index
                and node.incognito == tab.incognito
                and node.pinned == tab.pinned
            ),
            scope,
        )

    def fast_match(self, tab: LiveTab, *, must_be_restorable: bool) -> TreeNode | None:
        """Pick a page for ``tab`` without asking it for details, if safe to do so.

        A lone candidate always wins. Several candidates are only accepted for
        tabs that can never answer a detail request, since no better signal
        will ever arrive for them.
        """

        candidates = self.fast_candidates(tab, must_be_restorable=must_be_restorable)
        if len(candidates) == 1:
            return candidates[0]
        if candidates and not is_scriptable_url(tab.url):
            log.debug(
                "Fast match picked first of %s candidates for non-scriptable tab %s",
                len(candidates),
                tab.id,
            )
            return candidates[0]
        return None


def _url_matches(wanted: str, actual: str) -> bool:
    if not is_search_url(wanted):
        return wanted == actual
    if not is_search_url(actual):
        return False
    return search_test_url(wanted) == search_test_url(actual)


def _referrer_matches(criteria: MatchCriteria, node: TreeNode) -> bool:
    if criteria.referrer is None or criteria.referrer == node.referrer:
        return True
    if criteria.pinned and node.pinned:
        return True
    return comparable_referrer(criteria.referrer) == comparable_referrer(node.referrer)
