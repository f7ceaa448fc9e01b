"""URL classes that change how a tab may be associated."""

from __future__ import annotations

import re
from typing import Final

NEW_TAB_URLS: Final[frozenset[str]] = frozenset(
    {"chrome://newtab/", "chrome://newtab", "about:newtab"}
)

_NON_SCRIPTABLE_SCHEME = re.compile(r"^(about|file|view-source|chrome.*):")
_WEB_STORE = re.compile(r"^https?://chrome\.google\.com/webstore")
_SEARCH_URL = re.compile(r"^https?://.*google.*/search\?q=")
_SEARCH_VOLATILE_PARAM = re.compile(r"sei=[a-zA-Z0-9]+")
_FRAGMENT = re.compile(r"#.+$")

# The host blanks out referrers of this shape on tabs recreated by a session
# restore or an undo-close.
BLANKABLE_REFERRER = re.compile(
    r"^http.+google.+/(search\?.*sugexp=chrome,mod=\d+&sourceid=chrome|url\?.*source=web)"
)


def is_scriptable_url(url: str) -> bool:
    """Whether a page at ``url`` can host the agent that answers detail requests."""

    return not (url == "" or _NON_SCRIPTABLE_SCHEME.match(url) or _WEB_STORE.match(url))


def is_new_tab_url(url: str) -> bool:
    return url in NEW_TAB_URLS


def is_search_url(url: str) -> bool:
    return _SEARCH_URL.match(url) is not None


def search_test_url(url: str) -> str:
    """Strip the tracking parameter and fragment that vary between restarts."""

    return _FRAGMENT.sub("", _SEARCH_VOLATILE_PARAM.sub("", url))


def comparable_referrer(referrer: str) -> str:
    if referrer and BLANKABLE_REFERRER.match(referrer):
        return ""
    return referrer
