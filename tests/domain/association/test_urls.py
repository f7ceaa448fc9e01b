from __future__ import annotations

import pytest

from tabsync.domain.association.urls import (
    comparable_referrer,
    is_new_tab_url,
    is_scriptable_url,
    is_search_url,
    search_test_url,
)


@pytest.mark.parametrize(
    "url",
    [
        "",
        "about:blank",
        "chrome://newtab/",
        "chrome://settings/",
        "chrome-extension://abc/page.html",
        "file:///home/user/notes.txt",
        "view-source:https://example.com/",
        "https://chrome.google.com/webstore/detail/xyz",
    ],
)
def test_non_scriptable_urls(url: str) -> None:
    assert is_scriptable_url(url) is False


def test_scriptable_url() -> None:
    assert is_scriptable_url("https://example.com/page") is True


def test_new_tab_url() -> None:
    assert is_new_tab_url("chrome://newtab/") is True
    assert is_new_tab_url("https://example.com/") is False


def test_search_url_strips_volatile_parts() -> None:
    first = "https://www.google.com/search?q=python&sei=AbC123#top"
    second = "https://www.google.com/search?q=python&sei=XyZ987"

    assert is_search_url(first)
    assert search_test_url(first) == search_test_url(second)
    assert not is_search_url("https://example.com/search?q=python")


def test_blankable_referrer_compares_as_empty() -> None:
    assert comparable_referrer("https://www.google.com/url?sa=t&source=web&cd=1") == ""
    assert comparable_referrer("https://example.com/") == "https://example.com/"
    assert comparable_referrer("") == ""
