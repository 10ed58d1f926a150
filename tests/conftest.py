"""
Shared fakes for the crawler tests.

The fakes stand in for Playwright handles: ``FakeElement`` answers
``query_selector`` / ``query_selector_all`` from a selector → elements
map, ``FakePage`` serves a dict of URL → document root, and
``FakeLauncher`` hands out sessions whose open/close calls are recorded.
"""

import asyncio
from typing import Dict, List, Optional

import pytest
from playwright.async_api import Error as PlaywrightError

from forum_crawler import comments, detail, listing
from forum_crawler.errors import PublishFailure
from forum_crawler.models import ItemStub

NOW = 1_700_000_000_000
HOUR = 60 * 60 * 1000
CUTOFF = NOW - 24 * HOUR
BASE = "https://old.reddit.com"
LISTING_URL = f"{BASE}/r/rust/new/"


# ====================================================================
# DOM fakes
# ====================================================================

class FakeElement:
    """Element handle backed by a selector → [FakeElement] map."""

    def __init__(self, attrs=None, text="", children=None, dataset=None, fail_on=None):
        self.attrs = dict(attrs or {})
        self.text = text
        self.children: Dict[str, List["FakeElement"]] = dict(children or {})
        self.dataset = dict(dataset or {})
        self.fail_on = fail_on          # selector that raises when queried
        self.attribute_reads = 0

    def _check(self, selector):
        if self.fail_on == selector:
            raise RuntimeError(f"query failed: {selector}")

    async def query_selector(self, selector):
        self._check(selector)
        items = self.children.get(selector) or []
        return items[0] if items else None

    async def query_selector_all(self, selector):
        self._check(selector)
        return list(self.children.get(selector, []))

    async def evaluate(self, expression, arg=None):
        if "attributes" in expression:
            self.attribute_reads += 1
            return dict(self.attrs)
        if "href" in expression:
            return self.attrs.get("href")
        raise AssertionError(f"unexpected expression: {expression}")

    async def get_attribute(self, name):
        return self.attrs.get(name)

    async def inner_text(self):
        return self.text


class FakePage:
    """Page serving ``site[url]`` document roots."""

    def __init__(self, site: Dict[str, FakeElement], fail_urls=None, delays=None):
        self.site = site
        self.fail_urls = set(fail_urls or ())
        self.delays = dict(delays or {})
        self.url = "about:blank"
        self.visits: List[str] = []

    async def goto(self, url):
        self.visits.append(url)
        if url in self.delays:
            await asyncio.sleep(self.delays[url])
        if url in self.fail_urls:
            raise PlaywrightError(f"net::ERR_CONNECTION_RESET at {url}")
        self.url = url

    def _root(self) -> FakeElement:
        return self.site.get(self.url) or FakeElement()

    async def query_selector(self, selector):
        return await self._root().query_selector(selector)

    async def eval_on_selector_all(self, selector, expression):
        return [el.dataset for el in self._root().children.get(selector, [])]

    async def content(self):
        return "<html></html>"


# ====================================================================
# Session fakes
# ====================================================================

class FakeSession:
    """Mimics ``BrowserSession``: idempotent close, async context manager."""

    def __init__(self, launcher: "FakeLauncher", label: str):
        self.launcher = launcher
        self.label = label
        self.page: Optional[FakePage] = None
        self.close_calls = 0
        self.releases = 0
        self._closed = False

    async def open(self):
        self.launcher.opened.append(self.label)
        self.launcher.active += 1
        self.launcher.peak = max(self.launcher.peak, self.launcher.active)
        if self.launcher.on_open is not None:
            await self.launcher.on_open(self)
        else:
            await asyncio.sleep(0)
        self.page = self.launcher.make_page()
        return self.page

    async def close(self):
        self.close_calls += 1
        if self._closed:
            return
        self._closed = True
        self.releases += 1
        self.launcher.active -= 1

    @property
    def closed(self):
        return self._closed

    async def __aenter__(self):
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()


class FakeLauncher:
    """Hands out ``FakeSession`` objects over one shared fake site."""

    def __init__(self, site, fail_urls=None, delays=None, on_open=None):
        self.site = site
        self.fail_urls = fail_urls
        self.delays = delays
        self.on_open = on_open
        self.sessions: List[FakeSession] = []
        self.opened: List[str] = []
        self.active = 0
        self.peak = 0

    def make_page(self) -> FakePage:
        return FakePage(self.site, fail_urls=self.fail_urls, delays=self.delays)

    def session(self, label="session") -> FakeSession:
        s = FakeSession(self, label)
        self.sessions.append(s)
        return s


class MemorySink:
    """Records every publish call."""

    def __init__(self, fail_on_id=None):
        self.calls: List[List[dict]] = []
        self.kinds: List[str] = []
        self.fail_on_id = fail_on_id
        self.closed = False

    @property
    def records(self):
        return [r for call in self.calls for r in call]

    async def publish_one(self, record):
        if record.get("id") == self.fail_on_id:
            raise PublishFailure(f"rejected {record['id']}")
        self.calls.append([record])
        self.kinds.append("one")

    async def publish_many(self, records):
        self.calls.append(list(records))
        self.kinds.append("many")

    def close(self):
        self.closed = True


# ====================================================================
# Markup builders
# ====================================================================

def make_comment(fullname, author="alice", classes="thing comment noncollapsed",
                 text="hello", score="3 points", posted_at="2023-11-14T20:00:00+00:00",
                 replies=None):
    children = {}
    if posted_at is not None:
        children[comments.TIME_SELECTOR] = [FakeElement(attrs={"datetime": posted_at})]
    if text is not None:
        children[comments.TEXT_SELECTOR] = [FakeElement(text=text)]
    if score is not None:
        children[comments.SCORE_SELECTOR] = [FakeElement(text=score)]
    if replies is not None:
        children[comments.CHILD_SELECTOR] = [make_container(*replies)]
    attrs = {"class": classes, "data-author": author}
    if fullname is not None:
        attrs["data-fullname"] = fullname
    return FakeElement(attrs=attrs, children=children)


def make_container(*things):
    return FakeElement(children={comments.ITEMS_SELECTOR: list(things)})


def make_post_page(title="A post", score="42", body="Body text", data_type="self",
                   data_url=None, promoted="false", gallery="false", discussion=None,
                   comment_area=None):
    attrs = {"data-type": data_type, "data-promoted": promoted, "data-gallery": gallery}
    if data_url is not None:
        attrs["data-url"] = data_url
    sitetable_children = {detail.THING_SELECTOR: [FakeElement(attrs=attrs)]}
    if score is not None:
        sitetable_children[detail.SCORE_SELECTOR] = [FakeElement(text=score)]
    if body is not None:
        sitetable_children[detail.BODY_SELECTOR] = [FakeElement(text=body)]
    root_children = {
        detail.CONTENT_SELECTOR: [FakeElement(children=sitetable_children)],
        detail.TITLE_SELECTOR: [FakeElement(text=title)],
    }
    if comment_area is not None:
        root_children[detail.COMMENTS_SELECTOR] = [comment_area]
    elif discussion is not None:
        root_children[detail.COMMENTS_SELECTOR] = [make_container(*discussion)]
    return FakeElement(children=root_children)


def make_entry(item_id, posted_at_millis, author="ferris", community="r/rust"):
    return FakeElement(dataset={
        "fullname": item_id,
        "subredditPrefixed": community,
        "timestamp": str(posted_at_millis),
        "author": author,
        "permalink": f"/r/rust/comments/{item_id}/post/",
    })


def make_listing_page(entries, next_url=None):
    children = {listing.ITEM_SELECTOR: list(entries)}
    if next_url:
        children[listing.NEXT_PAGE_SELECTOR] = [FakeElement(attrs={"href": next_url})]
    return FakeElement(children=children)


def post_url(item_id):
    return f"{BASE}/r/rust/comments/{item_id}/post/"


def make_stubs(count, prefix="t3_"):
    return [
        ItemStub(
            id=f"{prefix}{i}",
            community="r/rust",
            posted_at_millis=NOW - i * 1000,
            author="ferris",
            url=post_url(f"{prefix}{i}"),
        )
        for i in range(count)
    ]


def site_for(stubs):
    return {s.url: make_post_page(title=f"Title {s.id}") for s in stubs}


@pytest.fixture
def memory_sink():
    return MemorySink()
