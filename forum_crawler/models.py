"""
Crawl Data Model
================
Typed records produced by the crawler.

- ``ItemStub``       — one listing entry, produced by the listing crawl.
- ``ItemDetail``     — full record for one item, produced by the detail fetcher.
- ``DiscussionNode`` — one comment in a nested discussion tree.

All three are frozen: built once, never mutated, then serialized for the
sink via ``to_dict()`` / ``to_record()``.

The raw attribute maps read from the page are never passed around as
free-form dicts.  Each markup shape has an explicit schema
(``ListingAttributes``, ``PostAttributes``, ``CommentAttributes``) with
named fields and documented defaults.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Tuple
from urllib.parse import urljoin

# Leading signed integer of a token ("12", "-3", "1,234" -> 1)
_LEADING_INT = re.compile(r"^[+-]?\d+")


def parse_score(text: Optional[str]) -> int:
    """Parse the leading whitespace-delimited token of ``text`` as an int.

    Never raises: absent, empty or non-numeric text (e.g. the "•" shown
    for hidden scores) yields 0.
    """
    if not text:
        return 0
    tokens = text.split()
    if not tokens:
        return 0
    match = _LEADING_INT.match(tokens[0])
    if not match:
        return 0
    return int(match.group(0))


def millis_to_iso(millis: int) -> str:
    """Epoch milliseconds -> ISO 8601 UTC string."""
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc).isoformat()


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Attribute schemas
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ListingAttributes:
    """``data-*`` attributes of a listing entry (read via ``element.dataset``)."""
    fullname: str = ""
    subreddit_prefixed: str = ""
    timestamp: Optional[int] = None     # None when missing or non-numeric
    author: str = ""
    permalink: str = ""

    @classmethod
    def from_dataset(cls, dataset: Mapping[str, Any]) -> "ListingAttributes":
        raw_ts = dataset.get("timestamp")
        try:
            timestamp = int(raw_ts) if raw_ts not in (None, "") else None
        except (TypeError, ValueError):
            timestamp = None
        return cls(
            fullname=dataset.get("fullname") or "",
            subreddit_prefixed=dataset.get("subredditPrefixed") or "",
            timestamp=timestamp,
            author=dataset.get("author") or "",
            permalink=dataset.get("permalink") or "",
        )

    def to_stub(self, base_url: str) -> Optional["ItemStub"]:
        """Build an ``ItemStub``; None when the entry has no usable timestamp."""
        if self.timestamp is None:
            return None
        return ItemStub(
            id=self.fullname,
            community=self.subreddit_prefixed,
            posted_at_millis=self.timestamp,
            author=self.author,
            url=urljoin(base_url, self.permalink),
        )


@dataclass(frozen=True)
class PostAttributes:
    """Attributes of the primary ``.thing`` on an item's detail page."""
    media_type: str = ""
    media_url: Optional[str] = None
    is_promoted: bool = False
    is_gallery: bool = False

    @classmethod
    def from_attributes(cls, attrs: Mapping[str, str]) -> "PostAttributes":
        return cls(
            media_type=attrs.get("data-type", ""),
            media_url=attrs.get("data-url"),
            is_promoted=attrs.get("data-promoted") == "true",
            is_gallery=attrs.get("data-gallery") == "true",
        )


@dataclass(frozen=True)
class CommentAttributes:
    """Attributes of one comment ``.thing``.

    ``classes`` is the tokenized ``class`` attribute; flags are membership
    tests against it.
    """
    fullname: Optional[str] = None
    raw_author: str = ""
    classes: Tuple[str, ...] = ()

    @classmethod
    def from_attributes(cls, attrs: Mapping[str, str]) -> "CommentAttributes":
        return cls(
            fullname=attrs.get("data-fullname"),
            raw_author=attrs.get("data-author", ""),
            classes=tuple((attrs.get("class") or "").split()),
        )

    @property
    def is_deleted(self) -> bool:
        return "deleted" in self.classes

    @property
    def is_collapsed(self) -> bool:
        return "collapsed" in self.classes

    @property
    def author(self) -> str:
        return "" if self.is_deleted else self.raw_author


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ItemStub:
    """A single listing entry."""
    id: str
    community: str
    posted_at_millis: int
    author: str
    url: str

    @property
    def posted_at(self) -> str:
        return millis_to_iso(self.posted_at_millis)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'community': self.community,
            'posted_at': self.posted_at,
            'posted_at_millis': self.posted_at_millis,
            'author': self.author,
            'url': self.url,
        }


@dataclass(frozen=True)
class DiscussionNode:
    """One comment and its replies."""
    id: Optional[str] = None
    author: str = ""
    posted_at: str = ""
    text: str = ""
    score: int = 0
    children: Tuple["DiscussionNode", ...] = ()
    is_deleted: bool = False
    is_collapsed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'author': self.author,
            'posted_at': self.posted_at,
            'text': self.text,
            'score': self.score,
            'children': [c.to_dict() for c in self.children],
            'is_deleted': self.is_deleted,
            'is_collapsed': self.is_collapsed,
        }

    def walk(self):
        """Yield this node and every descendant, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass(frozen=True)
class ItemDetail:
    """Full extracted record for one item."""
    stub: ItemStub
    media_type: str = ""
    media_url: Optional[str] = None
    is_promoted: bool = False
    is_gallery: bool = False
    title: str = ""
    score: int = 0
    body_text: str = ""
    discussion: Tuple[DiscussionNode, ...] = field(default_factory=tuple)

    @property
    def id(self) -> str:
        return self.stub.id

    @property
    def comment_count(self) -> int:
        return sum(1 for top in self.discussion for _ in top.walk())

    def to_dict(self) -> Dict[str, Any]:
        data = self.stub.to_dict()
        data.update({
            'media_type': self.media_type,
            'media_url': self.media_url,
            'is_promoted': self.is_promoted,
            'is_gallery': self.is_gallery,
            'title': self.title,
            'score': self.score,
            'body_text': self.body_text,
            'discussion': [n.to_dict() for n in self.discussion],
        })
        return data

    def to_record(self, captured_at: str) -> Dict[str, Any]:
        """Sink payload: ``to_dict()`` plus the capture timestamp."""
        record = self.to_dict()
        record['captured_at'] = captured_at
        return record
