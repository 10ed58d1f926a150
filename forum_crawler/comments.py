"""
Discussion Tree Extraction
==========================
Recursive descent over a comment section, returning owned
``DiscussionNode`` values.

Markup shape (old-style Reddit)::

    div.commentarea | div.child
      └─ div.sitetable
           └─ div.thing            ← one comment (data-fullname, data-author, class)
                ├─ div.entry
                │    ├─ p.tagline > span.score, time[datetime]
                │    └─ form > div.usertext-body > div.md
                └─ div.child       ← replies, same shape again

Only *direct* items of a container are returned at each level; deeper
replies are reached through recursion into each item's ``div.child``.
Handles are only read, never retained in the result.
"""

from __future__ import annotations

import logging
from typing import List

from .browser import get_attributes
from .models import CommentAttributes, DiscussionNode, parse_score

logger = logging.getLogger(__name__)

ITEMS_SELECTOR = ":scope > .sitetable > .thing"
CHILD_SELECTOR = ":scope > .child"
TIME_SELECTOR = ":scope > .entry time"
TEXT_SELECTOR = ":scope > .entry div.md"
SCORE_SELECTOR = ":scope > .entry span.score"


async def parse_comments(container) -> List[DiscussionNode]:
    """Parse the direct comment items of ``container`` into nodes.

    Errors propagate; the caller decides the failure boundary.
    """
    things = await container.query_selector_all(ITEMS_SELECTOR)
    nodes: List[DiscussionNode] = []
    logger.debug(f"[COMMENTS] {len(things)} items at this level")

    for thing in things:
        attrs = CommentAttributes.from_attributes(await get_attributes(thing))

        child_section = await thing.query_selector(CHILD_SELECTOR)
        children = await parse_comments(child_section) if child_section else []

        time_el = await thing.query_selector(TIME_SELECTOR)
        posted_at = (await time_el.get_attribute("datetime") or "") if time_el else ""

        text_el = await thing.query_selector(TEXT_SELECTOR)
        text = await text_el.inner_text() if text_el else ""

        score_el = await thing.query_selector(SCORE_SELECTOR)
        score = parse_score(await score_el.inner_text() if score_el else "")

        nodes.append(DiscussionNode(
            id=attrs.fullname,
            author=attrs.author,
            posted_at=posted_at,
            text=text,
            score=score,
            children=tuple(children),
            is_deleted=attrs.is_deleted,
            is_collapsed=attrs.is_collapsed,
        ))

    return nodes
