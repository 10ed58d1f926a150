"""
Item Detail Fetcher
===================
Navigates to one item's page and extracts an ``ItemDetail``.

Failure boundaries:
- navigation errors and a missing content container propagate to the
  scheduler;
- any error while parsing the discussion tree is logged and the item
  continues with an empty discussion.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from playwright.async_api import Page

from .browser import get_attributes, navigate
from .comments import parse_comments
from .errors import ExtractionFailure
from .models import DiscussionNode, ItemDetail, ItemStub, PostAttributes, parse_score
from .progress import RunProgress

logger = logging.getLogger(__name__)

CONTENT_SELECTOR = "div.sitetable"
THING_SELECTOR = ".thing"
TITLE_SELECTOR = "a.title"
SCORE_SELECTOR = ".score.unvoted"
BODY_SELECTOR = "div.usertext-body"
COMMENTS_SELECTOR = "div.commentarea"


async def _inner_text(handle) -> Optional[str]:
    return await handle.inner_text() if handle else None


async def fetch_item_detail(
    page: Page,
    stub: ItemStub,
    progress: Optional[RunProgress] = None,
) -> ItemDetail:
    """Navigate to ``stub.url`` and extract the item's full record."""
    logger.info(f"[DETAIL] Getting details for {stub.id}")

    await navigate(page, stub.url)

    sitetable = await page.query_selector(CONTENT_SELECTOR)
    if sitetable is None:
        raise ExtractionFailure(f"No content container on {stub.url}")
    thing = await sitetable.query_selector(THING_SELECTOR)
    if thing is None:
        raise ExtractionFailure(f"No item entry on {stub.url}")

    post = PostAttributes.from_attributes(await get_attributes(thing))

    title = await _inner_text(await page.query_selector(TITLE_SELECTOR)) or ""
    score = parse_score(await _inner_text(await sitetable.query_selector(SCORE_SELECTOR)))
    body_text = await _inner_text(await sitetable.query_selector(BODY_SELECTOR)) or ""

    discussion: List[DiscussionNode] = []
    try:
        comment_area = await page.query_selector(COMMENTS_SELECTOR)
        if comment_area:
            discussion = await parse_comments(comment_area)
    except Exception as e:
        logger.error(f"[DETAIL] Error parsing comments for {stub.id}: {e}", exc_info=True)
        discussion = []
        if progress:
            progress.discussion_failed()

    detail = ItemDetail(
        stub=stub,
        media_type=post.media_type,
        media_url=post.media_url,
        is_promoted=post.is_promoted,
        is_gallery=post.is_gallery,
        title=title,
        score=score,
        body_text=body_text,
        discussion=tuple(discussion),
    )

    logger.info(f"[DETAIL] Got details for {stub.id} ({detail.comment_count} comments)")
    if progress:
        progress.item_done(stub.id, comments=detail.comment_count)
    return detail
