"""
Listing Crawl
=============
Walks a listing's pages newest-first and collects item stubs posted
after a cutoff.

State machine::

    FETCHING_PAGE ──(no stubs)──────────────────────────▶ DONE
         │
         ▼
    EVALUATING_CUTOFF ──(oldest stub on page < cutoff)──▶ DONE
         │
         ▼
    ADVANCING ──(no next-page control / page limit)─────▶ DONE
         │
         └──(navigate to next page)──▶ FETCHING_PAGE

Pages are assumed to list items in descending recency, so the last stub
on a page is the oldest on it.  This is not verified.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from playwright.async_api import Page

from .browser import navigate, page_size_bytes
from .models import ItemStub, ListingAttributes
from .progress import RunProgress

logger = logging.getLogger(__name__)

ITEM_SELECTOR = ".thing"
NEXT_PAGE_SELECTOR = ".next-button a"

# Copies each entry's data-* attributes into a plain object
_DATASETS_JS = "elements => elements.map(el => Object.assign({}, el.dataset))"
_HREF_JS = "el => el.href"


class CrawlState(str, Enum):
    FETCHING_PAGE = "fetching_page"
    EVALUATING_CUTOFF = "evaluating_cutoff"
    ADVANCING = "advancing"
    DONE = "done"


@dataclass
class ListingCrawl:
    """Result of a listing crawl."""
    stubs: List[ItemStub] = field(default_factory=list)
    collected: int = 0          # stubs seen before cutoff filtering
    pages_visited: int = 0
    stop_reason: str = ""
    cutoff_millis: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'stubs': [s.to_dict() for s in self.stubs],
            'collected': self.collected,
            'pages_visited': self.pages_visited,
            'stop_reason': self.stop_reason,
            'cutoff_millis': self.cutoff_millis,
        }


def stubs_from_datasets(datasets: List[Dict[str, Any]], base_url: str) -> List[ItemStub]:
    """Convert raw listing datasets into stubs, dropping entries without a timestamp."""
    stubs: List[ItemStub] = []
    for dataset in datasets:
        stub = ListingAttributes.from_dataset(dataset).to_stub(base_url)
        if stub is None:
            logger.warning(
                f"[LISTING] Skipping entry {dataset.get('fullname', '?')} — "
                f"missing or non-numeric timestamp"
            )
            continue
        stubs.append(stub)
    return stubs


async def get_stubs_on_page(page: Page) -> List[ItemStub]:
    """Read every listing entry on the current page."""
    logger.info("[LISTING] Getting posts for page")
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"[LISTING] Page size: {await page_size_bytes(page):,} bytes")
    datasets = await page.eval_on_selector_all(ITEM_SELECTOR, _DATASETS_JS)
    return stubs_from_datasets(datasets, page.url)


def filter_after_cutoff(stubs: List[ItemStub], cutoff_millis: int) -> List[ItemStub]:
    return [s for s in stubs if s.posted_at_millis > cutoff_millis]


def dedupe_by_id(stubs: List[ItemStub]) -> List[ItemStub]:
    """Keep the first occurrence of each item id, preserving order."""
    seen = set()
    unique: List[ItemStub] = []
    for stub in stubs:
        if stub.id in seen:
            continue
        seen.add(stub.id)
        unique.append(stub)
    return unique


async def crawl_listing(
    page: Page,
    listing_url: str,
    cutoff_millis: int,
    max_pages: Optional[int] = None,
    dedupe: bool = False,
    progress: Optional[RunProgress] = None,
) -> ListingCrawl:
    """
    Crawl listing pages starting at ``listing_url``.

    Returns every collected stub with ``posted_at_millis > cutoff_millis``,
    in listing order.
    """
    result = ListingCrawl(cutoff_millis=cutoff_millis)
    collected: List[ItemStub] = []

    await navigate(page, listing_url)
    logger.info(f"[LISTING] Connected to {listing_url}")

    state = CrawlState.FETCHING_PAGE
    page_stubs: List[ItemStub] = []

    while state is not CrawlState.DONE:
        if state is CrawlState.FETCHING_PAGE:
            page_stubs = await get_stubs_on_page(page)
            result.pages_visited += 1
            if not page_stubs:
                result.stop_reason = "empty page"
                state = CrawlState.DONE
                continue
            collected.extend(page_stubs)
            state = CrawlState.EVALUATING_CUTOFF

        elif state is CrawlState.EVALUATING_CUTOFF:
            oldest = page_stubs[-1]
            if oldest.posted_at_millis < cutoff_millis:
                result.stop_reason = "cutoff reached"
                state = CrawlState.DONE
            else:
                state = CrawlState.ADVANCING

        elif state is CrawlState.ADVANCING:
            if max_pages is not None and result.pages_visited >= max_pages:
                result.stop_reason = f"page limit reached ({max_pages})"
                state = CrawlState.DONE
                continue
            next_button = await page.query_selector(NEXT_PAGE_SELECTOR)
            if not next_button:
                result.stop_reason = "no next page"
                state = CrawlState.DONE
                continue
            next_url = await next_button.evaluate(_HREF_JS)
            logger.info(f"[LISTING] Advancing to {next_url}")
            await navigate(page, next_url)
            state = CrawlState.FETCHING_PAGE

    result.collected = len(collected)
    stubs = filter_after_cutoff(collected, cutoff_millis)
    if dedupe:
        stubs = dedupe_by_id(stubs)
    result.stubs = stubs

    logger.info(
        f"[LISTING] Done after {result.pages_visited} pages ({result.stop_reason}): "
        f"{len(stubs)}/{result.collected} posts within cutoff"
    )
    if progress:
        progress.listing_pages = result.pages_visited
        progress.stubs_collected = result.collected
        progress.stubs_in_window = len(stubs)
        progress.stop_reason = result.stop_reason
    return result
