"""
Run Orchestration
=================
One run = listing crawl → detail fetching → publishing.

Entry points:
- ``main()``                    — direct invocation, runs to completion.
- ``handler(event, context)``   — request/response wrapper; never raises,
                                  returns ``{"success": bool}``.

Mode is selected by ``RunConfig.connection_url``:
- unset → local browser, the listing page is reused to fetch items one
  by one (sequential mode);
- set   → the listing session is closed first, then every group of items
  gets its own remote session (batched-concurrent mode).
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from playwright.async_api import async_playwright

from .browser import BrowserLauncher
from .listing import ListingCrawl, crawl_listing
from .models import ItemDetail
from .progress import RunMetrics, RunProgress
from .run_config import RunConfig
from .scheduler import FetchScheduler
from .sinks import MessageSink, build_sink

logger = logging.getLogger(__name__)


@dataclass
class RunReport:
    """Outcome of a completed run."""
    listing: ListingCrawl
    details: List[ItemDetail] = field(default_factory=list)
    metrics: Optional[RunMetrics] = None
    mode: str = "sequential"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'mode': self.mode,
            'listing_pages': self.listing.pages_visited,
            'stop_reason': self.listing.stop_reason,
            'posts': len(self.listing.stubs),
            'fetched': len(self.details),
        }


def now_millis() -> int:
    return int(time.time() * 1000)


async def execute(
    config: RunConfig,
    sink: MessageSink,
    launcher,
    started_at_millis: Optional[int] = None,
    progress: Optional[RunProgress] = None,
) -> RunReport:
    """Run listing crawl + detail fetching with an existing launcher."""
    progress = progress or RunProgress()
    started = started_at_millis if started_at_millis is not None else now_millis()
    cutoff = started - config.cutoff_millis
    mode = "batched" if config.remote_sessions else "sequential"

    config.log_summary()
    logger.info("[RUN] Launching browser...")
    listing_session = launcher.session("LISTING")
    try:
        page = await listing_session.open()
        listing = await crawl_listing(
            page,
            config.listing_url,
            cutoff,
            max_pages=config.max_listing_pages,
            dedupe=config.dedupe_stubs,
            progress=progress,
        )

        scheduler = FetchScheduler(
            sink,
            progress,
            group_size=config.group_size,
            max_sessions=config.max_sessions,
        )
        if config.remote_sessions:
            await listing_session.close()
            details = await scheduler.run_batched(listing.stubs, launcher.session)
        else:
            details = await scheduler.run_sequential(listing.stubs, page)
    finally:
        await listing_session.close()

    logger.info(f"[RUN] Got {len(listing.stubs)} posts")
    metrics = progress.snapshot()
    logger.info("\n" + progress.format_summary(metrics))
    return RunReport(listing=listing, details=details, metrics=metrics, mode=mode)


async def run(
    config: Optional[RunConfig] = None,
    sink: Optional[MessageSink] = None,
) -> RunReport:
    """Full run with a fresh Playwright driver."""
    config = (config or RunConfig.from_env()).validate()
    sink = sink or build_sink(config)
    try:
        async with async_playwright() as playwright:
            launcher = BrowserLauncher(playwright, config)
            return await execute(config, sink, launcher)
    finally:
        sink.close()


def main(config: Optional[RunConfig] = None) -> None:
    """Direct invocation: run to completion, errors propagate."""
    asyncio.run(run(config))


def handler(event: Any = None, context: Any = None) -> Dict[str, bool]:
    """Request/response invocation: wraps ``run`` and reports only success."""
    try:
        asyncio.run(run())
        return {"success": True}
    except Exception as e:
        logger.error(f"[RUN] Crawl failed: {type(e).__name__}: {e}", exc_info=True)
        return {"success": False}
