"""
Run Progress
============
Per-run progress and metrics for one crawl + fetch run.

One ``RunProgress`` is created per run and passed explicitly to the
listing crawl, detail fetcher and scheduler.  It is diagnostic only:
nothing reads it to make a control-flow decision.

Mutations never await, so under asyncio they are atomic with respect to
other coroutines and need no lock.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set

logger = logging.getLogger(__name__)


@dataclass
class RunMetrics:
    """Snapshot of run metrics at a point in time."""
    listing_pages: int = 0
    stubs_collected: int = 0
    stubs_in_window: int = 0
    items_total: int = 0
    items_fetched: int = 0
    items_failed: int = 0
    comments_extracted: int = 0
    discussion_failures: int = 0
    records_published: int = 0
    groups_total: int = 0
    groups_failed: int = 0
    sessions_opened: int = 0
    peak_open_sessions: int = 0
    remaining: List[str] = field(default_factory=list)
    elapsed_sec: float = 0.0
    stop_reason: str = ""


class RunProgress:
    """
    Tracks items still in progress plus run counters.

    Usage::

        progress = RunProgress()
        progress.begin_items(stub.id for stub in stubs)
        ...
        progress.item_done(stub.id, comments=12)
        logger.info(progress.format_summary(progress.snapshot()))
    """

    def __init__(self):
        self._start_time = time.monotonic()
        self._pending: Set[str] = set()
        self._order: List[str] = []
        self.listing_pages = 0
        self.stubs_collected = 0
        self.stubs_in_window = 0
        self.items_total = 0
        self.items_fetched = 0
        self.items_failed = 0
        self.comments_extracted = 0
        self.discussion_failures = 0
        self.records_published = 0
        self.groups_total = 0
        self.groups_failed = 0
        self.sessions_opened = 0
        self.open_sessions = 0
        self.peak_open_sessions = 0
        self.stop_reason = ""

    # -- items ------------------------------------------------------------

    def begin_items(self, item_ids: Iterable[str]) -> None:
        for item_id in item_ids:
            self.items_total += 1
            if item_id not in self._pending:
                self._pending.add(item_id)
                self._order.append(item_id)

    def item_done(self, item_id: str, comments: int = 0) -> None:
        self.items_fetched += 1
        self.comments_extracted += comments
        self._pending.discard(item_id)
        logger.info(f"[PROGRESS] {len(self._pending)} items in progress")
        logger.debug(f"[PROGRESS] remaining: {self.remaining}")

    def item_failed(self, item_id: str) -> None:
        self.items_failed += 1
        self._pending.discard(item_id)

    def discussion_failed(self) -> None:
        self.discussion_failures += 1

    def published(self, count: int = 1) -> None:
        self.records_published += count

    @property
    def remaining(self) -> List[str]:
        return [i for i in self._order if i in self._pending]

    # -- sessions ---------------------------------------------------------

    def session_opened(self) -> None:
        self.sessions_opened += 1
        self.open_sessions += 1
        self.peak_open_sessions = max(self.peak_open_sessions, self.open_sessions)

    def session_closed(self) -> None:
        self.open_sessions = max(0, self.open_sessions - 1)

    # -- reporting --------------------------------------------------------

    def snapshot(self, stop_reason: Optional[str] = None) -> RunMetrics:
        return RunMetrics(
            listing_pages=self.listing_pages,
            stubs_collected=self.stubs_collected,
            stubs_in_window=self.stubs_in_window,
            items_total=self.items_total,
            items_fetched=self.items_fetched,
            items_failed=self.items_failed,
            comments_extracted=self.comments_extracted,
            discussion_failures=self.discussion_failures,
            records_published=self.records_published,
            groups_total=self.groups_total,
            groups_failed=self.groups_failed,
            sessions_opened=self.sessions_opened,
            peak_open_sessions=self.peak_open_sessions,
            remaining=self.remaining,
            elapsed_sec=round(time.monotonic() - self._start_time, 2),
            stop_reason=stop_reason if stop_reason is not None else self.stop_reason,
        )

    def format_summary(self, metrics: RunMetrics) -> str:
        """Format a human-readable summary string."""
        lines = [
            "=" * 65,
            "  CRAWL RUN SUMMARY",
            "=" * 65,
            f"  Listing pages:       {metrics.listing_pages}",
            f"  Stubs collected:     {metrics.stubs_collected}",
            f"  Stubs in window:     {metrics.stubs_in_window}",
            f"  Listing stop:        {metrics.stop_reason or '-'}",
            "-" * 65,
            f"  Items fetched:       {metrics.items_fetched}/{metrics.items_total}",
            f"  Items failed:        {metrics.items_failed}",
            f"  Comments extracted:  {metrics.comments_extracted:,}",
            f"  Discussion failures: {metrics.discussion_failures}",
            f"  Records published:   {metrics.records_published}",
            "-" * 65,
            f"  Groups:              {metrics.groups_total} ({metrics.groups_failed} failed)",
            f"  Sessions opened:     {metrics.sessions_opened} (peak {metrics.peak_open_sessions})",
            "-" * 65,
            f"  Elapsed time:        {metrics.elapsed_sec:.1f} s",
            "=" * 65,
        ]
        return "\n".join(lines)
