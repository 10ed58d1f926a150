"""
Fetch Scheduler
===============
Drives the detail fetcher over the collected stubs and hands results to
the sink.

Two modes:

- **Sequential** (one local session): items are fetched in order on a
  single page, then published together with one ``publish_many`` call
  and one shared capture timestamp.  Any item failure aborts the run
  before anything is published.

- **Batched-concurrent** (remote sessions): stubs are split into groups
  of ``group_size``.  Every group opens its own session + page and runs
  all its items concurrently on that page, publishing each record with
  ``publish_one`` as soon as it is ready.  Groups are *not* sequenced:
  all of them start at once, so the number of simultaneous sessions
  equals the number of groups.  Pass ``max_sessions`` to cap it.

A failing item rejects its group: the group's remaining items are
cancelled, its session is closed, and records already published stay
published.  Other groups run to completion; once all have settled a
``BatchFailure`` reports the failed ones.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncContextManager, Callable, List, Optional, Sequence

from playwright.async_api import Page

from .detail import fetch_item_detail
from .errors import BatchFailure
from .models import ItemDetail, ItemStub, utc_now_iso
from .progress import RunProgress
from .sinks import MessageSink

logger = logging.getLogger(__name__)

DEFAULT_GROUP_SIZE = 5

# label -> async context manager yielding a ready page
SessionFactory = Callable[[str], AsyncContextManager[Page]]


def partition(stubs: Sequence[ItemStub], size: int) -> List[List[ItemStub]]:
    """Split ``stubs`` into consecutive groups of ``size`` (last may be smaller)."""
    if size < 1:
        raise ValueError("group size must be at least 1")
    return [list(stubs[i:i + size]) for i in range(0, len(stubs), size)]


class FetchScheduler:
    """
    Runs detail fetching in sequential or batched-concurrent mode.

    Usage::

        scheduler = FetchScheduler(sink, progress, group_size=5)
        await scheduler.run_sequential(stubs, page)
        # or
        await scheduler.run_batched(stubs, launcher.session)
    """

    def __init__(
        self,
        sink: MessageSink,
        progress: Optional[RunProgress] = None,
        group_size: int = DEFAULT_GROUP_SIZE,
        max_sessions: Optional[int] = None,
    ):
        self.sink = sink
        self.progress = progress or RunProgress()
        self.group_size = group_size
        self.max_sessions = max_sessions
        self._session_slots: Optional[asyncio.Semaphore] = None

    # ------------------------------------------------------------------
    # Sequential mode
    # ------------------------------------------------------------------

    async def run_sequential(self, stubs: Sequence[ItemStub], page: Page) -> List[ItemDetail]:
        """Fetch every stub in order on ``page``, then publish them in one call."""
        logger.info(f"[SCHEDULER] Getting data for {len(stubs)} posts sequentially")
        self.progress.begin_items(s.id for s in stubs)

        details: List[ItemDetail] = []
        for stub in stubs:
            try:
                detail = await fetch_item_detail(page, stub, self.progress)
            except Exception:
                self.progress.item_failed(stub.id)
                raise
            details.append(detail)

        if not details:
            logger.info("[SCHEDULER] Nothing to publish")
            return details

        captured_at = utc_now_iso()
        await self.sink.publish_many([d.to_record(captured_at) for d in details])
        self.progress.published(len(details))
        return details

    # ------------------------------------------------------------------
    # Batched-concurrent mode
    # ------------------------------------------------------------------

    async def run_batched(
        self, stubs: Sequence[ItemStub], open_session: SessionFactory
    ) -> List[ItemDetail]:
        """Fetch all groups concurrently, one session per group."""
        groups = partition(stubs, self.group_size)
        self.progress.groups_total = len(groups)
        self.progress.begin_items(s.id for s in stubs)
        self._session_slots = (
            asyncio.Semaphore(self.max_sessions) if self.max_sessions else None
        )

        bound = self.max_sessions or len(groups)
        logger.info(
            f"[SCHEDULER] Getting data for {len(stubs)} posts concurrently: "
            f"{len(groups)} groups of <= {self.group_size}, up to {bound} sessions"
        )

        results = await asyncio.gather(
            *(self._run_group(i, group, open_session) for i, group in enumerate(groups, 1)),
            return_exceptions=True,
        )

        details: List[ItemDetail] = []
        errors: List[BaseException] = []
        for index, result in enumerate(results, 1):
            if isinstance(result, BaseException):
                errors.append(result)
                logger.error(
                    f"[GROUP-{index}] Failed: {type(result).__name__}: {result}",
                    exc_info=result,
                )
            else:
                details.extend(result)

        self.progress.groups_failed = len(errors)
        if errors:
            raise BatchFailure(errors, total_groups=len(groups))
        return details

    async def _run_group(
        self, index: int, group: List[ItemStub], open_session: SessionFactory
    ) -> List[ItemDetail]:
        if self._session_slots is None:
            return await self._run_group_in_session(index, group, open_session)
        async with self._session_slots:
            return await self._run_group_in_session(index, group, open_session)

    async def _run_group_in_session(
        self, index: int, group: List[ItemStub], open_session: SessionFactory
    ) -> List[ItemDetail]:
        label = f"GROUP-{index}"
        async with open_session(label) as page:
            self.progress.session_opened()
            try:
                tasks = [
                    asyncio.ensure_future(self._fetch_and_publish(page, stub))
                    for stub in group
                ]
                try:
                    details = await asyncio.gather(*tasks)
                except BaseException:
                    for task in tasks:
                        task.cancel()
                    await asyncio.gather(*tasks, return_exceptions=True)
                    raise
            finally:
                self.progress.session_closed()

        logger.info(f"[{label}] Finished {len(details)} posts")
        return list(details)

    async def _fetch_and_publish(self, page: Page, stub: ItemStub) -> ItemDetail:
        try:
            detail = await fetch_item_detail(page, stub, self.progress)
        except Exception:
            self.progress.item_failed(stub.id)
            raise
        await self.sink.publish_one(detail.to_record(utc_now_iso()))
        self.progress.published()
        return detail
