"""
Crawler Errors
==============
Exception taxonomy shared by the listing crawl, detail fetcher,
scheduler and sinks.

Propagation rules:
- ``ExtractionFailure`` inside the discussion tree is contained per item.
- ``NavigationFailure`` / ``PublishFailure`` travel to the nearest run
  boundary (the whole run in sequential mode, the owning group in
  batched mode).
- The invocation wrapper turns anything that escapes into
  ``{"success": False}``.
"""

from __future__ import annotations

from typing import List, Optional


class CrawlerError(Exception):
    """Base class for all crawler errors."""


class NavigationFailure(CrawlerError):
    """Navigating a page to a URL failed."""

    def __init__(self, url: str, cause: Optional[BaseException] = None):
        self.url = url
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Navigation to {url} failed{detail}")


class ExtractionFailure(CrawlerError):
    """Required markup was missing or could not be read."""


class PublishFailure(CrawlerError):
    """The message sink rejected a publish call."""


class ConfigurationAbsence(CrawlerError):
    """A required configuration value is missing or invalid."""


class BatchFailure(CrawlerError):
    """One or more concurrent groups failed.

    ``errors`` holds the exception raised by each failed group, in group
    order.
    """

    def __init__(self, errors: List[BaseException], total_groups: int):
        self.errors = list(errors)
        self.total_groups = total_groups
        super().__init__(
            f"{len(self.errors)}/{total_groups} groups failed: "
            + "; ".join(f"{type(e).__name__}: {e}" for e in self.errors[:3])
        )
