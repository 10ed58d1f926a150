"""
Browser Sessions
================
Thin adapter over async Playwright.

- ``BrowserLauncher`` opens sessions either by connecting to a remote
  browser over CDP (``connection_url`` set) or by launching a local
  Chromium.
- ``BrowserSession`` owns one browser + context + page and closes them
  exactly once, whichever way the owner exits.
- Resource blocking aborts non-essential asset types at the context
  level.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright
from playwright.async_api import Error as PlaywrightError

from .errors import NavigationFailure
from .run_config import RunConfig

logger = logging.getLogger(__name__)

_LAUNCH_ARGS = [
    '--disable-gpu',
    '--no-sandbox',
    '--disable-dev-shm-usage',
    '--disable-background-networking',
    '--disable-default-apps',
    '--disable-extensions',
    '--disable-sync',
    '--disable-translate',
    '--metrics-recording-only',
    '--no-first-run',
]

# Reads every attribute of an element into a plain {name: value} map
_ATTRIBUTES_JS = """
el => Array.from(el.attributes).reduce((map, attr) => {
    map[attr.name] = attr.value;
    return map;
}, {})
"""


async def get_attributes(handle) -> Dict[str, str]:
    """Return the attribute set of an element handle as a dict."""
    return await handle.evaluate(_ATTRIBUTES_JS)


async def navigate(page: Page, url: str) -> None:
    """``page.goto`` with Playwright errors mapped to ``NavigationFailure``."""
    try:
        await page.goto(url)
    except PlaywrightError as e:
        raise NavigationFailure(url, e) from e


async def page_size_bytes(page: Page) -> int:
    """Size of the page's current HTML in UTF-8 bytes."""
    content = await page.content()
    return len(content.encode("utf-8"))


class ResourceBlocker:
    """Route handler aborting requests whose resource type is blocked."""

    def __init__(self, resource_types: Iterable[str]):
        self.resource_types = frozenset(resource_types)
        self.blocked = 0

    async def __call__(self, route) -> None:
        if route.request.resource_type in self.resource_types:
            self.blocked += 1
            await route.abort()
            return
        await route.continue_()


class BrowserSession:
    """
    One browser + context + page owned by a single run or group.

    Usage::

        async with launcher.session() as page:
            await page.goto(url)

    ``close()`` is idempotent, so an owner may close early (e.g. the
    listing session before batched fetching starts) and still leave the
    ``async with`` block safely.
    """

    def __init__(self, playwright: Playwright, config: RunConfig, label: str = "session"):
        self._playwright = playwright
        self.config = config
        self.label = label
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None
        self._closed = False

    async def open(self) -> Page:
        cfg = self.config
        if cfg.connection_url:
            logger.info(f"[{self.label}] Connecting to remote browser...")
            self.browser = await self._playwright.chromium.connect_over_cdp(cfg.connection_url)
        else:
            logger.info(f"[{self.label}] Launching local browser...")
            self.browser = await self._playwright.chromium.launch(
                headless=cfg.headless, args=_LAUNCH_ARGS,
            )
        try:
            self.context = await self.browser.new_context(user_agent=cfg.user_agent)
            self.context.set_default_timeout(cfg.navigation_timeout_ms)
            self.context.set_default_navigation_timeout(cfg.navigation_timeout_ms)
            if cfg.blocked_resource_types:
                await self.context.route("**/*", ResourceBlocker(cfg.blocked_resource_types))
            self.page = await self.context.new_page()
        except BaseException:
            await self.close()
            raise
        logger.debug(f"[{self.label}] Session ready")
        return self.page

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self.context is not None:
            try:
                await self.context.close()
            except Exception as e:
                logger.warning(f"[{self.label}] Error closing context: {e}")
        if self.browser is not None:
            try:
                await self.browser.close()
            except Exception as e:
                logger.warning(f"[{self.label}] Error closing browser: {e}")
        logger.debug(f"[{self.label}] Session closed")

    @property
    def closed(self) -> bool:
        return self._closed

    async def __aenter__(self) -> Page:
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


class BrowserLauncher:
    """Factory for ``BrowserSession`` objects sharing one Playwright driver."""

    def __init__(self, playwright: Playwright, config: RunConfig):
        self._playwright = playwright
        self.config = config

    def session(self, label: str = "session") -> BrowserSession:
        return BrowserSession(self._playwright, self.config, label=label)
