"""
Browser pool manager for the Diagnosis Service
Manages a pool of pre-launched Playwright browser instances for listing scrapes
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, List, Optional
from playwright.async_api import async_playwright, Browser, BrowserContext, Page
import logging

from config import settings

logger = logging.getLogger(__name__)

LAUNCH_ARGS = [
    "--no-sandbox",  # Required in containerized environments
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",  # Prevents memory issues in Docker
    "--disable-gpu",
]


class BrowserPool:
    """
    Manages a bounded pool of Playwright browsers with recycling.

    Each scrape gets its own BrowserContext, so cookies and storage never
    leak between requests even though browser processes are reused.
    """

    def __init__(
        self,
        pool_size: int = settings.BROWSER_POOL_SIZE,
        max_pages_per_browser: int = settings.BROWSER_MAX_PAGES,
        browser_timeout: int = settings.BROWSER_TIMEOUT,
    ):
        """
        Initialize browser pool.

        Args:
            pool_size: Number of browser instances to maintain
            max_pages_per_browser: Max pages before recycling a browser
            browser_timeout: Max seconds a browser can live before recycling
        """
        self.pool_size = pool_size
        self.max_pages_per_browser = max_pages_per_browser
        self.browser_timeout = browser_timeout

        self.playwright = None
        self.browsers: List[dict] = []
        self.semaphore = asyncio.Semaphore(pool_size)
        self._lock = asyncio.Lock()
        self._initialized = False

    async def initialize(self):
        """Start Playwright and launch the pool's browsers"""
        if self._initialized:
            return

        async with self._lock:
            if self._initialized:
                return

            try:
                logger.info(f"🚀 Initializing browser pool with {self.pool_size} instances...")
                self.playwright = await async_playwright().start()

                for i in range(self.pool_size):
                    browser = await self._create_browser()
                    self.browsers.append({
                        "browser": browser,
                        "created_at": datetime.now(),
                        "page_count": 0,
                        "in_use": False,
                    })
                    logger.info(f"✅ Browser {i+1}/{self.pool_size} launched")

                self._initialized = True

            except Exception as e:
                logger.error(f"❌ Failed to initialize browser pool: {str(e)}")
                await self._close_all()
                raise

    async def _create_browser(self) -> Browser:
        return await self.playwright.chromium.launch(headless=True, args=LAUNCH_ARGS)

    async def _recycle_if_stale(self, info: dict):
        age = (datetime.now() - info["created_at"]).total_seconds()
        if age <= self.browser_timeout and info["page_count"] < self.max_pages_per_browser:
            return

        logger.info(f"♻️  Recycling browser (age: {age:.0f}s, pages: {info['page_count']})")
        try:
            await info["browser"].close()
        except Exception as e:
            logger.warning(f"⚠️  Error closing stale browser: {str(e)}")
        info["browser"] = await self._create_browser()
        info["created_at"] = datetime.now()
        info["page_count"] = 0

    async def acquire(
        self,
        locale: str = settings.BROWSER_LOCALE,
        timezone_id: str = settings.BROWSER_TIMEZONE,
    ) -> tuple[Browser, BrowserContext, Page]:
        """
        Acquire a browser from the pool and open a fresh context and page.

        Waits for a free slot when every browser is busy.

        Returns:
            Tuple of (browser, context, page)
        """
        await self.semaphore.acquire()

        try:
            async with self._lock:
                info = next(b for b in self.browsers if not b["in_use"])
                await self._recycle_if_stale(info)
                info["in_use"] = True
                info["page_count"] += 1
        except BaseException:
            self.semaphore.release()
            raise

        browser = info["browser"]
        try:
            context = await browser.new_context(locale=locale, timezone_id=timezone_id)
            page = await context.new_page()
        except BaseException:
            await self._mark_free(browser)
            raise

        return browser, context, page

    async def _mark_free(self, browser: Browser):
        async with self._lock:
            for info in self.browsers:
                if info["browser"] is browser:
                    info["in_use"] = False
                    break
        self.semaphore.release()

    async def release(self, browser: Browser, context: BrowserContext, page: Page):
        """
        Close the page and context and hand the browser back to the pool.

        Args:
            browser: Browser instance
            context: Browser context
            page: Page instance
        """
        try:
            await page.close()
            await context.close()
        except Exception as e:
            logger.error(f"⚠️  Error releasing browser: {str(e)}")
        finally:
            await self._mark_free(browser)

    @asynccontextmanager
    async def session(self, **context_options) -> AsyncIterator[Page]:
        """
        Scoped page session: the page and its context are closed and the
        browser returned on every exit path, including cancellation.
        """
        browser, context, page = await self.acquire(**context_options)
        try:
            yield page
        finally:
            await self.release(browser, context, page)

    async def health_check(self) -> dict:
        """
        Check health of all browsers in the pool.

        Returns:
            Dictionary with health status
        """
        async with self._lock:
            total = len(self.browsers)
            in_use = sum(1 for b in self.browsers if b["in_use"])
            available = total - in_use

            return {
                "total_browsers": total,
                "in_use": in_use,
                "available": available,
                "status": "healthy" if available > 0 else "saturated",
            }

    async def _close_all(self):
        for info in self.browsers:
            try:
                await info["browser"].close()
            except Exception as e:
                logger.warning(f"⚠️  Error closing browser: {str(e)}")

        self.browsers.clear()

        if self.playwright:
            try:
                await self.playwright.stop()
            except Exception as e:
                logger.warning(f"⚠️  Error stopping Playwright: {str(e)}")
            self.playwright = None

        self._initialized = False

    async def cleanup(self):
        """Close all browsers and cleanup resources"""
        logger.info("🧹 Cleaning up browser pool...")
        async with self._lock:
            await self._close_all()
        logger.info("✅ Browser pool cleaned up")


# Global browser pool instance
_browser_pool: Optional[BrowserPool] = None


async def get_browser_pool() -> BrowserPool:
    """
    Get or create the global browser pool instance.

    Returns:
        BrowserPool instance
    """
    global _browser_pool

    if _browser_pool is None:
        _browser_pool = BrowserPool()
    await _browser_pool.initialize()

    return _browser_pool


def get_active_browser_pool() -> Optional[BrowserPool]:
    """Return the global pool if it has been started, without starting it"""
    if _browser_pool is not None and _browser_pool._initialized:
        return _browser_pool
    return None


async def close_browser_pool():
    """Close the global browser pool"""
    global _browser_pool

    if _browser_pool is not None:
        await _browser_pool.cleanup()
        _browser_pool = None
