"""
Page scrapers for profile and listing diagnosis.

Listing pages are rendered in a pooled headless browser; profile pages are
plain HTTP fetches. Every failure is reported as ScrapeFailedError so no
scraping infrastructure detail reaches API clients.
"""

import logging
import re
from typing import Optional

import httpx
from bs4 import BeautifulSoup
from playwright.async_api import Route

from analyzer.text import parse_compact_number
from browser_pool import BrowserPool, get_browser_pool
from config import settings
from models import ListingSignals, ProfileSignals
from utils.url_resolver import BROWSER_HEADERS

logger = logging.getLogger(__name__)

BLOCKED_RESOURCE_TYPES = frozenset(["image", "font", "media"])

RECEIPT_REVIEW_PATTERN = re.compile(r"방문자리뷰\s*([0-9.,kmKM]+)")
BLOG_REVIEW_PATTERN = re.compile(r"블로그리뷰\s*([0-9.,kmKM]+)")
PHOTO_MARKER = "사진"
# Coarse: the page only tells us whether a photo section exists
PHOTO_PRESENT_COUNT = 10

PROFILE_META_PATTERN = re.compile(
    r"([0-9.,kmb]+)\s*Followers?,\s*([0-9.,kmb]+)\s*Following,\s*([0-9.,kmb]+)\s*Posts?",
    re.IGNORECASE,
)

EXTRACT_DOM_SCRIPT = """
(limit) => {
    const bodyText = document.body ? document.body.innerText || "" : "";
    const heading =
        document.querySelector("h1") || document.querySelector("[role='heading']");
    const placeName = heading && heading.innerText ? heading.innerText.trim() : "Unknown";
    return { bodyText: bodyText.slice(0, limit), placeName: placeName || "Unknown" };
}
"""


class ScrapeFailedError(Exception):
    """Raised when a page could not be fetched or parsed"""

    pass


async def _block_heavy_resources(route: Route):
    if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
        await route.abort()
    else:
        await route.continue_()


def _count_from(pattern: re.Pattern, text: str) -> int:
    match = pattern.search(text)
    return parse_compact_number(match.group(1)) if match else 0


def parse_listing_text(body_text: str, place_name: str = "Unknown") -> ListingSignals:
    """Extract listing signals from captured page text."""
    store_info_text = body_text[: settings.STORE_INFO_LIMIT]

    return ListingSignals(
        place_name=place_name or "Unknown",
        store_info_text=store_info_text,
        store_info_text_length=len(store_info_text),
        photo_count=PHOTO_PRESENT_COUNT if PHOTO_MARKER in body_text else 0,
        blog_review_count=_count_from(BLOG_REVIEW_PATTERN, body_text),
        receipt_review_count=_count_from(RECEIPT_REVIEW_PATTERN, body_text),
        full_text=body_text[: settings.FULL_TEXT_LIMIT],
    )


async def scrape_listing_page(url: str, pool: Optional[BrowserPool] = None) -> ListingSignals:
    """
    Render a listing page and extract its signals.

    Image, font and media requests are aborted since only text is needed.

    Raises:
        ScrapeFailedError: On launch, navigation or extraction failure
    """
    try:
        pool = pool or await get_browser_pool()
        async with pool.session() as page:
            page.set_default_timeout(settings.ELEMENT_TIMEOUT * 1000)
            await page.route("**/*", _block_heavy_resources)

            logger.info(f"📡 Navigating to {url}")
            await page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=settings.NAVIGATION_TIMEOUT * 1000,
            )
            await page.wait_for_timeout(settings.SETTLE_DELAY * 1000)

            dom = await page.evaluate(EXTRACT_DOM_SCRIPT, settings.BODY_TEXT_LIMIT)
    except Exception as e:
        logger.error(f"❌ Listing scrape failed for {url}: {type(e).__name__}: {str(e)}")
        raise ScrapeFailedError("SCRAPE_FAILED") from e

    signals = parse_listing_text(dom.get("bodyText") or "", dom.get("placeName"))
    logger.info(
        f"✅ Scraped '{signals.place_name}' "
        f"(receipt reviews: {signals.receipt_review_count}, blog reviews: {signals.blog_review_count})"
    )
    return signals


def parse_profile_meta(content: Optional[str]) -> ProfileSignals:
    """
    Parse follower, following and post counts from a profile meta description.

    Raises:
        ScrapeFailedError: If the description does not have the expected shape
    """
    match = PROFILE_META_PATTERN.search(content or "")
    if not match:
        raise ScrapeFailedError("PARSE_FAILED")

    return ProfileSignals(
        followers=parse_compact_number(match.group(1)),
        following=parse_compact_number(match.group(2)),
        posts=parse_compact_number(match.group(3)),
    )


async def scrape_profile_page(handle: str) -> ProfileSignals:
    """
    Fetch a public profile page and parse its og:description counts.

    Raises:
        ScrapeFailedError: On network failure or an unexpected page format
    """
    url = settings.PROFILE_URL_TEMPLATE.format(handle=handle)

    try:
        async with httpx.AsyncClient(
            headers=BROWSER_HEADERS,
            timeout=settings.PROFILE_REQUEST_TIMEOUT,
            follow_redirects=True,
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.error(f"❌ Profile fetch failed for {handle}: {type(e).__name__}: {str(e)}")
        raise ScrapeFailedError("SCRAPE_FAILED") from e

    soup = BeautifulSoup(response.text, "html.parser")
    meta = soup.find("meta", attrs={"property": "og:description"})
    content = meta.get("content") if meta else None

    try:
        signals = parse_profile_meta(content)
    except ScrapeFailedError:
        logger.error(f"❌ Profile meta description did not match for {handle}: {content!r}")
        raise

    logger.info(f"✅ Scraped profile {handle} (followers: {signals.followers})")
    return signals
