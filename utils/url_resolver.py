"""
Listing URL resolution.

Follows redirects of shortened listing links and derives a stable listing id
and canonical URL used for caching and scraping.
"""

import asyncio
import logging
import re
from typing import Optional
from urllib.parse import urlsplit

import httpx

from config import settings
from models import ResolvedTarget

logger = logging.getLogger(__name__)

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept-Language": "ko-KR,ko;q=0.9",
}

LISTING_ID_PATTERN = re.compile(r"/place/(\d+)")


def extract_listing_id(url: str) -> Optional[str]:
    """Return the numeric listing id from a ``/place/{id}`` path, if any."""
    match = LISTING_ID_PATTERN.search(url)
    return match.group(1) if match else None


def build_canonical_url(
    final_url: str, listing_id: Optional[str], host: Optional[str] = None
) -> str:
    """
    Build the canonical listing URL.

    With a listing id the result is ``https://<host>/p/entry/place/<id>``,
    where host defaults to the host of ``final_url``. Without one the final
    URL is returned verbatim.
    """
    if not listing_id:
        return final_url

    host = host or urlsplit(final_url).netloc
    if not host:
        return final_url
    return f"https://{host}/p/entry/place/{listing_id}"


async def _follow_redirects(input_url: str) -> str:
    """Final URL after redirects. The final response body is never read."""
    async with httpx.AsyncClient(
        headers=BROWSER_HEADERS,
        timeout=settings.RESOLVE_TIMEOUT,
        follow_redirects=True,
        max_redirects=settings.RESOLVE_MAX_REDIRECTS,
    ) as client:
        async with client.stream("GET", input_url) as response:
            response.raise_for_status()
            return str(response.url)


async def resolve_canonical(input_url: str) -> ResolvedTarget:
    """
    Resolve ``input_url`` through its redirects into a ResolvedTarget.

    The whole resolution is bounded by RESOLVE_TIMEOUT of wall-clock time;
    httpx's own timeout only bounds each individual read.

    Never raises: on any network failure or timeout the input URL is used as
    both the final and canonical URL so the caller can still try to scrape it.
    """
    try:
        final_url = await asyncio.wait_for(
            _follow_redirects(input_url), timeout=settings.RESOLVE_TIMEOUT
        )
    except (httpx.HTTPError, httpx.InvalidURL, asyncio.TimeoutError) as e:
        logger.warning(
            f"⚠️  Redirect resolution failed for {input_url}, using input URL: "
            f"{type(e).__name__}: {e}"
        )
        return ResolvedTarget(
            input_url=input_url,
            final_url=input_url,
            listing_id=None,
            canonical_url=input_url,
        )

    listing_id = extract_listing_id(final_url)
    canonical_url = build_canonical_url(
        final_url, listing_id, host=settings.LISTING_CANONICAL_HOST
    )
    logger.info(f"✅ Resolved {input_url} -> {canonical_url} (listing id: {listing_id})")

    return ResolvedTarget(
        input_url=input_url,
        final_url=final_url,
        listing_id=listing_id,
        canonical_url=canonical_url,
    )
