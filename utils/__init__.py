# Utils package - page fetching helpers used by the diagnosis service

from .url_resolver import resolve_canonical, extract_listing_id, build_canonical_url
from .page_scraper import (
    ScrapeFailedError,
    scrape_listing_page,
    scrape_profile_page,
    parse_listing_text,
    parse_profile_meta,
)

__all__ = [
    "resolve_canonical",
    "extract_listing_id",
    "build_canonical_url",
    "ScrapeFailedError",
    "scrape_listing_page",
    "scrape_profile_page",
    "parse_listing_text",
    "parse_profile_meta",
]
