"""
Diagnosis orchestration for profile and listing analysis.

validate -> resolve (listing only) -> cache check -> scrape (wall-clock
bounded) -> score -> cache -> respond. Every failure is returned as a
DiagnosisError member; nothing below this layer raises into the routes.
"""

import asyncio
import base64
import logging
import re
from typing import Awaitable, Callable, Optional

from fastapi import Depends
from pydantic import ValidationError

from analyzer.scoring import score_listing, score_profile, status_for_grade
from config import get_cache_ttl, get_scrape_timeout, settings
from models import (
    DiagnosisError,
    DiagnosisOutcome,
    ListingDiagnosis,
    ListingSignals,
    ProfileDiagnosis,
    ProfileSignals,
    ResolvedTarget,
)
from redis_client import RedisClient, get_redis_client
from utils.page_scraper import ScrapeFailedError, scrape_listing_page, scrape_profile_page
from utils.url_resolver import resolve_canonical

logger = logging.getLogger(__name__)

HANDLE_PATTERN = re.compile(r"^[A-Za-z0-9._]{1,30}$")

Resolver = Callable[[str], Awaitable[ResolvedTarget]]
ListingScraper = Callable[[str], Awaitable[ListingSignals]]
ProfileScraper = Callable[[str], Awaitable[ProfileSignals]]


def listing_cache_key(resolved: ResolvedTarget) -> str:
    """Listing id when known, else a reversible encoding of the canonical URL."""
    if resolved.listing_id:
        return f"listing:id:{resolved.listing_id}"
    encoded = base64.b64encode(resolved.canonical_url.encode("utf-8")).decode("ascii")
    return f"listing:url:{encoded}"


def profile_cache_key(handle: str) -> str:
    return f"profile:{handle}"


def normalize_handle(handle: Optional[str]) -> str:
    """Handles are case-insensitive, so they are lower-cased for caching."""
    return (handle or "").strip().lstrip("@").lower()


def is_listing_url(url: Optional[str]) -> bool:
    if not url or not url.strip():
        return False
    return any(marker in url for marker in settings.LISTING_URL_MARKERS)


class DiagnosisService:
    """
    Runs profile and listing diagnoses against a shared result cache.

    Only this service writes diagnosis entries to the cache. Concurrent
    requests for the same cold key may each scrape; the last write wins.
    """

    def __init__(
        self,
        cache: RedisClient,
        resolver: Resolver = resolve_canonical,
        listing_scraper: ListingScraper = scrape_listing_page,
        profile_scraper: ProfileScraper = scrape_profile_page,
        scrape_timeout: Optional[float] = None,
        cache_ttl: Optional[int] = None,
    ):
        self.cache = cache
        self.resolver = resolver
        self.listing_scraper = listing_scraper
        self.profile_scraper = profile_scraper
        self.scrape_timeout = scrape_timeout or get_scrape_timeout()
        self.cache_ttl = cache_ttl or get_cache_ttl()

    async def _scrape(self, scraper: Callable, target: str):
        """
        Run ``scraper`` under the wall-clock budget.

        On timeout the scrape task is cancelled and awaited, so its cleanup
        (browser release) has run by the time TimeoutError surfaces here.
        """
        return await asyncio.wait_for(scraper(target), timeout=self.scrape_timeout)

    async def _load_cached(self, model, cache_key: str):
        cached = await self.cache.get_cached_diagnosis(cache_key)
        if not cached:
            return None

        try:
            result = model.model_validate(cached)
        except ValidationError as e:
            logger.warning(f"⚠️  Ignoring malformed cache entry {cache_key}: {e}")
            return None

        logger.info(f"📦 Cache hit for {cache_key}")
        return result

    async def diagnose_listing(self, url: Optional[str]) -> DiagnosisOutcome:
        if not is_listing_url(url):
            return DiagnosisOutcome(error=DiagnosisError.INVALID_URL)

        url = url.strip()
        resolved = await self.resolver(url)
        cache_key = listing_cache_key(resolved)

        cached = await self._load_cached(ListingDiagnosis, cache_key)
        if cached is not None:
            return DiagnosisOutcome(result=cached, source="cache", resolved=resolved)

        try:
            signals = await self._scrape(self.listing_scraper, resolved.canonical_url)
        except asyncio.TimeoutError:
            logger.error(
                f"⏱️ Listing scrape timeout after {self.scrape_timeout}s for {resolved.canonical_url}"
            )
            return DiagnosisOutcome(error=DiagnosisError.TIMEOUT, resolved=resolved)
        except ScrapeFailedError:
            return DiagnosisOutcome(error=DiagnosisError.SCRAPE_FAILED, resolved=resolved)

        report = score_listing(signals)
        diagnosis = ListingDiagnosis(
            place_name=signals.place_name,
            metrics=signals,
            score=report.score,
            grade=report.grade,
            keywords=report.keywords,
            score_breakdown=report.breakdown,
            recommendations=report.recommendations,
        )

        await self.cache.cache_diagnosis(
            cache_key, diagnosis.model_dump(mode="json"), ttl=self.cache_ttl
        )
        logger.info(f"✅ Listing diagnosis complete for {cache_key}: {report.score} ({report.grade.value})")
        return DiagnosisOutcome(result=diagnosis, source="live", resolved=resolved)

    async def diagnose_profile(self, handle: Optional[str]) -> DiagnosisOutcome:
        handle = normalize_handle(handle)
        if not HANDLE_PATTERN.match(handle):
            return DiagnosisOutcome(error=DiagnosisError.INVALID_INPUT)

        cache_key = profile_cache_key(handle)
        cached = await self._load_cached(ProfileDiagnosis, cache_key)
        if cached is not None:
            return DiagnosisOutcome(result=cached, source="cache")

        try:
            signals = await self._scrape(self.profile_scraper, handle)
        except asyncio.TimeoutError:
            logger.error(f"⏱️ Profile scrape timeout after {self.scrape_timeout}s for {handle}")
            return DiagnosisOutcome(error=DiagnosisError.TIMEOUT)
        except ScrapeFailedError:
            return DiagnosisOutcome(error=DiagnosisError.SCRAPE_FAILED)

        report = score_profile(signals)
        diagnosis = ProfileDiagnosis(
            handle=handle,
            followers=signals.followers,
            following=signals.following,
            posts=signals.posts,
            score=report.score,
            grade=report.grade,
            status=status_for_grade(report.grade),
            tips=report.recommendations,
            breakdown=report.breakdown,
            recommendations=report.recommendations,
        )

        await self.cache.cache_diagnosis(
            cache_key, diagnosis.model_dump(mode="json"), ttl=self.cache_ttl
        )
        logger.info(f"✅ Profile diagnosis complete for {handle}: {report.score} ({report.grade.value})")
        return DiagnosisOutcome(result=diagnosis, source="live")


def get_diagnosis_service(
    redis_client: RedisClient = Depends(get_redis_client),
) -> DiagnosisService:
    """FastAPI dependency: a service bound to the shared Redis cache."""
    return DiagnosisService(cache=redis_client)
