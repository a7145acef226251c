"""Tests for the diagnosis orchestration: validation, caching, timeouts."""

from __future__ import annotations

import asyncio
import base64
from contextlib import asynccontextmanager
from functools import partial
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import respx

from config import settings
from diagnosis_service import (
    DiagnosisService,
    is_listing_url,
    listing_cache_key,
    normalize_handle,
)
from models import DiagnosisError, Grade, ListingDiagnosis, ProfileDiagnosis
from utils.page_scraper import ScrapeFailedError, scrape_listing_page
from utils.url_resolver import resolve_canonical

from conftest import make_resolved

LISTING_URL = "https://naver.me/abc123"


class HangingPool:
    """Pool whose page never finishes navigating."""

    def __init__(self) -> None:
        self.released = False

    @asynccontextmanager
    async def session(self, **context_options):
        async def hang(*args, **kwargs):
            await asyncio.Event().wait()

        page = MagicMock()
        page.route = AsyncMock()
        page.goto = AsyncMock(side_effect=hang)
        try:
            yield page
        finally:
            self.released = True


class StaticPool:
    """Pool whose page renders ``body_text``."""

    def __init__(self, body_text: str) -> None:
        self.page = MagicMock()
        self.page.route = AsyncMock()
        self.page.goto = AsyncMock()
        self.page.wait_for_timeout = AsyncMock()
        self.page.evaluate = AsyncMock(
            return_value={"bodyText": body_text, "placeName": "국밥집"}
        )

    @asynccontextmanager
    async def session(self, **context_options):
        yield self.page


class TestHelpers:
    @pytest.mark.parametrize(
        "url, expected",
        [
            ("https://naver.me/abc", True),
            ("https://map.naver.com/p/entry/place/1", True),
            ("https://example.com/place/1", False),
            ("   ", False),
            ("", False),
            (None, False),
        ],
    )
    def test_is_listing_url(self, url, expected: bool) -> None:
        assert is_listing_url(url) is expected

    @pytest.mark.parametrize(
        "raw, handle",
        [
            ("@someone", "someone"),
            ("  someone ", "someone"),
            (" @some.one_1 ", "some.one_1"),
            ("@SomeOne", "someone"),
            (None, ""),
        ],
    )
    def test_normalize_handle(self, raw, handle: str) -> None:
        assert normalize_handle(raw) == handle

    def test_cache_key_prefers_listing_id(self) -> None:
        assert listing_cache_key(make_resolved(listing_id="42")) == "listing:id:42"

    def test_cache_key_encodes_url_without_id(self) -> None:
        resolved = make_resolved(input_url="https://naver.me/xyz", listing_id=None)
        key = listing_cache_key(resolved)

        assert key.startswith("listing:url:")
        encoded = key.removeprefix("listing:url:")
        assert base64.b64decode(encoded).decode("utf-8") == "https://naver.me/xyz"


class TestDiagnoseListing:
    async def test_live_diagnosis(self, service: DiagnosisService) -> None:
        outcome = await service.diagnose_listing(LISTING_URL)

        assert outcome.ok
        assert outcome.source == "live"
        assert isinstance(outcome.result, ListingDiagnosis)
        assert outcome.result.place_name == "맛있는 국밥집"
        assert outcome.resolved.listing_id == "987654321"
        service.listing_scraper.assert_awaited_once_with(
            "https://map.naver.com/p/entry/place/987654321"
        )

    async def test_second_request_is_served_from_cache(self, service, fake_redis) -> None:
        first = await service.diagnose_listing(LISTING_URL)
        second = await service.diagnose_listing(LISTING_URL)

        assert service.listing_scraper.await_count == 1
        assert second.source == "cache"
        assert second.result == first.result
        assert fake_redis.ttls["listing:id:987654321"] == settings.CACHE_TTL

    async def test_different_short_links_share_listing_cache(self, service) -> None:
        await service.diagnose_listing("https://naver.me/first")
        outcome = await service.diagnose_listing("https://naver.me/second")

        assert outcome.source == "cache"
        assert outcome.resolved.input_url == "https://naver.me/second"
        assert service.listing_scraper.await_count == 1

    async def test_url_without_id_uses_encoded_key(self, service, fake_redis) -> None:
        service.resolver = AsyncMock(
            side_effect=lambda url: make_resolved(input_url=url, listing_id=None)
        )

        await service.diagnose_listing(LISTING_URL)

        assert list(fake_redis.store) == [listing_cache_key(make_resolved(listing_id=None))]

    @pytest.mark.parametrize(
        "url", [None, "", "   ", "https://example.com/place/1", "not a url"]
    )
    async def test_rejects_non_listing_urls(self, service, url) -> None:
        outcome = await service.diagnose_listing(url)

        assert outcome.error == DiagnosisError.INVALID_URL
        service.resolver.assert_not_awaited()
        service.listing_scraper.assert_not_awaited()

    async def test_scrape_failure(self, service, fake_redis) -> None:
        service.listing_scraper.side_effect = ScrapeFailedError("SCRAPE_FAILED")

        outcome = await service.diagnose_listing(LISTING_URL)

        assert outcome.error == DiagnosisError.SCRAPE_FAILED
        assert outcome.result is None
        assert fake_redis.store == {}

    async def test_timeout_releases_browser_session(self, service, fake_redis) -> None:
        pool = HangingPool()
        service.listing_scraper = partial(scrape_listing_page, pool=pool)
        service.scrape_timeout = 0.1

        outcome = await service.diagnose_listing(LISTING_URL)

        assert outcome.error == DiagnosisError.TIMEOUT
        assert pool.released is True
        assert fake_redis.store == {}

    async def test_malformed_cache_entry_is_rescraped(self, service, fake_redis) -> None:
        fake_redis.store["listing:id:987654321"] = {"placeName": "stale"}

        outcome = await service.diagnose_listing(LISTING_URL)

        assert outcome.source == "live"
        service.listing_scraper.assert_awaited_once()

    async def test_cache_outage_still_diagnoses(self, service, fake_redis) -> None:
        fake_redis.available = False

        first = await service.diagnose_listing(LISTING_URL)
        second = await service.diagnose_listing(LISTING_URL)

        assert first.ok and second.ok
        assert second.source == "live"
        assert service.listing_scraper.await_count == 2

    async def test_short_link_to_rich_listing_end_to_end(
        self, fake_redis, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(settings, "LISTING_URL_MARKERS", ["short.example", "target.example"])
        short_url = "https://short.example/me/abc123"
        target_url = "https://target.example/p/entry/place/987654321"
        pool = StaticPool("국밥집 방문자리뷰 120 · 블로그리뷰 30 · 사진 · 국밥 수육 순대국")
        service = DiagnosisService(
            cache=fake_redis,
            resolver=resolve_canonical,
            listing_scraper=partial(scrape_listing_page, pool=pool),
            scrape_timeout=2,
        )

        with respx.mock:
            respx.get(short_url).mock(
                return_value=httpx.Response(302, headers={"Location": target_url})
            )
            respx.get(target_url).mock(return_value=httpx.Response(200))

            outcome = await service.diagnose_listing(short_url)

        assert outcome.ok
        assert outcome.resolved.listing_id == "987654321"
        assert outcome.resolved.canonical_url == target_url
        assert outcome.result.metrics.receipt_review_count == 120
        assert outcome.result.metrics.blog_review_count == 30
        assert outcome.result.score >= 50
        assert outcome.result.grade in (Grade.S, Grade.A, Grade.B)
        pool.page.goto.assert_awaited_once()
        assert pool.page.goto.await_args.args[0] == target_url


class TestDiagnoseProfile:
    async def test_live_diagnosis(self, service: DiagnosisService) -> None:
        outcome = await service.diagnose_profile("@someone")

        assert outcome.ok
        assert outcome.source == "live"
        assert isinstance(outcome.result, ProfileDiagnosis)
        assert outcome.result.handle == "someone"
        assert outcome.result.followers == 1200
        assert outcome.result.status == "우수"
        assert outcome.result.tips == outcome.result.recommendations
        service.profile_scraper.assert_awaited_once_with("someone")

    async def test_at_prefix_shares_cache_entry(self, service) -> None:
        await service.diagnose_profile("someone")
        outcome = await service.diagnose_profile("@someone")

        assert outcome.source == "cache"
        assert service.profile_scraper.await_count == 1

    async def test_handle_case_shares_cache_entry(self, service, fake_redis) -> None:
        await service.diagnose_profile("SomeOne")
        outcome = await service.diagnose_profile("someone")

        assert outcome.source == "cache"
        assert outcome.result.handle == "someone"
        assert list(fake_redis.store) == ["profile:someone"]
        service.profile_scraper.assert_awaited_once_with("someone")

    @pytest.mark.parametrize("handle", [None, "", "@", "   ", "bad handle", "x" * 31, "한글"])
    async def test_rejects_invalid_handles(self, service, handle) -> None:
        outcome = await service.diagnose_profile(handle)

        assert outcome.error == DiagnosisError.INVALID_INPUT
        service.profile_scraper.assert_not_awaited()

    async def test_scrape_failure(self, service) -> None:
        service.profile_scraper.side_effect = ScrapeFailedError("PARSE_FAILED")

        outcome = await service.diagnose_profile("someone")

        assert outcome.error == DiagnosisError.SCRAPE_FAILED

    async def test_timeout(self, service) -> None:
        async def hang(handle: str):
            await asyncio.Event().wait()

        service.profile_scraper = hang
        service.scrape_timeout = 0.05

        outcome = await service.diagnose_profile("someone")

        assert outcome.error == DiagnosisError.TIMEOUT
