"""Shared fixtures for the diagnosis service test suite.

Redis is replaced by ``FakeRedisClient``, an in-memory object exposing the
same async methods the service and rate limiter call on ``RedisClient``.
"""

from __future__ import annotations

import json
from typing import Any, Optional
from unittest.mock import AsyncMock

import pytest

from diagnosis_service import DiagnosisService
from models import ListingSignals, ProfileSignals, ResolvedTarget


class FakeRedisClient:
    """In-memory stand-in for ``redis_client.RedisClient``."""

    def __init__(self) -> None:
        self.store: dict[str, Any] = {}
        self.ttls: dict[str, Optional[int]] = {}
        self.counters: dict[str, int] = {}
        self.available = True

    async def ping(self) -> bool:
        return self.available

    async def get_stats(self) -> dict:
        return {"connected_clients": 1}

    async def cache_diagnosis(self, key: str, diagnosis: dict, ttl: Optional[int] = None) -> bool:
        if not self.available:
            return False
        # Round-trip through JSON like the real client does
        self.store[key] = json.loads(json.dumps(diagnosis, ensure_ascii=False))
        self.ttls[key] = ttl
        return True

    async def get_cached_diagnosis(self, key: str) -> Optional[dict]:
        if not self.available:
            return None
        return self.store.get(key)

    async def increment_window(self, key: str, ttl: int) -> Optional[int]:
        if not self.available:
            return None
        self.counters[key] = self.counters.get(key, 0) + 1
        return self.counters[key]


LISTING_BODY = (
    "맛있는 국밥집 서울 강남 국밥 맛집 "
    "방문자리뷰 120 블로그리뷰 30 사진 메뉴 국밥 순대국 수육 "
)


def make_resolved(
    input_url: str = "https://naver.me/abc123",
    listing_id: Optional[str] = "987654321",
) -> ResolvedTarget:
    canonical = (
        f"https://map.naver.com/p/entry/place/{listing_id}" if listing_id else input_url
    )
    return ResolvedTarget(
        input_url=input_url,
        final_url=canonical,
        listing_id=listing_id,
        canonical_url=canonical,
    )


def make_listing_signals(**overrides: Any) -> ListingSignals:
    fields = dict(
        place_name="맛있는 국밥집",
        store_info_text=LISTING_BODY,
        store_info_text_length=len(LISTING_BODY),
        photo_count=10,
        blog_review_count=30,
        receipt_review_count=120,
        full_text=LISTING_BODY,
    )
    fields.update(overrides)
    return ListingSignals(**fields)


@pytest.fixture()
def fake_redis() -> FakeRedisClient:
    return FakeRedisClient()


@pytest.fixture()
def service(fake_redis: FakeRedisClient) -> DiagnosisService:
    """Service with stubbed resolver and scrapers; tests tweak the mocks."""
    return DiagnosisService(
        cache=fake_redis,
        resolver=AsyncMock(side_effect=lambda url: make_resolved(input_url=url)),
        listing_scraper=AsyncMock(return_value=make_listing_signals()),
        profile_scraper=AsyncMock(
            return_value=ProfileSignals(followers=1200, following=300, posts=45)
        ),
        scrape_timeout=2,
    )
