from typing import Optional, Union
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError
import json

from browser_pool import get_active_browser_pool
from config import settings
from diagnosis_service import DiagnosisService, get_diagnosis_service
from models import (
    DiagnosisError,
    ListingDiagnosisRequest,
    ListingDiagnosisResponse,
    ProfileDiagnosisResponse,
)
from rate_limiter import listing_rate_limit, profile_rate_limit
from redis_client import RedisClient, get_redis_client

# Diagnosis routes live under the stable API prefix
router = APIRouter(prefix=settings.API_PREFIX)

# Routes served at the site root
root_router = APIRouter()

PROFILE_ERRORS = {
    DiagnosisError.INVALID_INPUT: (400, "인스타그램 아이디를 올바르게 입력해주세요."),
    DiagnosisError.TIMEOUT: (504, "인스타그램 응답이 지연되어 분석이 중단되었습니다."),
    DiagnosisError.SCRAPE_FAILED: (503, "계정 정보를 불러올 수 없습니다. 잠시 후 다시 시도해주세요."),
}

LISTING_ERRORS = {
    DiagnosisError.INVALID_URL: (
        400,
        "올바른 네이버 플레이스 링크(naver.me 또는 map.naver.com)를 입력해주세요.",
    ),
    DiagnosisError.TIMEOUT: (504, "네이버 페이지 응답이 지연되어 분석이 중단되었습니다."),
    DiagnosisError.SCRAPE_FAILED: (500, "페이지 정보를 수집하는데 실패했습니다."),
}


def _error_response(status_code: int, content: dict, response: Response) -> JSONResponse:
    """Error envelope that keeps headers set by dependencies (RateLimit-*)."""
    return JSONResponse(status_code=status_code, content=content, headers=dict(response.headers))


async def _listing_url(http_request: Request) -> Optional[str]:
    """The submitted listing URL, or None for a missing or malformed body."""
    try:
        body = ListingDiagnosisRequest.model_validate_json(await http_request.body())
    except ValidationError:
        return None
    return body.url


@router.get(
    "/diagnosis/profile",
    response_model=ProfileDiagnosisResponse,
    dependencies=[Depends(profile_rate_limit)],
)
async def diagnose_profile(
    response: Response,
    handle: Optional[str] = Query(default=None),
    service: DiagnosisService = Depends(get_diagnosis_service),
):
    """
    Diagnoses a public profile from its follower, following and post counts.

    Results are cached for 12 hours; ``source`` tells whether this response
    came from the cache or a live fetch.
    """
    outcome = await service.diagnose_profile(handle)

    if not outcome.ok:
        status_code, message = PROFILE_ERRORS[outcome.error]
        return _error_response(
            status_code,
            {"success": False, "error": outcome.error.value, "message": message},
            response,
        )

    return ProfileDiagnosisResponse(source=outcome.source, data=outcome.result)


@router.post(
    "/diagnosis/listing",
    response_model=ListingDiagnosisResponse,
    dependencies=[Depends(listing_rate_limit)],
    # Body is read in _listing_url; declared here for the OpenAPI schema
    openapi_extra={
        "requestBody": {
            "content": {"application/json": {"schema": ListingDiagnosisRequest.model_json_schema()}}
        }
    },
)
async def diagnose_listing(
    http_request: Request,
    response: Response,
    service: DiagnosisService = Depends(get_diagnosis_service),
):
    """
    Diagnoses a local-business listing page.

    Short links are resolved to the canonical listing URL first; the response
    carries the resolution metadata alongside the score and keywords.
    """
    outcome = await service.diagnose_listing(await _listing_url(http_request))

    if not outcome.ok:
        status_code, message = LISTING_ERRORS[outcome.error]
        return _error_response(
            status_code,
            {"ok": False, "error": outcome.error.value, "message": message},
            response,
        )

    resolved = outcome.resolved
    diagnosis = outcome.result
    return ListingDiagnosisResponse(
        source=outcome.source,
        input_url=resolved.input_url,
        final_url=resolved.final_url,
        canonical_url=resolved.canonical_url,
        listing_id=resolved.listing_id,
        place_name=diagnosis.place_name,
        metrics=diagnosis.metrics,
        score=diagnosis.score,
        grade=diagnosis.grade,
        keywords=diagnosis.keywords,
        score_breakdown=diagnosis.score_breakdown,
        recommendations=diagnosis.recommendations,
    )


@router.get("/health")
async def health_check():
    return {"ok": True}


@router.get("/version")
async def version():
    return {"ok": True, "version": settings.APP_VERSION}


@router.get("/status/detailed")
async def detailed_status_check(redis_client: RedisClient = Depends(get_redis_client)):
    """
    Status check with Redis and browser pool health, for monitoring.
    """
    status_info: dict[str, Union[str, dict]] = {
        "api": "healthy",
        "redis": "unknown",
        "browser_pool": "not_initialized",
    }

    if await redis_client.ping():
        status_info["redis"] = "connected"
        status_info["redis_stats"] = await redis_client.get_stats()
    else:
        status_info["redis"] = "disconnected"

    pool = get_active_browser_pool()
    if pool is not None:
        status_info["browser_pool"] = await pool.health_check()

    status_info["overall_status"] = (
        "healthy" if status_info["redis"] == "connected" else "degraded"
    )
    return status_info


@root_router.get("/runtime-config.js")
async def runtime_config():
    """Frontend runtime config: the API base URL resolved at deploy time."""
    config = {"API_BASE_URL": settings.API_URL, "VITE_API_URL": settings.API_URL}
    body = f"window.__RUNTIME_CONFIG__ = {json.dumps(config)};"
    return Response(
        content=body,
        media_type="application/javascript",
        headers={"Cache-Control": "no-store"},
    )
