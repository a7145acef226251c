"""
Diagnosis scoring rubrics.

Maps scraped listing and profile signals to a 0-100 score, a letter grade,
a per-item breakdown and human-readable recommendations. Pure functions,
no I/O.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from models import (
    Grade,
    Keywords,
    ListingSignals,
    ProfileSignals,
    ScoreItem,
    ScoreReport,
)
from analyzer.text import extract_keywords

# Highest qualifying band wins
GRADE_BANDS: Tuple[Tuple[int, Grade], ...] = (
    (90, Grade.S),
    (70, Grade.A),
    (50, Grade.B),
    (30, Grade.C),
)

GRADE_STATUS = {
    Grade.S: "최상",
    Grade.A: "우수",
    Grade.B: "양호",
    Grade.C: "보통",
    Grade.D: "개선 필요",
}

STORE_INFO_MIN_LENGTH = 300
RECEIPT_REVIEW_MIN = 50
BLOG_REVIEW_MIN = 10
PHOTO_MIN = 5
MAIN_KEYWORD_MIN = 3


@dataclass(frozen=True)
class RubricItem:
    """One all-or-nothing listing rubric component."""

    name: str
    points: int
    passed: Callable[[ListingSignals, Keywords], bool]
    notes: str
    recommendation: str


LISTING_RUBRIC: Tuple[RubricItem, ...] = (
    RubricItem(
        name="업체 정보",
        points=25,
        passed=lambda s, k: s.store_info_text_length > STORE_INFO_MIN_LENGTH,
        notes=f"업체 소개/정보 텍스트 {STORE_INFO_MIN_LENGTH}자 초과",
        recommendation="업체 소개글을 300자 이상으로 보강하고 대표 메뉴와 특징을 구체적으로 적어주세요.",
    ),
    RubricItem(
        name="방문자 리뷰",
        points=20,
        passed=lambda s, k: s.receipt_review_count > RECEIPT_REVIEW_MIN,
        notes=f"방문자 리뷰 {RECEIPT_REVIEW_MIN}건 초과",
        recommendation="영수증 리뷰 이벤트 등으로 방문자 리뷰를 50건 이상 확보해보세요.",
    ),
    RubricItem(
        name="블로그 리뷰",
        points=20,
        passed=lambda s, k: s.blog_review_count > BLOG_REVIEW_MIN,
        notes=f"블로그 리뷰 {BLOG_REVIEW_MIN}건 초과",
        recommendation="체험단이나 블로그 리뷰를 10건 이상 늘려 검색 노출을 강화하세요.",
    ),
    RubricItem(
        name="사진",
        points=15,
        passed=lambda s, k: s.photo_count > PHOTO_MIN,
        notes="업체/메뉴 사진 등록 여부",
        recommendation="매장 외관, 내부, 대표 메뉴 사진을 충분히 등록해주세요.",
    ),
    RubricItem(
        name="키워드",
        points=20,
        passed=lambda s, k: len(k.main) >= MAIN_KEYWORD_MIN,
        notes=f"핵심 키워드 {MAIN_KEYWORD_MIN}개 이상 노출",
        recommendation="소개글과 메뉴명에 지역명과 업종 키워드를 반복적으로 노출해주세요.",
    ),
)


def grade_for_score(score: int) -> Grade:
    """Map a score to its letter grade. Monotonic in ``score``."""
    for threshold, grade in GRADE_BANDS:
        if score >= threshold:
            return grade
    return Grade.D


def status_for_grade(grade: Grade) -> str:
    return GRADE_STATUS[grade]


def _clamp(score: int) -> int:
    return max(0, min(100, score))


def _report(
    items: Sequence[ScoreItem],
    recommendations: List[str],
    keywords: Optional[Keywords] = None,
) -> ScoreReport:
    score = _clamp(sum(item.score for item in items))
    return ScoreReport(
        score=score,
        grade=grade_for_score(score),
        keywords=keywords or Keywords(),
        breakdown=list(items),
        recommendations=recommendations,
    )


def score_listing(signals: ListingSignals) -> ScoreReport:
    """
    Score a scraped listing against the fixed listing rubric.

    Every rubric item that scores below its max adds one recommendation; an
    empty recommendation list means no material gaps were found.
    """
    keywords = extract_keywords(signals.full_text)

    items = []
    recommendations = []
    for rubric in LISTING_RUBRIC:
        passed = rubric.passed(signals, keywords)
        items.append(
            ScoreItem(
                name=rubric.name,
                score=rubric.points if passed else 0,
                max=rubric.points,
                notes=rubric.notes,
            )
        )
        if not passed:
            recommendations.append(rubric.recommendation)

    return _report(items, recommendations, keywords)


# Profile rubric: (min value, points) bands, highest first
FOLLOWER_BANDS = ((10_000, 40), (1_000, 25), (100, 10))
POST_BANDS = ((100, 30), (30, 20), (9, 10))
RATIO_BANDS = ((2.0, 30), (1.0, 15))


def _band_points(value: float, bands) -> int:
    for minimum, points in bands:
        if value >= minimum:
            return points
    return 0


def _follow_ratio(signals: ProfileSignals) -> float:
    if signals.following == 0:
        return float("inf") if signals.followers > 0 else 0.0
    return signals.followers / signals.following


def score_profile(signals: ProfileSignals) -> ScoreReport:
    """Score a public profile on audience size, posting volume and follow ratio."""
    components = (
        (
            "팔로워 규모",
            _band_points(signals.followers, FOLLOWER_BANDS),
            FOLLOWER_BANDS[0][1],
            f"팔로워 {signals.followers:,}명",
            "팔로워가 1만 명 이상일 때 계정 신뢰도가 크게 올라갑니다. 꾸준한 노출로 팔로워를 늘려보세요.",
        ),
        (
            "게시물 수",
            _band_points(signals.posts, POST_BANDS),
            POST_BANDS[0][1],
            f"게시물 {signals.posts:,}개",
            "게시물을 100개 이상으로 늘려 계정의 활동성을 보여주세요.",
        ),
        (
            "팔로워/팔로잉 비율",
            _band_points(_follow_ratio(signals), RATIO_BANDS),
            RATIO_BANDS[0][1],
            f"팔로잉 {signals.following:,}명 대비",
            "팔로잉 대비 팔로워 비율이 2배 이상이 되도록 불필요한 팔로잉을 정리해보세요.",
        ),
    )

    items = []
    recommendations = []
    for name, points, maximum, notes, recommendation in components:
        items.append(ScoreItem(name=name, score=points, max=maximum, notes=notes))
        if points < maximum:
            recommendations.append(recommendation)

    return _report(items, recommendations)
