from enum import Enum
from typing import List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FrozenCamelModel(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )


# Enums
class Grade(str, Enum):
    S = "S"
    A = "A"
    B = "B"
    C = "C"
    D = "D"


class DiagnosisError(str, Enum):
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_URL = "INVALID_URL"
    TIMEOUT = "TIMEOUT"
    SCRAPE_FAILED = "SCRAPE_FAILED"


# Resolution / scraped signals
class ResolvedTarget(CamelModel):
    input_url: str
    final_url: str
    listing_id: Optional[str] = None
    canonical_url: str


class ListingSignals(CamelModel):
    place_name: str = "Unknown"
    directions_text_length: int = 0
    store_info_text: str = ""
    store_info_text_length: int = 0
    photo_count: int = 0
    blog_review_count: int = 0
    receipt_review_count: int = 0
    menu_count: int = 0
    menu_with_description_count: int = 0
    full_text: str = ""


class ProfileSignals(CamelModel):
    followers: int
    following: int
    posts: int


# Scoring
class Keywords(FrozenCamelModel):
    main: List[str] = Field(default_factory=list)
    sub: List[str] = Field(default_factory=list)


class ScoreItem(FrozenCamelModel):
    name: str
    score: int
    max: int
    notes: str = ""


class ScoreReport(FrozenCamelModel):
    score: int = Field(ge=0, le=100)
    grade: Grade
    keywords: Keywords = Field(default_factory=Keywords)
    breakdown: List[ScoreItem] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


# Diagnosis results (what gets cached)
class ListingDiagnosis(FrozenCamelModel):
    place_name: str
    metrics: ListingSignals
    score: int
    grade: Grade
    keywords: Keywords
    score_breakdown: List[ScoreItem]
    recommendations: List[str]


class ProfileDiagnosis(FrozenCamelModel):
    handle: str
    followers: int
    following: int
    posts: int
    score: int
    grade: Grade
    status: str
    tips: List[str]
    breakdown: List[ScoreItem]
    recommendations: List[str]


class DiagnosisOutcome(BaseModel):
    """
    Tagged result of a diagnosis request.

    Exactly one of ``result`` or ``error`` is set. ``resolved`` carries the
    listing resolution metadata when it was computed.
    """

    result: Optional[Union[ListingDiagnosis, ProfileDiagnosis]] = None
    error: Optional[DiagnosisError] = None
    source: Optional[str] = None
    resolved: Optional[ResolvedTarget] = None

    @property
    def ok(self) -> bool:
        return self.error is None


# Requests / responses
class ListingDiagnosisRequest(BaseModel):
    url: Optional[str] = None


class ListingDiagnosisResponse(CamelModel):
    ok: bool = True
    source: str
    input_url: str
    final_url: str
    canonical_url: str
    listing_id: Optional[str] = None
    place_name: str
    metrics: ListingSignals
    score: int
    grade: Grade
    keywords: Keywords
    score_breakdown: List[ScoreItem]
    recommendations: List[str]


class ProfileDiagnosisResponse(BaseModel):
    success: bool = True
    source: str
    data: ProfileDiagnosis
