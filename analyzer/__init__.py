# Analyzer package - text normalization and diagnosis scoring
from .text import parse_compact_number, extract_keywords
from .scoring import grade_for_score, score_listing, score_profile, status_for_grade

__all__ = [
    "parse_compact_number",
    "extract_keywords",
    "grade_for_score",
    "score_listing",
    "score_profile",
    "status_for_grade",
]
