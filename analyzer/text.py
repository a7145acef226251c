"""
Text normalization helpers for the diagnosis analyzer.

Parses human-formatted counts ("12.3k", "1,204") and ranks keywords in
free text scraped from profile and listing pages.
"""

import math
import re
from collections import Counter
from decimal import Decimal, InvalidOperation
from typing import Optional

from models import Keywords

UNIT_MULTIPLIERS = {
    "k": 1_000,
    "m": 1_000_000,
    "b": 1_000_000_000,
}

# Korean particles and function words that carry no topical signal
STOPWORDS = frozenset(
    ["있는", "없는", "하는", "및", "등", "를", "을", "가", "이", "은", "는", "에", "의", "도", "다"]
)

MAIN_KEYWORD_COUNT = 5
SUB_KEYWORD_COUNT = 7

# ASCII word characters plus Hangul syllables; other scripts are stripped
_NON_WORD = re.compile(r"[^\w\s가-힣]", re.ASCII)


def parse_compact_number(value: Optional[str]) -> int:
    """
    Parse a compact human-formatted count into an integer.

    "1,204" -> 1204, "12.3k" -> 12300, "1.2M" -> 1200000. Returns 0 for
    empty or unparseable input instead of raising.
    """
    if not value:
        return 0

    clean = re.sub(r"[,\s]", "", str(value)).lower()
    multiplier = 1
    if clean and clean[-1] in UNIT_MULTIPLIERS:
        multiplier = UNIT_MULTIPLIERS[clean[-1]]
        clean = clean[:-1]

    try:
        number = Decimal(clean)
    except InvalidOperation:
        return 0

    if not number.is_finite():
        return 0

    return math.floor(number * multiplier)


def extract_keywords(text: Optional[str]) -> Keywords:
    """
    Rank the most frequent meaningful tokens in ``text``.

    Returns the top 5 tokens as ``main`` and the next 7 as ``sub``. Ties keep
    first-seen order.
    """
    if not text:
        return Keywords()

    tokens = _NON_WORD.sub(" ", text).split()
    freq = Counter(
        token for token in tokens if len(token) > 1 and token not in STOPWORDS
    )
    ranked = [token for token, _ in freq.most_common(MAIN_KEYWORD_COUNT + SUB_KEYWORD_COUNT)]

    return Keywords(
        main=ranked[:MAIN_KEYWORD_COUNT],
        sub=ranked[MAIN_KEYWORD_COUNT:],
    )
