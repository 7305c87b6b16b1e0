"""Free-text matching: multi-token location phrases and single keywords."""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from .entities import AlumniRecord

__all__ = [
    "LOCATION_SEARCH_FIELDS",
    "KEYWORD_FIELDS",
    "tokenize",
    "location_rank",
    "match_by_location",
    "keyword_matches",
]

LOCATION_SEARCH_FIELDS = ("city", "district", "address", "country")
KEYWORD_FIELDS = ("name", "industry", "company", "industry_segment", "job_title")

# rank fields for the first token, in priority order; anything else ranks last
_RANK_FIELDS = ("city", "district", "address")
_FALLBACK_RANK = len(_RANK_FIELDS) + 1


def tokenize(phrase: Optional[str]) -> List[str]:
    if not phrase:
        return []
    return [tok for tok in phrase.lower().split() if tok]


def _contains(value: Optional[str], token: str) -> bool:
    return value is not None and token in str(value).lower()


def _token_hits_any_field(record: AlumniRecord, token: str) -> bool:
    return any(_contains(getattr(record, name), token) for name in LOCATION_SEARCH_FIELDS)


def location_rank(record: AlumniRecord, first_token: str) -> int:
    """1 = city, 2 = district, 3 = address, 4 = matched only through other tokens/fields."""
    for rank, name in enumerate(_RANK_FIELDS, start=1):
        if _contains(getattr(record, name), first_token):
            return rank
    return _FALLBACK_RANK


def match_by_location(records: Iterable[AlumniRecord], phrase: Optional[str]) -> List[AlumniRecord]:
    """Records where every token hits at least one location field.

    Membership is decided by all tokens; ordering only by the first token.
    An empty phrase matches nothing.
    """
    tokens = tokenize(phrase)
    if not tokens:
        return []

    hits = [
        rec
        for rec in records
        if all(_token_hits_any_field(rec, tok) for tok in tokens)
    ]
    first = tokens[0]
    # list.sort is stable, so ties keep input order
    hits.sort(key=lambda rec: location_rank(rec, first))
    return hits


def keyword_matches(
    record: AlumniRecord, keyword: str, fields: Sequence[str] = KEYWORD_FIELDS
) -> bool:
    needle = keyword.lower()
    return any(_contains(getattr(record, name), needle) for name in fields)
