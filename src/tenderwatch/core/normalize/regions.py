"""
Region classification against the state/UT gazetteer.
"""

from __future__ import annotations

from typing import Sequence

from tenderwatch.core.config.models import DEFAULT_REGIONS


def classify_region(text: str | None, gazetteer: Sequence[str] = DEFAULT_REGIONS) -> str | None:
    """Return the first gazetteer entry contained in ``text``.

    Matching is a case-insensitive substring test in gazetteer order.
    """
    if not text:
        return None
    haystack = text.lower()
    for region in gazetteer:
        if region.lower() in haystack:
            return region
    return None


def _clean_terms(terms: Sequence[str]) -> list[str]:
    return [t.strip().lower() for t in terms if t and t.strip()]


def region_matches(record_region: str | None, wanted: Sequence[str]) -> bool:
    """Subscription region test: no regions means no constraint."""
    needles = _clean_terms(wanted)
    if not needles:
        return True
    if not record_region:
        return False
    haystack = record_region.lower()
    return any(n in haystack for n in needles)


def keyword_matches(fields: Sequence[str | None], keywords: Sequence[str]) -> bool:
    """Subscription category test: no keywords means no constraint."""
    needles = _clean_terms(keywords)
    if not needles:
        return True
    haystacks = [f.lower() for f in fields if f]
    return any(n in h for n in needles for h in haystacks)
