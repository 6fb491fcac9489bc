"""Normalization of extracted listing data."""

from .parsing import (
    ParsedDate,
    category_from_title,
    clean_html_text,
    normalize_whitespace,
    parse_date,
    parse_quantity,
)
from .regions import classify_region, keyword_matches, region_matches

__all__ = [
    # Parsing
    "ParsedDate",
    "parse_date",
    "parse_quantity",
    "category_from_title",
    "normalize_whitespace",
    "clean_html_text",
    # Regions
    "classify_region",
    "region_matches",
    "keyword_matches",
]
