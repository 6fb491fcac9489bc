"""Listing extraction."""

from .base import ExtractionResult, Extractor, ListingRecord
from .gem_cards import GemCardExtractor, extract_listing_cards

__all__ = [
    "ExtractionResult",
    "Extractor",
    "ListingRecord",
    "GemCardExtractor",
    "extract_listing_cards",
]
