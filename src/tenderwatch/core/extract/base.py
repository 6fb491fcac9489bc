"""
Extraction base classes and data structures.

Defines the interface for listing extractors.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class ListingRecord:
    """A single tender card as read from a listing page.

    Raw date strings are kept next to their parsed values so a parse
    miss can be logged with the original text.
    """

    reference_id: str
    title: str
    category: str | None = None
    description: str | None = None  # department / ministry block
    quantity: int | None = None

    start_date_text: str | None = None
    end_date_text: str | None = None
    published_at: datetime | None = None
    closing_at: datetime | None = None

    detail_url: str | None = None
    row_index: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "reference_id": self.reference_id,
            "title": self.title,
            "category": self.category,
            "description": self.description,
            "quantity": self.quantity,
            "published_at": self.published_at,
            "closing_at": self.closing_at,
            "detail_url": self.detail_url,
        }


@dataclass
class ExtractionResult:
    """Result of an extraction operation."""

    records: list[ListingRecord] = field(default_factory=list)
    cards_seen: int = 0

    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    source_url: str | None = None
    extraction_method: str | None = None

    @property
    def ok(self) -> bool:
        """Check if extraction produced anything."""
        return bool(self.records) and not self.errors

    def add_warning(self, message: str) -> None:
        """Add a warning message."""
        self.warnings.append(message)

    def add_error(self, message: str) -> None:
        """Add an error message."""
        self.errors.append(message)


class Extractor(ABC):
    """Abstract base class for extraction strategies."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Extractor identifier."""

    @abstractmethod
    def extract(self, html: str, url: str | None = None) -> ExtractionResult:
        """Extract listing records from HTML content.

        Args:
            html: HTML content to parse
            url: Source URL for resolving links

        Returns:
            ExtractionResult with extracted records
        """
