"""
Listing source over pre-rendered HTML pages.

Used for saved snapshots of the portal and in tests; it runs the same
card extractor as the live source.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from tenderwatch.core.config.models import ListingSelectors
from tenderwatch.core.errors import ListingUnavailableError
from tenderwatch.core.extract.base import ListingRecord
from tenderwatch.core.extract.gem_cards import GemCardExtractor

from .base import TenderSource

logger = logging.getLogger(__name__)


class HtmlPagesSource(TenderSource):
    """Serves a fixed sequence of HTML documents as listing pages."""

    def __init__(
        self,
        pages: Sequence[str],
        *,
        base_url: str = "https://bidplus.gem.gov.in/bidlists",
        selectors: ListingSelectors | None = None,
        source_name: str = "GEM",
    ) -> None:
        super().__init__()
        self.pages = list(pages)
        self.base_url = base_url
        self.source_name = source_name
        self.extractor = GemCardExtractor(selectors, base_url=base_url)

    @classmethod
    def from_files(cls, paths: Sequence[Path | str], **kwargs) -> "HtmlPagesSource":
        return cls([Path(p).read_text(encoding="utf-8") for p in paths], **kwargs)

    @property
    def name(self) -> str:
        return self.source_name

    async def open(self) -> None:
        if not self.pages:
            raise ListingUnavailableError(self.base_url, attempts=1)
        self.page_number = 1

    async def fetch_page(self) -> list[ListingRecord]:
        html = self.pages[self.page_number - 1]
        result = self.extractor.extract(html, self.base_url)
        if result.errors:
            logger.warning("Extraction failed on page %d: %s", self.page_number, "; ".join(result.errors))
            return []
        return result.records

    async def next_page(self) -> bool:
        if self.page_number >= len(self.pages):
            return False
        self.page_number += 1
        return True
