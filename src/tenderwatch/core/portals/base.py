"""
Tender source base class and interfaces.

A tender source hides how listing pages are obtained (a live browser
session, saved HTML) behind a small cursor-style contract the scraper
drives page by page.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from tenderwatch.core.extract.base import ListingRecord


class TenderSource(ABC):
    """Base class for listing sources.

    Lifecycle: ``open()`` once, then alternate ``fetch_page()`` and
    ``next_page()`` until ``next_page()`` returns False, then ``close()``.
    Using the source as an async context manager does the open/close.
    """

    def __init__(self) -> None:
        self.page_number = 0

    @property
    @abstractmethod
    def name(self) -> str:
        """Source identifier stored on ingested records."""

    @abstractmethod
    async def open(self) -> None:
        """Prepare the session and load the first listing page.

        Raises:
            ListingUnavailableError: The listing could not be loaded
        """

    @abstractmethod
    async def fetch_page(self) -> list[ListingRecord]:
        """Records on the current page.

        Structural problems (markup drift, unparsable page) yield an empty
        list rather than an exception.
        """

    @abstractmethod
    async def next_page(self) -> bool:
        """Advance to the next page. False when there is none."""

    async def close(self) -> None:
        """Release resources."""

    async def __aenter__(self) -> "TenderSource":
        try:
            await self.open()
        except BaseException:
            await self.close()
            raise
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
