"""
Live GeM listing source driven by Playwright.
"""

from __future__ import annotations

import logging

from tenderwatch.core.backends.base import BackendError, RequestSpec
from tenderwatch.core.backends.playwright_backend import PlaywrightBackend
from tenderwatch.core.config.models import ScraperConfig
from tenderwatch.core.errors import ListingUnavailableError
from tenderwatch.core.extract.base import ListingRecord
from tenderwatch.core.extract.gem_cards import GemCardExtractor
from tenderwatch.core.fetch.retries import RetryConfig, retry_async

from .base import TenderSource

logger = logging.getLogger(__name__)


class GemListingSource(TenderSource):
    """Reads the GeM bid list through a headless browser.

    Pagination is click-driven: the listing is an AJAX view, so the
    next page is reached by clicking the pager and waiting for the first
    bid number on the page to change.
    """

    def __init__(self, config: ScraperConfig, backend: PlaywrightBackend | None = None) -> None:
        super().__init__()
        self.config = config
        self.backend = backend or PlaywrightBackend(
            headless=config.headless,
            timeout=config.navigation_timeout_ms / 1000,
            browser_type=config.browser,
            user_agent=config.user_agent,
            stealth=config.stealth,
            screenshots_path=config.screenshots_path,
            screenshots_on_error=config.screenshots_on_error,
        )
        self.extractor = GemCardExtractor(
            config.selectors,
            base_url=config.listing_url,
            category_max_length=config.category_max_length,
        )

    @property
    def name(self) -> str:
        return self.config.source_name

    async def open(self) -> None:
        await self._warm_up()

        retry = RetryConfig(
            max_attempts=self.config.listing_retries,
            delay=self.config.retry_delay_seconds,
            retry_exceptions=(BackendError,),
        )
        try:
            await retry_async(self._load_listing, config=retry)
        except BackendError as e:
            raise ListingUnavailableError(self.config.listing_url, self.config.listing_retries, e) from e

        self.page_number = 1

    async def _warm_up(self) -> None:
        """Visit the portal root so session cookies exist; failure is non-fatal."""
        try:
            await self.backend.fetch(
                RequestSpec(
                    url=self.config.home_url,
                    timeout=self.config.warmup_timeout_ms / 1000,
                    page_type="home",
                )
            )
            if self.config.warmup_delay_ms:
                await self.backend.sleep(self.config.warmup_delay_ms)
        except BackendError as e:
            logger.warning("Warm-up request to %s failed, continuing: %s", self.config.home_url, e)

    async def _load_listing(self) -> None:
        logger.info("Loading listing %s", self.config.listing_url)
        await self.backend.fetch(
            RequestSpec(
                url=self.config.listing_url,
                timeout=self.config.navigation_timeout_ms / 1000,
                wait_for=self.config.selectors.card,
                wait_for_timeout=self.config.selector_timeout_ms / 1000,
                page_type="listing",
            )
        )

    async def fetch_page(self) -> list[ListingRecord]:
        try:
            html = await self.backend.get_page_content()
            url = await self.backend.get_page_url()
        except BackendError as e:
            logger.warning("Could not read page %d: %s", self.page_number, e)
            return []

        result = self.extractor.extract(html, url)
        for warning in result.warnings:
            logger.debug("Page %d: %s", self.page_number, warning)
        if result.errors:
            logger.warning("Extraction failed on page %d: %s", self.page_number, "; ".join(result.errors))
            return []
        return result.records

    async def next_page(self) -> bool:
        sel = self.config.selectors
        try:
            for selector in sel.next_page:
                if not await self.backend.has_element(selector):
                    continue

                if await self.backend.is_disabled(selector, sel.disabled_class):
                    logger.info("Next-page control %s is disabled; last page reached", selector)
                    return False

                previous = await self.backend.first_text(sel.reference_link)
                clicked = await self.backend.click(selector, timeout_ms=self.config.selector_timeout_ms)
                if not clicked.success:
                    logger.warning("Clicking %s failed: %s", selector, clicked.error)
                    return False

                changed = await self.backend.wait_for_text_change(
                    sel.reference_link,
                    previous,
                    self.config.page_change_timeout_ms,
                )
                if not changed:
                    logger.warning("Listing did not change after paging; reading it anyway")

                self.page_number += 1
                return True
        except BackendError as e:
            logger.warning("Pagination failed after page %d: %s", self.page_number, e)
            return False

        logger.info("No next-page control found after page %d", self.page_number)
        return False

    async def close(self) -> None:
        await self.backend.close()
