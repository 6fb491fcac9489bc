import asyncio

import pytest
from tenacity import RetryCallState

from conftest import FIXTURE_NOW
from tenderwatch.core.backends.base import BackendError
from tenderwatch.core.backends.playwright_backend import ActionResult, BrowserError, NavigationTimeout
from tenderwatch.core.config.models import ListingSelectors, ScraperConfig
from tenderwatch.core.errors import ListingUnavailableError
from tenderwatch.core.fetch.retries import RetryConfig
from tenderwatch.core.orchestrator.scraper import TenderScraper
from tenderwatch.core.portals.gem import GemListingSource

NEXT = ["a.page-link.next", "ul.pagination a.last"]


class ScriptedBackend:
    """Browser stand-in; every call is recorded and results come from a script."""

    def __init__(self, pages=(), *, home_error=None, listing_errors=(), present=(), disabled=(), click_ok=True):
        self.pages = list(pages)
        self.home_error = home_error
        self.listing_errors = list(listing_errors)
        self.present = set(present)
        self.disabled = set(disabled)
        self.click_ok = click_ok
        self.requests = []
        self.clicks = []
        self.closed = False
        self.current = 0

    async def fetch(self, request):
        self.requests.append(request.page_type)
        if request.page_type == "home" and self.home_error is not None:
            raise self.home_error
        if request.page_type == "listing" and self.listing_errors:
            raise self.listing_errors.pop(0)

    async def sleep(self, ms):
        pass

    async def get_page_content(self):
        if isinstance(self.pages[self.current], Exception):
            raise self.pages[self.current]
        return self.pages[self.current]

    async def get_page_url(self):
        return "https://bidplus.gem.gov.in/all-bids"

    async def has_element(self, selector):
        return selector in self.present

    async def is_disabled(self, selector, disabled_class="disabled"):
        return selector in self.disabled

    async def first_text(self, selector):
        return f"first on page {self.current}"

    async def click(self, selector, timeout_ms=None):
        self.clicks.append(selector)
        if not self.click_ok:
            return ActionResult(success=False, action="click", selector=selector, error="element detached")
        self.current += 1
        if self.current >= len(self.pages) - 1:
            self.disabled.update(self.present)
        return ActionResult(success=True, action="click", selector=selector)

    async def wait_for_text_change(self, selector, previous, timeout_ms):
        return True

    async def close(self):
        self.closed = True


def gem_source(backend, **overrides):
    values = {"retry_delay_seconds": 0, "listing_retries": 3, "selectors": ListingSelectors(next_page=NEXT)}
    values.update(overrides)
    return GemListingSource(ScraperConfig(**values), backend=backend)


def opened(source):
    asyncio.run(source.open())
    return source


class TestOpen:
    def test_warm_up_failure_is_not_fatal(self):
        backend = ScriptedBackend(home_error=BrowserError("gem.gov.in unreachable"))
        source = opened(gem_source(backend))

        assert backend.requests == ["home", "listing"]
        assert source.page_number == 1

    def test_listing_load_recovers_within_the_retry_cap(self):
        backend = ScriptedBackend(listing_errors=[NavigationTimeout("slow"), NavigationTimeout("slow")])
        opened(gem_source(backend))

        assert backend.requests.count("listing") == 3

    def test_exhausted_retries_raise_listing_unavailable(self):
        backend = ScriptedBackend(listing_errors=[NavigationTimeout("slow")] * 5)

        with pytest.raises(ListingUnavailableError) as exc_info:
            opened(gem_source(backend))

        assert backend.requests.count("listing") == 3
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.cause, NavigationTimeout)

    def test_unavailable_listing_fails_the_scrape_and_closes_the_browser(self, session_factory):
        backend = ScriptedBackend(listing_errors=[NavigationTimeout("slow")] * 5)
        scraper = TenderScraper(session_factory, lambda: gem_source(backend), clock=lambda: FIXTURE_NOW)

        with pytest.raises(ListingUnavailableError):
            asyncio.run(scraper.scrape(max_pages=1))
        assert backend.closed


def test_retry_delay_grows_linearly():
    retrying = RetryConfig(max_attempts=3, delay=3.0).retrying()
    waits = []
    for attempt in (1, 2, 3):
        state = RetryCallState(retrying, None, (), {})
        state.attempt_number = attempt
        waits.append(retrying.wait(state))

    assert waits == [3.0, 6.0, 9.0]


class TestFetchPage:
    def test_records_from_the_current_page(self, listing_html):
        source = opened(gem_source(ScriptedBackend([listing_html])))
        records = asyncio.run(source.fetch_page())

        assert [r.reference_id for r in records][:1] == ["GEM/2026/B/7000001"]
        assert len(records) == 3

    def test_unreadable_page_yields_nothing(self):
        source = opened(gem_source(ScriptedBackend([BrowserError("page crashed")])))
        assert asyncio.run(source.fetch_page()) == []

    def test_markup_drift_yields_nothing(self, listing_html):
        selectors = ListingSelectors(card=".bid-tile", next_page=NEXT)
        source = opened(gem_source(ScriptedBackend([listing_html]), selectors=selectors))
        assert asyncio.run(source.fetch_page()) == []


class TestNextPage:
    def test_clicks_the_first_present_control(self, listing_html):
        backend = ScriptedBackend([listing_html] * 3, present={"ul.pagination a.last"})
        source = opened(gem_source(backend))

        assert asyncio.run(source.next_page())
        assert backend.clicks == ["ul.pagination a.last"]
        assert source.page_number == 2

    def test_disabled_control_ends_pagination(self, listing_html):
        backend = ScriptedBackend([listing_html], present={NEXT[0]}, disabled={NEXT[0]})
        source = opened(gem_source(backend))

        assert not asyncio.run(source.next_page())
        assert backend.clicks == []
        assert source.page_number == 1

    def test_missing_control_ends_pagination(self, listing_html):
        source = opened(gem_source(ScriptedBackend([listing_html])))
        assert not asyncio.run(source.next_page())

    def test_failed_click_ends_pagination(self, listing_html):
        backend = ScriptedBackend([listing_html] * 2, present={NEXT[0]}, click_ok=False)
        source = opened(gem_source(backend))

        assert not asyncio.run(source.next_page())
        assert source.page_number == 1

    def test_backend_error_while_paging_ends_pagination(self, listing_html):
        backend = ScriptedBackend([listing_html] * 2, present={NEXT[0]})

        async def broken(selector, disabled_class="disabled"):
            raise BackendError("target closed")

        backend.is_disabled = broken
        source = opened(gem_source(backend))
        assert not asyncio.run(source.next_page())


def test_scrape_walks_pages_until_the_control_is_disabled(session_factory, listing_page):
    pages = [
        listing_page((f"GEM/2026/B/5{n}", "Chairs", "Goa", "19-10-2026 9:00 AM", "30-10-2026 3:00 PM"))
        for n in range(3)
    ]
    backend = ScriptedBackend(pages, present={NEXT[0]})
    scraper = TenderScraper(session_factory, lambda: gem_source(backend), clock=lambda: FIXTURE_NOW)

    result = asyncio.run(scraper.scrape(max_pages=0))

    assert result.pages_scraped == 3
    assert result.added == 3
    assert len(backend.clicks) == 2
    assert backend.closed
