import asyncio
from datetime import datetime

import pytest
from sqlalchemy import select

from conftest import FIXTURE_NOW
from tenderwatch.core.errors import ListingUnavailableError
from tenderwatch.core.orchestrator.scraper import TenderScraper
from tenderwatch.core.portals.html_pages import HtmlPagesSource
from tenderwatch.persistence.db import session_scope
from tenderwatch.persistence.models import RunStatus, ScrapeRun, Tender


def make_scraper(session_factory, pages, now=FIXTURE_NOW):
    return TenderScraper(
        session_factory,
        lambda: HtmlPagesSource(pages),
        clock=lambda: now,
    )


def stored_references(session_factory) -> list[str]:
    with session_scope(session_factory) as session:
        return list(session.execute(select(Tender.reference_id).order_by(Tender.reference_id)).scalars())


def test_fixture_page_with_one_stored_reference(session_factory, listing_html, add_tender):
    add_tender("GEM/2026/B/7000003", title="Medical Consumables")

    result = asyncio.run(make_scraper(session_factory, [listing_html]).scrape(max_pages=1))

    assert result.to_dict() == {"added": 2, "duplicateSkipped": 1, "dateFilteredSkipped": 0}
    assert stored_references(session_factory) == [
        "GEM/2026/B/7000001",
        "GEM/2026/B/7000002",
        "GEM/2026/B/7000003",
    ]


def test_ingestion_is_idempotent(session_factory, listing_html):
    scraper = make_scraper(session_factory, [listing_html])

    first = asyncio.run(scraper.scrape(max_pages=1))
    second = asyncio.run(scraper.scrape(max_pages=1))

    assert first.added == 3
    assert second.added == 0
    assert second.duplicate_skipped == 3
    assert len(stored_references(session_factory)) == 3


def test_inserted_rows_carry_region_and_category(session_factory, listing_html):
    asyncio.run(make_scraper(session_factory, [listing_html]).scrape(max_pages=1))

    with session_scope(session_factory) as session:
        tenders = {t.reference_id: t for t in session.execute(select(Tender)).scalars()}

    it = tenders["GEM/2026/B/7000001"]
    assert it.region == "Delhi"
    assert it.category == "IT Infrastructure Upgrade"
    assert it.status == "ACTIVE"
    assert it.source == "GEM"
    assert it.source_url.endswith("/showbidDocument/7000001")
    assert tenders["GEM/2026/B/7000002"].region == "Uttar Pradesh"
    assert tenders["GEM/2026/B/7000003"].region == "Karnataka"


def test_today_only_filters_other_days(session_factory, listing_html):
    tomorrow = datetime(2026, 10, 20, 9, 0)
    result = asyncio.run(make_scraper(session_factory, [listing_html], now=tomorrow).scrape(max_pages=1))

    assert result.added == 0
    assert result.date_filtered_skipped == 3
    assert stored_references(session_factory) == []


def test_all_dates_mode_ignores_start_date(session_factory, listing_html):
    tomorrow = datetime(2026, 10, 20, 9, 0)
    scraper = make_scraper(session_factory, [listing_html], now=tomorrow)
    result = asyncio.run(scraper.scrape(max_pages=1, today_only=False))

    assert result.added == 3
    assert result.date_filtered_skipped == 0


def test_closed_tenders_are_skipped(session_factory, listing_html):
    # Cards one and three have closed by then
    later = datetime(2026, 10, 30, 16, 0)
    result = asyncio.run(make_scraper(session_factory, [listing_html], now=later).scrape(max_pages=1, today_only=False))

    assert result.expired_skipped == 2
    assert stored_references(session_factory) == ["GEM/2026/B/7000002"]


def test_unparseable_start_date_is_not_date_filtered(session_factory, listing_page):
    page = listing_page(("GEM/2026/B/11", "Laptops", "Goa", "--", "30-10-2026 3:00 PM"))
    result = asyncio.run(make_scraper(session_factory, [page]).scrape(max_pages=1))

    assert result.added == 1
    assert result.date_filtered_skipped == 0


def test_duplicate_reference_within_one_page(session_factory, listing_page):
    card = ("GEM/2026/B/12", "Laptops", "Goa", "19-10-2026 9:00 AM", "30-10-2026 3:00 PM")
    result = asyncio.run(make_scraper(session_factory, [listing_page(card, card)]).scrape(max_pages=1))

    assert result.added == 1
    assert result.duplicate_skipped == 1


def test_page_cap_and_pagination(session_factory, listing_page):
    pages = [
        listing_page((f"GEM/2026/B/2{n}", "Chairs", "Goa", "19-10-2026 9:00 AM", "30-10-2026 3:00 PM"))
        for n in range(3)
    ]

    capped = asyncio.run(make_scraper(session_factory, pages).scrape(max_pages=2))
    assert capped.pages_scraped == 2
    assert capped.added == 2

    unlimited = asyncio.run(make_scraper(session_factory, pages).scrape(max_pages=0))
    assert unlimited.pages_scraped == 3
    assert unlimited.added == 1


def test_early_stop_when_page_reaches_older_tenders(session_factory, listing_page, add_tender):
    add_tender("GEM/2026/B/31")
    first = listing_page(
        ("GEM/2026/B/31", "Chairs", "Goa", "19-10-2026 9:00 AM", "30-10-2026 3:00 PM"),
        ("GEM/2026/B/32", "Desks", "Goa", "18-10-2026 5:00 PM", "30-10-2026 3:00 PM"),
    )
    second = listing_page(("GEM/2026/B/33", "Lamps", "Goa", "19-10-2026 9:00 AM", "30-10-2026 3:00 PM"))

    result = asyncio.run(make_scraper(session_factory, [first, second]).scrape(max_pages=5))

    assert result.stopped_early
    assert result.pages_scraped == 1
    assert result.added == 0


def test_empty_page_ends_pagination(session_factory, listing_html):
    pages = [listing_html, "<html><body><p>No bids</p></body></html>", listing_html]
    result = asyncio.run(make_scraper(session_factory, pages).scrape(max_pages=0))

    assert result.pages_scraped == 2
    assert result.added == 3


def test_run_row_is_recorded(session_factory, listing_html):
    result = asyncio.run(make_scraper(session_factory, [listing_html]).scrape(max_pages=1, run_type="scheduled"))

    with session_scope(session_factory) as session:
        run = session.get(ScrapeRun, result.run_id)
        assert run.status == RunStatus.COMPLETED.value
        assert run.run_type == "scheduled"
        assert run.records_added == 3
        assert run.records_found == 3
        assert run.pages_scraped == 1
        assert run.finished_at is not None


def test_unavailable_listing_propagates_and_fails_the_run(session_factory):
    scraper = make_scraper(session_factory, [])

    with pytest.raises(ListingUnavailableError):
        asyncio.run(scraper.scrape(max_pages=1))

    with session_scope(session_factory) as session:
        run = session.execute(select(ScrapeRun)).scalar_one()
        assert run.status == RunStatus.FAILED.value
        assert "ListingUnavailableError" in run.error_message
