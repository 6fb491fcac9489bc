from datetime import datetime

from tenderwatch.core.config.models import ListingSelectors
from tenderwatch.core.extract import GemCardExtractor, extract_listing_cards

BASE_URL = "https://bidplus.gem.gov.in/bidlists"


def test_extracts_every_card(listing_html):
    result = GemCardExtractor(base_url=BASE_URL).extract(listing_html, BASE_URL)

    assert result.ok
    assert result.cards_seen == 3
    assert [r.reference_id for r in result.records] == [
        "GEM/2026/B/7000001",
        "GEM/2026/B/7000002",
        "GEM/2026/B/7000003",
    ]


def test_card_fields(listing_html):
    first, second, third = extract_listing_cards(listing_html, BASE_URL)

    assert first.title == "IT Infrastructure Upgrade, Servers and Switches"
    assert first.category == "IT Infrastructure Upgrade"
    assert "Delhi" in first.description
    assert first.quantity == 25
    assert first.published_at == datetime(2026, 10, 19, 10, 15)
    assert first.closing_at == datetime(2026, 10, 29, 18, 0)
    assert first.detail_url == "https://bidplus.gem.gov.in/showbidDocument/7000001"

    assert second.category == "Office Furniture"
    assert second.quantity == 1200
    assert third.quantity is None


def test_cards_without_reference_are_skipped(listing_page):
    html = listing_page(("GEM/2026/B/1", "Chairs", "Delhi", "", "")).replace(
        "</body>",
        '<div class="card"><div class="card-body">no bid number</div></div></body>',
    )
    result = GemCardExtractor().extract(html)

    assert result.cards_seen == 2
    assert [r.reference_id for r in result.records] == ["GEM/2026/B/1"]


def test_title_falls_back_to_reference(listing_page):
    html = listing_page(("GEM/2026/B/9", "", "Goa", "", ""))
    (record,) = GemCardExtractor().extract(html).records

    assert record.title == "GEM/2026/B/9"
    assert record.published_at is None
    assert record.closing_at is None


def test_markup_drift_yields_no_records(listing_html):
    selectors = ListingSelectors(card=".bid-tile")
    result = GemCardExtractor(selectors).extract(listing_html)

    assert result.records == []
    assert result.cards_seen == 0


def test_bad_selector_is_an_error_not_a_crash(listing_html):
    selectors = ListingSelectors(card="div[[")
    result = GemCardExtractor(selectors).extract(listing_html)

    assert not result.ok
    assert result.errors


def test_empty_document_is_an_error():
    result = GemCardExtractor().extract("")
    assert result.errors
    assert result.records == []
