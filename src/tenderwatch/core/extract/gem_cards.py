"""
Card extraction for the GeM bid listing.

Each bid is a Bootstrap ``.card``; the selectors come from
configuration so markup drift is a config change, not a code change.
"""

from __future__ import annotations

import logging
from urllib.parse import urljoin

from cssselect import SelectorError
from lxml import etree
from lxml import html as lxml_html
from lxml.html import HtmlElement

from ..config.models import ListingSelectors
from ..normalize.parsing import (
    category_from_title,
    clean_html_text,
    parse_date,
    parse_quantity,
)
from .base import ExtractionResult, Extractor, ListingRecord

logger = logging.getLogger(__name__)


class GemCardExtractor(Extractor):
    """Extract tender records from GeM listing cards."""

    def __init__(
        self,
        selectors: ListingSelectors | None = None,
        *,
        base_url: str | None = None,
        category_max_length: int = 100,
    ) -> None:
        self.selectors = selectors or ListingSelectors()
        self.base_url = base_url
        self.category_max_length = category_max_length

    @property
    def name(self) -> str:
        return "gem_cards"

    def extract(self, html: str, url: str | None = None) -> ExtractionResult:
        result = ExtractionResult(source_url=url, extraction_method=self.name)

        try:
            tree = lxml_html.fromstring(html)
        except (etree.ParserError, ValueError) as e:
            result.add_error(f"Unparseable listing page: {e}")
            return result

        try:
            cards = tree.cssselect(self.selectors.card)
        except (SelectorError, etree.XPathError) as e:
            result.add_error(f"Bad card selector {self.selectors.card!r}: {e}")
            return result

        result.cards_seen = len(cards)
        base = url or self.base_url

        for index, card in enumerate(cards):
            try:
                record = self._extract_card(card, index, base)
            except (SelectorError, etree.XPathError) as e:
                result.add_warning(f"Card {index}: {e}")
                continue
            if record is None:
                continue
            result.records.append(record)

        if cards and not result.records:
            result.add_warning(f"{len(cards)} card(s) matched but none had a reference id")

        return result

    def _extract_card(self, card: HtmlElement, index: int, base_url: str | None) -> ListingRecord | None:
        sel = self.selectors

        ref_el = _first(card, sel.reference_link)
        if ref_el is None:
            return None
        reference_id = clean_html_text(ref_el.text_content())
        if not reference_id:
            return None

        href = ref_el.get("href")
        detail_url = urljoin(base_url, href) if href and base_url else href

        title_el = _first(card, sel.title)
        title = ""
        if title_el is not None:
            title = clean_html_text(title_el.get("data-content") or title_el.text_content())
        if not title:
            title = reference_id

        department_el = _first(card, sel.department)
        description = clean_html_text(department_el.text_content()) if department_el is not None else None

        start_text = _text(card, sel.start_date)
        end_text = _text(card, sel.end_date)

        published = parse_date(start_text)
        closing = parse_date(end_text)
        if start_text and not published.ok:
            logger.debug("Unparsed start date %r on %s", start_text, reference_id)
        if end_text and not closing.ok:
            logger.debug("Unparsed end date %r on %s", end_text, reference_id)

        return ListingRecord(
            reference_id=reference_id,
            title=title,
            category=category_from_title(title, self.category_max_length),
            description=description or None,
            quantity=parse_quantity(card.text_content()),
            start_date_text=start_text,
            end_date_text=end_text,
            published_at=published.value,
            closing_at=closing.value,
            detail_url=detail_url,
            row_index=index,
        )


def _first(node: HtmlElement, selector: str) -> HtmlElement | None:
    matches = node.cssselect(selector)
    return matches[0] if matches else None


def _text(node: HtmlElement, selector: str) -> str | None:
    el = _first(node, selector)
    if el is None:
        return None
    return clean_html_text(el.text_content()) or None


def extract_listing_cards(
    html: str,
    url: str | None = None,
    selectors: ListingSelectors | None = None,
) -> list[ListingRecord]:
    """Convenience wrapper returning just the records."""
    return GemCardExtractor(selectors, base_url=url).extract(html, url).records
