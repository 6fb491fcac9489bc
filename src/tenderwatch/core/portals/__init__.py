"""Tender sources - where listing pages come from."""

from .base import TenderSource
from .gem import GemListingSource
from .html_pages import HtmlPagesSource

__all__ = [
    "TenderSource",
    "GemListingSource",
    "HtmlPagesSource",
]
