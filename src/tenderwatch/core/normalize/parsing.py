"""
Parsing utilities for normalizing extracted listing data.

Handles portal date strings, quantities and category labels.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time

import dateparser

logger = logging.getLogger(__name__)


# =============================================================================
# Date Parsing
# =============================================================================


@dataclass
class ParsedDate:
    """Result of parsing a date string."""

    value: datetime | None
    original: str
    confidence: float  # 0.0 - 1.0
    format_detected: str | None = None

    @property
    def ok(self) -> bool:
        return self.value is not None


# GeM shows "05-03-2025 10:15 AM"
PORTAL_DATETIME_RE = re.compile(
    r"(\d{2})-(\d{2})-(\d{4})\s+(\d{1,2}):(\d{2})\s*(AM|PM)",
    re.IGNORECASE,
)

COMMON_PATTERNS: list[tuple[re.Pattern[str], float, str]] = [
    (re.compile(r"^(\d{4})-(\d{2})-(\d{2})[T\s](\d{2}):(\d{2})(?::(\d{2}))?"), 1.0, "iso8601"),
    (re.compile(r"^(\d{4})-(\d{2})-(\d{2})$"), 0.9, "iso_date"),
    (re.compile(r"^(\d{1,2})[-/](\d{1,2})[-/](\d{4})$"), 0.85, "dmy_date"),
]

DATE_PREFIXES = re.compile(
    r"^(?:bid\s+)?(?:start|end|closing|opening)?\s*date\s*[:\-]?\s*",
    re.IGNORECASE,
)


def parse_date(
    value: str | datetime | date | None,
    *,
    relative_base: datetime | None = None,
) -> ParsedDate:
    """Parse a portal date/datetime.

    The portal's own ``DD-MM-YYYY h:mm AM/PM`` shape is matched first,
    then a few ISO/day-first patterns, then dateparser with day-first
    ordering. Unparseable input yields ``value=None`` rather than raising.

    Args:
        value: String or datetime to parse
        relative_base: Base datetime for relative expressions

    Returns:
        ParsedDate with parsed value and metadata
    """
    if value is None:
        return ParsedDate(value=None, original="", confidence=0.0)

    if isinstance(value, datetime):
        return ParsedDate(value=value, original=value.isoformat(), confidence=1.0, format_detected="datetime")

    if isinstance(value, date):
        return ParsedDate(
            value=datetime.combine(value, time.min),
            original=value.isoformat(),
            confidence=1.0,
            format_detected="date",
        )

    original = str(value).strip()
    text = _clean_date_string(original)
    if not text:
        return ParsedDate(value=None, original=original, confidence=0.0)

    portal = _parse_portal_datetime(text)
    if portal is not None:
        return ParsedDate(value=portal, original=original, confidence=1.0, format_detected="portal")

    common = _try_common_patterns(text)
    if common is not None:
        return ParsedDate(value=common[0], original=original, confidence=common[1], format_detected=common[2])

    settings: dict[str, object] = {
        "DATE_ORDER": "DMY",
        "PREFER_DAY_OF_MONTH": "first",
        "RETURN_AS_TIMEZONE_AWARE": False,
    }
    if relative_base:
        settings["RELATIVE_BASE"] = relative_base

    try:
        parsed = dateparser.parse(text, settings=settings)
    except (ValueError, OverflowError) as e:
        logger.debug("dateparser rejected %r: %s", text, e)
        parsed = None

    if parsed:
        return ParsedDate(value=parsed, original=original, confidence=0.7, format_detected="dateparser")

    return ParsedDate(value=None, original=original, confidence=0.0)


def _clean_date_string(text: str) -> str:
    """Strip labels and collapse whitespace."""
    text = DATE_PREFIXES.sub("", normalize_whitespace(text))
    return text.strip()


def _parse_portal_datetime(text: str) -> datetime | None:
    match = PORTAL_DATETIME_RE.search(text)
    if not match:
        return None

    day, month, year, hour, minute, meridiem = match.groups()
    hour_24 = int(hour) % 12
    if meridiem.upper() == "PM":
        hour_24 += 12

    try:
        return datetime(int(year), int(month), int(day), hour_24, int(minute))
    except ValueError:
        return None


def _try_common_patterns(text: str) -> tuple[datetime, float, str] | None:
    """Try to parse using common date patterns (fast path)."""
    for pattern, confidence, name in COMMON_PATTERNS:
        match = pattern.match(text)
        if not match:
            continue
        groups = match.groups()
        try:
            if name == "dmy_date":
                day, month, year = int(groups[0]), int(groups[1]), int(groups[2])
                return datetime(year, month, day), confidence, name

            year, month, day = int(groups[0]), int(groups[1]), int(groups[2])
            hour = int(groups[3]) if len(groups) > 3 and groups[3] else 0
            minute = int(groups[4]) if len(groups) > 4 and groups[4] else 0
            second = int(groups[5]) if len(groups) > 5 and groups[5] else 0
            return datetime(year, month, day, hour, minute, second), confidence, name
        except ValueError:
            continue

    return None


# =============================================================================
# Field Helpers
# =============================================================================


QUANTITY_RE = re.compile(r"Quantity[:\s]*([0-9,]+)", re.IGNORECASE)
CATEGORY_SPLIT_RE = re.compile(r"[,\-\n]")


def parse_quantity(text: str | None) -> int | None:
    """Pull the ``Quantity: 1,200`` figure out of a card's text."""
    if not text:
        return None
    match = QUANTITY_RE.search(text)
    if not match:
        return None
    digits = match.group(1).replace(",", "")
    return int(digits) if digits else None


def category_from_title(title: str | None, max_length: int = 100) -> str | None:
    """First segment of the title split on comma, hyphen or newline."""
    if not title:
        return None
    head = CATEGORY_SPLIT_RE.split(title, maxsplit=1)[0]
    head = normalize_whitespace(head)
    return head[:max_length] or None


# =============================================================================
# Utility Functions
# =============================================================================


def normalize_whitespace(text: str | None) -> str:
    """Normalize whitespace in text."""
    if text is None:
        return ""
    return " ".join(text.split())


def clean_html_text(text: str | None) -> str:
    """Clean text extracted from HTML."""
    if text is None:
        return ""

    text = text.replace("\xa0", " ")
    text = re.sub(r"&nbsp;?", " ", text)
    text = re.sub(r"&amp;?", "&", text)

    return normalize_whitespace(text)
