from datetime import date, datetime

from tenderwatch.core.normalize import (
    category_from_title,
    classify_region,
    clean_html_text,
    keyword_matches,
    parse_date,
    parse_quantity,
    region_matches,
)


class TestParseDate:
    def test_portal_format_morning(self):
        parsed = parse_date("05-03-2025 10:15 AM")
        assert parsed.value == datetime(2025, 3, 5, 10, 15)
        assert parsed.format_detected == "portal"

    def test_portal_format_afternoon(self):
        assert parse_date("05-03-2025 2:30 PM").value == datetime(2025, 3, 5, 14, 30)

    def test_midnight_and_noon(self):
        assert parse_date("01-12-2025 12:05 AM").value == datetime(2025, 12, 1, 0, 5)
        assert parse_date("01-12-2025 12:05 PM").value == datetime(2025, 12, 1, 12, 5)

    def test_label_is_stripped(self):
        assert parse_date("Start Date: 19-10-2026 09:40 AM").value == datetime(2026, 10, 19, 9, 40)

    def test_iso_and_day_first(self):
        assert parse_date("2026-10-19T08:00").value == datetime(2026, 10, 19, 8, 0)
        assert parse_date("03/04/2026").value == datetime(2026, 4, 3)

    def test_date_and_datetime_inputs(self):
        assert parse_date(date(2026, 1, 2)).value == datetime(2026, 1, 2)
        stamp = datetime(2026, 1, 2, 3, 4)
        assert parse_date(stamp).value == stamp

    def test_empty_input_is_not_ok(self):
        assert not parse_date(None).ok
        assert not parse_date("").ok
        assert not parse_date("   ").ok

    def test_invalid_calendar_date_in_portal_format(self):
        parsed = parse_date("31-02-2026 10:00 AM")
        assert parsed.format_detected != "portal"


class TestFieldHelpers:
    def test_quantity(self):
        assert parse_quantity("Items: Chairs Quantity: 1,200 Dept") == 1200
        assert parse_quantity("quantity 7") == 7
        assert parse_quantity("no figures here") is None
        assert parse_quantity(None) is None

    def test_category_is_first_title_segment(self):
        assert category_from_title("IT Infrastructure Upgrade, Servers") == "IT Infrastructure Upgrade"
        assert category_from_title("Office Furniture - Steel Almirah") == "Office Furniture"
        assert category_from_title("Line one\nLine two") == "Line one"
        assert category_from_title(None) is None

    def test_category_is_truncated(self):
        assert len(category_from_title("x" * 300, max_length=100)) == 100

    def test_clean_html_text(self):
        assert clean_html_text("  BID NO:\xa0 GEM/1 &amp; more ") == "BID NO: GEM/1 & more"


class TestRegions:
    def test_first_gazetteer_match_wins(self):
        assert classify_region("Ministry Of Electronics And Information Technology Delhi") == "Delhi"
        assert classify_region("UTTAR PRADESH POLICE HQ") == "Uttar Pradesh"

    def test_gazetteer_order_decides_ties(self):
        assert classify_region("Karnataka office for Kerala supplies") == "Karnataka"
        assert classify_region("x", gazetteer=["Delhi"]) is None

    def test_no_region(self):
        assert classify_region("Central Public Works Department") is None
        assert classify_region(None) is None

    def test_region_matches(self):
        assert region_matches("Delhi", ["delhi"])
        assert region_matches("New Delhi", ["Delhi"])
        assert not region_matches("Maharashtra", ["Delhi"])
        assert not region_matches(None, ["Delhi"])

    def test_empty_region_list_is_unconstrained(self):
        assert region_matches(None, [])
        assert region_matches("Goa", ["", "  "])

    def test_keyword_matches_any_field(self):
        fields = ("IT Infrastructure Upgrade", None, "IT Infrastructure Upgrade")
        assert keyword_matches(fields, ["it"])
        assert keyword_matches(("Chairs", "Ministry of Defence", None), ["defence"])
        assert not keyword_matches(("Chairs", None, None), ["laptop"])
        assert keyword_matches(("Chairs",), [])
