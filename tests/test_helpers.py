from datetime import datetime

import pytest

from app.utils.helpers import (
    IST,
    format_inr,
    format_number,
    format_percent,
    get_market_status,
    normalize_symbol,
    parse_duration,
    symbol_variations,
)


def test_normalize_symbol_strips_special_characters():
    assert normalize_symbol(" Tata Motors ") == "TATAMOTORS"
    assert normalize_symbol("m&m") == "MM"


def test_symbol_variations_keeps_order_without_duplicates():
    assert symbol_variations("Tata Motors") == ["Tata Motors", "TATA MOTORS", "tata motors", "TATAMOTORS"]
    assert symbol_variations("TCS") == ["TCS", "tcs"]


@pytest.mark.parametrize("text, expected", [
    ("7d", 604800),
    ("12h", 43200),
    ("30m", 1800),
    ("45s", 45),
    ("90", 90),
    (120, 120),
])
def test_parse_duration(text, expected):
    assert parse_duration(text) == expected


@pytest.mark.parametrize("text", ["", "abc", "7x", "0d", -5])
def test_parse_duration_rejects_invalid(text):
    with pytest.raises(ValueError):
        parse_duration(text)


def test_format_inr_uses_indian_grouping():
    assert format_inr(12345678.9) == "₹1,23,45,678.90"
    assert format_inr(999) == "₹999.00"
    assert format_inr(-100000) == "-₹1,00,000.00"
    assert format_inr(None) == "N/A"


def test_format_number_and_percent():
    assert format_number(25000000) == "2.50Cr"
    assert format_number(150000) == "1.50L"
    assert format_number(1500) == "1.50K"
    assert format_number(12.5) == "12.50"
    assert format_percent(1.5) == "+1.50%"
    assert format_percent(-0.25) == "-0.25%"


def test_market_status_during_session():
    # 2024-01-10 是周三
    assert get_market_status(IST.localize(datetime(2024, 1, 10, 10, 0))) == ("open", "Market open")
    assert get_market_status(IST.localize(datetime(2024, 1, 10, 9, 5))) == ("pre_open", "Pre-open session")
    assert get_market_status(IST.localize(datetime(2024, 1, 10, 16, 0))) == ("closed", "Market closed")


def test_market_status_on_weekend():
    assert get_market_status(datetime(2024, 1, 13, 11, 0)) == ("closed", "Weekend")


def test_market_status_converts_other_timezones():
    import pytz

    # 04:30 UTC = 10:00 IST
    utc_time = pytz.utc.localize(datetime(2024, 1, 10, 4, 30))
    assert get_market_status(utc_time)[0] == "open"
