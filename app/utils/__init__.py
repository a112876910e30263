"""工具模块"""

from app.utils.helpers import (
    normalize_symbol,
    symbol_variations,
    parse_duration,
    format_number,
    format_inr,
    format_percent,
    get_market_status
)

__all__ = [
    "normalize_symbol",
    "symbol_variations",
    "parse_duration",
    "format_number",
    "format_inr",
    "format_percent",
    "get_market_status"
]
