"""
Display formatting helpers.

Pure, stateless string formatting for currency and percentages.
"""

from analytics.portfolio import ProfitFactor
from config import config


def format_currency(value: float, decimals: int | None = None) -> str:
    """Format value as currency string, e.g. $1,234.50 or -$12.00."""
    decimals = config.formatting.decimal_places if decimals is None else decimals
    if value < 0:
        return f"-${abs(value):,.{decimals}f}"
    return f"${value:,.{decimals}f}"


def format_signed_currency(value: float, decimals: int | None = None) -> str:
    """Format value with explicit sign, e.g. +$100.00."""
    if value >= 0:
        return "+" + format_currency(value, decimals)
    return format_currency(value, decimals)


def format_percentage(value: float, decimals: int | None = None, signed: bool = True) -> str:
    """Format a percent value (already x100), e.g. +4.00%."""
    decimals = config.formatting.percentage_decimal_places if decimals is None else decimals
    if signed:
        return f"{value:+.{decimals}f}%"
    return f"{value:.{decimals}f}%"


def format_profit_factor(value: float | ProfitFactor) -> str:
    if value is ProfitFactor.INFINITE:
        return "∞"
    return f"{value:.2f}"
