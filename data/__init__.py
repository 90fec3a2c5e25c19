"""
Data package initialization.

Exports market data types and quote providers.
"""

from data.types import (
    ChartTimeframe,
    PricePoint,
    Quote,
    QuoteError,
    QuoteProvider,
    QuoteSource,
    StockMatch,
)
from data.fallback_provider import FallbackQuoteProvider
from data.yfinance_provider import YahooQuoteProvider

__all__ = [
    "ChartTimeframe",
    "PricePoint",
    "Quote",
    "QuoteError",
    "QuoteProvider",
    "QuoteSource",
    "StockMatch",
    "FallbackQuoteProvider",
    "YahooQuoteProvider",
]
