"""
Market data types and the quote provider protocol.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Protocol


class QuoteError(Exception):
    """A quote, history or search request failed (network, timeout, decode)."""


class QuoteSource(str, Enum):
    """Where a quote came from."""
    LIVE = "LIVE"
    STALE = "STALE"  # Last good live quote served after a failure
    DEMO = "DEMO"  # Synthetic / sample data


class ChartTimeframe(str, Enum):
    """History window for OHLCV requests."""
    ONE_DAY = "1D"
    FIVE_DAYS = "5D"
    ONE_MONTH = "1M"
    THREE_MONTHS = "3M"
    ONE_YEAR = "1Y"

    @property
    def days(self) -> int:
        return {
            ChartTimeframe.ONE_DAY: 1,
            ChartTimeframe.FIVE_DAYS: 5,
            ChartTimeframe.ONE_MONTH: 30,
            ChartTimeframe.THREE_MONTHS: 90,
            ChartTimeframe.ONE_YEAR: 365,
        }[self]

    @property
    def is_intraday(self) -> bool:
        return self in (ChartTimeframe.ONE_DAY, ChartTimeframe.FIVE_DAYS)


@dataclass(frozen=True)
class Quote:
    """Current price snapshot for a symbol."""
    symbol: str
    price: float
    change: float = 0.0
    change_percent: float = 0.0
    name: str = ""
    sector: str = ""
    source: QuoteSource = QuoteSource.LIVE
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_live(self) -> bool:
        return self.source is QuoteSource.LIVE


@dataclass(frozen=True)
class PricePoint:
    """One OHLCV bar."""
    date: datetime
    open: float
    high: float
    low: float
    close: float
    volume: int


@dataclass(frozen=True)
class StockMatch:
    """Symbol search candidate."""
    symbol: str
    name: str
    sector: str = "Other"


class QuoteProvider(Protocol):
    async def get_quote(self, symbol: str) -> Quote:
        ...

    async def get_history(self, symbol: str, timeframe: ChartTimeframe) -> list[PricePoint]:
        ...

    async def search(self, query: str) -> list[StockMatch]:
        ...
