"""
Sample market data for offline / demo operation.

Used when the live provider is unavailable: a static table of well-known
stocks, a name-based sector heuristic, and a synthetic OHLCV generator.
"""

import zlib
from datetime import datetime, timezone

import numpy as np
import pandas as pd

from data.types import ChartTimeframe, PricePoint, Quote, QuoteSource, StockMatch


SAMPLE_STOCKS: tuple[Quote, ...] = (
    Quote("AAPL", 175.43, 2.34, 1.35, "Apple Inc.", "Technology", QuoteSource.DEMO),
    Quote("GOOGL", 142.56, -1.23, -0.85, "Alphabet Inc.", "Technology", QuoteSource.DEMO),
    Quote("MSFT", 378.85, 5.67, 1.52, "Microsoft Corporation", "Technology", QuoteSource.DEMO),
    Quote("TSLA", 248.50, -3.45, -1.37, "Tesla, Inc.", "Consumer Cyclical", QuoteSource.DEMO),
    Quote("AMZN", 145.86, 0.75, 0.52, "Amazon.com, Inc.", "Consumer Cyclical", QuoteSource.DEMO),
    Quote("NVDA", 875.28, 12.34, 1.43, "NVIDIA Corporation", "Technology", QuoteSource.DEMO),
    Quote("META", 497.21, -2.89, -0.58, "Meta Platforms, Inc.", "Communication Services", QuoteSource.DEMO),
    Quote("NFLX", 692.12, 8.45, 1.24, "Netflix, Inc.", "Communication Services", QuoteSource.DEMO),
    Quote("CRM", 264.18, 1.87, 0.71, "Salesforce, Inc.", "Technology", QuoteSource.DEMO),
    Quote("ADBE", 567.23, -4.56, -0.80, "Adobe Inc.", "Technology", QuoteSource.DEMO),
)

POPULAR_SYMBOLS: tuple[str, ...] = (
    "AAPL", "GOOGL", "MSFT", "TSLA", "AMZN", "NVDA", "META", "NFLX", "CRM", "ADBE",
    "BABA", "V", "JNJ", "WMT", "JPM", "PG", "UNH", "HD", "MA", "BAC",
)

_SECTOR_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Technology", ("tech", "software", "computer")),
    ("Healthcare", ("health", "pharma", "bio")),
    ("Financial", ("bank", "financial", "insurance")),
    ("Energy", ("energy", "oil", "gas")),
    ("Consumer", ("retail", "consumer")),
)


def determine_sector(name: str) -> str:
    """Guess a sector from a company name; 'Other' when nothing matches."""
    lowered = (name or "").lower()
    for sector, keywords in _SECTOR_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return sector
    return "Other"


def sample_quote(symbol: str) -> Quote:
    """
    Demo quote for a symbol.

    Known sample stocks return their table row; any other symbol gets a
    price derived deterministically from the symbol text.
    """
    symbol = symbol.upper()
    for stock in SAMPLE_STOCKS:
        if stock.symbol == symbol:
            return Quote(
                symbol=stock.symbol,
                price=stock.price,
                change=stock.change,
                change_percent=stock.change_percent,
                name=stock.name,
                sector=stock.sector,
                source=QuoteSource.DEMO,
            )

    rng = np.random.default_rng(zlib.crc32(symbol.encode()))
    price = round(float(rng.uniform(20.0, 500.0)), 2)
    return Quote(symbol=symbol, price=price, name=symbol, sector="Other", source=QuoteSource.DEMO)


def search_samples(query: str, limit: int = 10) -> list[StockMatch]:
    """Case-insensitive match of query against sample symbols and names."""
    needle = query.strip().lower()
    if not needle:
        return []
    matches = [
        StockMatch(symbol=s.symbol, name=s.name, sector=s.sector)
        for s in SAMPLE_STOCKS
        if needle in s.symbol.lower() or needle in s.name.lower()
    ]
    known = {match.symbol for match in matches}
    matches.extend(
        StockMatch(symbol=symbol, name=symbol)
        for symbol in POPULAR_SYMBOLS
        if needle in symbol.lower() and symbol not in known
    )
    return matches[:limit]


def generate_sample_history(
    timeframe: ChartTimeframe,
    base_price: float = 150.0,
    seed: int | None = None,
    end: datetime | None = None,
) -> list[PricePoint]:
    """
    Synthetic daily OHLCV series around base_price, oldest first.

    One bar per day in the timeframe; closes wander within +/-8% of the
    base price and every bar satisfies low <= open, close <= high.
    """
    rng = np.random.default_rng(seed)
    days = timeframe.days
    end = end or datetime.now(timezone.utc).replace(tzinfo=None)
    dates = pd.date_range(end=end, periods=days, freq="D")

    random_factor = rng.uniform(0.95, 1.05, size=days)
    daily_volatility = rng.uniform(-0.03, 0.03, size=days)
    close = base_price * random_factor * (1 + daily_volatility)
    open_ = close * rng.uniform(0.98, 1.02, size=days)
    high = np.maximum(open_, close) * rng.uniform(1.0, 1.02, size=days)
    low = np.minimum(open_, close) * rng.uniform(0.98, 1.0, size=days)
    volume = rng.integers(1_000_000, 10_000_000, size=days)

    frame = pd.DataFrame(
        {"open": open_, "high": high, "low": low, "close": close, "volume": volume},
        index=dates,
    )

    return [
        PricePoint(
            date=timestamp.to_pydatetime(),
            open=float(row["open"]),
            high=float(row["high"]),
            low=float(row["low"]),
            close=float(row["close"]),
            volume=int(row["volume"]),
        )
        for timestamp, row in frame.iterrows()
    ]
