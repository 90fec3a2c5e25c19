"""
Quote provider with bounded fallbacks.

Wraps a primary QuoteProvider and never raises:
- quote:   live -> last good live quote (STALE) -> demo quote (DEMO)
- history: live -> synthetic OHLCV around the best known price
- search:  live -> sample stock table

Every fallback is logged; callers that must not act on substitute data
(the alert engine) check Quote.source.
"""

import asyncio
import logging
import time
from dataclasses import replace

from config import QuoteConfig, config
from data.sample_data import generate_sample_history, sample_quote, search_samples
from data.types import ChartTimeframe, PricePoint, Quote, QuoteError, QuoteProvider, QuoteSource, StockMatch


logger = logging.getLogger(__name__)


class FallbackQuoteProvider:
    """QuoteProvider decorator substituting stale or demo data on failure."""

    def __init__(
        self,
        primary: QuoteProvider,
        quote_config: QuoteConfig | None = None,
        timeout: float | None = None,
    ):
        self.primary = primary
        self.config = quote_config or config.quotes
        self.timeout = timeout if timeout is not None else float(self.config.yfinance_timeout)
        self._last_good: dict[str, tuple[float, Quote]] = {}

    async def get_quote(self, symbol: str) -> Quote:
        symbol = symbol.upper()
        try:
            quote = await asyncio.wait_for(self.primary.get_quote(symbol), timeout=self.timeout)
        except (QuoteError, asyncio.TimeoutError) as e:
            return self._fallback_quote(symbol, e)

        if quote.is_live:
            self._last_good[symbol] = (time.monotonic(), quote)
        return quote

    async def get_history(self, symbol: str, timeframe: ChartTimeframe) -> list[PricePoint]:
        symbol = symbol.upper()
        try:
            points = await asyncio.wait_for(
                self.primary.get_history(symbol, timeframe), timeout=self.timeout
            )
        except (QuoteError, asyncio.TimeoutError) as e:
            logger.warning(f"⚠️ History unavailable for {symbol} ({e!r}); using demo data")
            points = []

        if points:
            return points

        base_price = self._best_known_price(symbol)
        return generate_sample_history(
            ChartTimeframe(timeframe),
            base_price=base_price,
            seed=self.config.demo_seed,
        )

    async def search(self, query: str) -> list[StockMatch]:
        try:
            matches = await asyncio.wait_for(self.primary.search(query), timeout=self.timeout)
        except (QuoteError, asyncio.TimeoutError) as e:
            logger.warning(f"⚠️ Search failed for {query!r} ({e!r}); using sample stocks")
            return search_samples(query, limit=self.config.search_limit)
        return matches

    def _fallback_quote(self, symbol: str, error: Exception) -> Quote:
        cached = self._last_good.get(symbol)
        if cached:
            fetched_at, quote = cached
            age = time.monotonic() - fetched_at
            if age > self.config.stale_after_seconds:
                logger.warning(f"⚠️ Serving {age:.0f}s old quote for {symbol} after {error!r}")
            else:
                logger.info(f"Serving cached quote for {symbol} after {error!r}")
            return replace(quote, source=QuoteSource.STALE)

        logger.warning(f"⚠️ Quote unavailable for {symbol} ({error!r}); using demo data")
        return sample_quote(symbol)

    def _best_known_price(self, symbol: str) -> float:
        cached = self._last_good.get(symbol)
        if cached:
            return cached[1].price
        return sample_quote(symbol).price
