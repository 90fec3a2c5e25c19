"""
Yahoo Finance quote provider.

- Current quote from the last two daily closes
- OHLCV history per chart timeframe
- Symbol search

yfinance is blocking; every call is offloaded with asyncio.to_thread and
retried with backoff. Failures surface as QuoteError; substituting
fallback data is the caller's decision (see FallbackQuoteProvider).
"""

import asyncio
import logging
import random
from typing import Any

import pandas as pd
import yfinance as yf

from config import QuoteConfig, config
from data.sample_data import determine_sector
from data.types import ChartTimeframe, PricePoint, Quote, QuoteError, QuoteSource, StockMatch


logger = logging.getLogger(__name__)


# (period, interval) per timeframe
_HISTORY_PARAMS: dict[ChartTimeframe, tuple[str, str]] = {
    ChartTimeframe.ONE_DAY: ("1d", "5m"),
    ChartTimeframe.FIVE_DAYS: ("5d", "5m"),
    ChartTimeframe.ONE_MONTH: ("1mo", "1d"),
    ChartTimeframe.THREE_MONTHS: ("3mo", "1d"),
    ChartTimeframe.ONE_YEAR: ("1y", "1d"),
}


class YahooQuoteProvider:
    """
    Fetches quotes, history and search results from Yahoo Finance.

    Raises QuoteError for any network, timeout or decode failure.
    """

    def __init__(self, quote_config: QuoteConfig | None = None):
        self.config = quote_config or config.quotes

    async def get_quote(self, symbol: str) -> Quote:
        symbol = symbol.upper()
        logger.debug(f"📥 Fetching quote for {symbol}")

        df = await self._with_retry(self._download_history, symbol, "5d", "1d")
        closes = self._closes(df)
        if not closes:
            raise QuoteError(f"No quote data returned for {symbol}")

        price = closes[-1]
        previous = closes[-2] if len(closes) > 1 else price
        change = price - previous
        change_percent = (change / previous) * 100 if previous else 0.0

        return Quote(
            symbol=symbol,
            price=price,
            change=change,
            change_percent=change_percent,
            name=symbol,
            sector=determine_sector(symbol),
            source=QuoteSource.LIVE,
        )

    async def get_history(self, symbol: str, timeframe: ChartTimeframe) -> list[PricePoint]:
        symbol = symbol.upper()
        timeframe = ChartTimeframe(timeframe)
        period, interval = _HISTORY_PARAMS[timeframe]
        logger.info(f"📥 Fetching {timeframe.value} history for {symbol}")

        df = await self._with_retry(self._download_history, symbol, period, interval)
        if df is None or df.empty:
            logger.warning(f"⚠️ No history returned for {symbol}")
            return []

        return self._dataframe_to_points(df)

    async def search(self, query: str) -> list[StockMatch]:
        query = query.strip()
        if not query:
            return []

        raw = await self._with_retry(self._search, query)
        matches = []
        for item in raw[: self.config.search_limit]:
            symbol = item.get("symbol")
            if not symbol:
                continue
            name = item.get("longname") or item.get("shortname") or symbol
            matches.append(
                StockMatch(
                    symbol=symbol,
                    name=name,
                    sector=item.get("sector") or determine_sector(name),
                )
            )
        return matches

    # ------------------------------------------------------------------
    # INTERNAL HELPERS
    # ------------------------------------------------------------------

    async def _with_retry(self, func, *args):
        """Run a blocking call in a worker thread, retrying transient failures."""
        last_exc: Exception | None = None
        for attempt in range(self.config.yfinance_max_retries + 1):
            try:
                return await asyncio.to_thread(func, *args)
            except QuoteError:
                raise
            except Exception as exc:
                last_exc = exc
                logger.debug(f"Retry {attempt + 1} for {func.__name__}{args}: {exc}")
                if attempt < self.config.yfinance_max_retries:
                    await asyncio.sleep(0.4 * (2 ** attempt) + random.random() * 0.2)
        raise QuoteError(str(last_exc)) from last_exc

    def _download_history(self, symbol: str, period: str, interval: str) -> pd.DataFrame:
        ticker = yf.Ticker(symbol)
        return ticker.history(
            period=period,
            interval=interval,
            auto_adjust=False,
            timeout=self.config.yfinance_timeout,
        )

    def _search(self, query: str) -> list[dict]:
        result = yf.Search(query, max_results=self.config.search_limit)
        return list(result.quotes or [])

    def _closes(self, df: pd.DataFrame | None) -> list[float]:
        if df is None or df.empty or "Close" not in df.columns:
            return []
        return [float(v) for v in df["Close"].dropna().tolist()]

    def _dataframe_to_points(self, df: pd.DataFrame) -> list[PricePoint]:
        """Convert yfinance DataFrame to PricePoints, oldest first."""
        # Handle multi-level columns from yfinance
        if isinstance(df.columns, pd.MultiIndex):
            df = df.copy()
            df.columns = df.columns.get_level_values(0)

        points = []
        for timestamp, row in df.sort_index().iterrows():
            close = self._safe_float(row.get("Close"))
            if close is None:
                continue
            points.append(
                PricePoint(
                    date=pd.Timestamp(timestamp).to_pydatetime(),
                    open=self._safe_float(row.get("Open")) or close,
                    high=self._safe_float(row.get("High")) or close,
                    low=self._safe_float(row.get("Low")) or close,
                    close=close,
                    volume=self._safe_int(row.get("Volume")) or 0,
                )
            )
        return points

    @staticmethod
    def _safe_float(value: Any) -> float | None:
        """Safely convert to float, returning None for invalid values."""
        if value is None or pd.isna(value):
            return None
        try:
            return float(value)
        except (ValueError, TypeError):
            return None

    @staticmethod
    def _safe_int(value: Any) -> int | None:
        """Safely convert to int, returning None for invalid values."""
        if value is None or pd.isna(value):
            return None
        try:
            return int(value)
        except (ValueError, TypeError):
            return None
