"""
Price Refresh Job Runner.

Coordinates a refresh of current prices on active positions:
1. Collect distinct symbols of active positions
2. Fetch quotes concurrently (one failure never blocks the others)
3. Apply prices through the position service in one serialized step
4. Report status

Must not crash on provider failures.
"""

import asyncio
import logging
from typing import NamedTuple

from data.types import QuoteError, QuoteProvider, QuoteSource
from services.position_service import PositionService


logger = logging.getLogger(__name__)


class JobResult(NamedTuple):
    """Result summary from a job run."""
    success: bool
    total_symbols: int
    priced_symbols: int
    updated_positions: int
    errors: list[str]


class PriceRefreshJob:
    """
    Refreshes current prices of active positions from a quote provider.

    Demo quotes are never applied to positions unless allow_demo is set;
    stale quotes (last good live price) are.
    """

    def __init__(
        self,
        service: PositionService,
        quote_provider: QuoteProvider,
        allow_demo: bool = False,
    ):
        self.service = service
        self.quote_provider = quote_provider
        self.allow_demo = allow_demo

    async def run(self) -> JobResult:
        symbols = sorted({p.symbol for p in self.service.active_positions})
        if not symbols:
            logger.info("No active positions to refresh")
            return JobResult(True, 0, 0, 0, [])

        logger.info(f"📈 Refreshing prices for {len(symbols)} symbol(s)...")
        results = await asyncio.gather(
            *(self.quote_provider.get_quote(symbol) for symbol in symbols),
            return_exceptions=True,
        )

        prices: dict[str, float] = {}
        errors: list[str] = []
        for symbol, result in zip(symbols, results):
            if isinstance(result, QuoteError):
                errors.append(f"{symbol}: {result}")
                continue
            if isinstance(result, Exception):
                errors.append(f"{symbol}: {result!r}")
                continue
            if result.source is QuoteSource.DEMO and not self.allow_demo:
                errors.append(f"{symbol}: only demo data available")
                continue
            prices[symbol] = result.price

        outcome = await asyncio.to_thread(self.service.apply_prices, prices)
        if not outcome.success:
            errors.extend(outcome.errors)
        updated = outcome.updated_count
        for error in errors:
            logger.warning(f"⚠️ {error}")
        logger.info(f"✅ Price refresh complete: {len(prices)}/{len(symbols)} symbols, {updated} positions")

        return JobResult(
            success=len(errors) == 0,
            total_symbols=len(symbols),
            priced_symbols=len(prices),
            updated_positions=updated,
            errors=errors,
        )
