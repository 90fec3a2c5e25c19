"""Shared fixtures: temporary database, position factory, fake market data."""

import asyncio
from datetime import datetime, timedelta

import pytest

from config import AlertConfig
from data.types import ChartTimeframe, PricePoint, Quote, QuoteError, QuoteSource, StockMatch
from db import Position, init_db
from services import InMemoryNotifier, PositionService


def make_position(
    symbol: str = "AAPL",
    quantity: float = 10,
    buy_price: float = 100.0,
    current_price: float | None = None,
    sell_price: float | None = None,
    name: str = "",
    sector: str = "Technology",
    stop_loss: float = 0.0,
    price_target: float = 0.0,
    days_ago: int = 0,
) -> Position:
    """Build a detached position, optionally repriced and closed."""
    position = Position.open(
        symbol=symbol,
        quantity=quantity,
        buy_price=buy_price,
        name=name,
        sector=sector,
        stop_loss=stop_loss,
        price_target=price_target,
        date_added=datetime(2024, 6, 1) - timedelta(days=days_ago),
    )
    if current_price is not None:
        position.update_current_price(current_price)
    if sell_price is not None:
        position.close(sell_price)
    return position


@pytest.fixture
def position_factory():
    return make_position


@pytest.fixture
def db(tmp_path):
    manager = init_db(f"sqlite:///{tmp_path / 'journal.db'}")
    yield manager
    manager.dispose()


@pytest.fixture
def service(db):
    position_service = PositionService(db)
    position_service.refresh()
    return position_service


class FakeQuoteProvider:
    """
    Scripted quote provider.

    Each get_quote pops the next price for the symbol; the last price
    repeats. Symbols in `fail` raise QuoteError. When `block` is set to an
    asyncio.Event, lookups wait on it first.
    """

    def __init__(self, prices: dict[str, list[float]] | None = None):
        self.prices = {symbol: list(seq) for symbol, seq in (prices or {}).items()}
        self.fail: set[str] = set()
        self.block: asyncio.Event | None = None
        self.source = QuoteSource.LIVE
        self.calls: list[str] = []

    async def get_quote(self, symbol: str) -> Quote:
        self.calls.append(symbol)
        if self.block is not None:
            await self.block.wait()
        if symbol in self.fail:
            raise QuoteError(f"{symbol} unavailable")
        seq = self.prices.get(symbol)
        if not seq:
            raise QuoteError(f"No price for {symbol}")
        price = seq.pop(0) if len(seq) > 1 else seq[0]
        return Quote(symbol=symbol, price=price, source=self.source)

    async def get_history(self, symbol: str, timeframe: ChartTimeframe) -> list[PricePoint]:
        if symbol in self.fail:
            raise QuoteError(f"{symbol} unavailable")
        return []

    async def search(self, query: str) -> list[StockMatch]:
        if query in self.fail:
            raise QuoteError("search down")
        return [StockMatch(symbol=query.upper(), name=f"{query.title()} Corp")]


@pytest.fixture
def quote_provider():
    return FakeQuoteProvider()


@pytest.fixture
def notifier():
    return InMemoryNotifier()


@pytest.fixture
def alert_config():
    # Long interval: tests drive tick() directly
    return AlertConfig(poll_interval_seconds=3600, quote_timeout_seconds=1.0)
