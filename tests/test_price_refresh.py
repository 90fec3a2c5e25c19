import pytest

from data.types import QuoteSource
from jobs.price_refresh import PriceRefreshJob
from tests.conftest import FakeQuoteProvider


@pytest.fixture
def seeded(service):
    service.add_position("AAPL", 10, 100)
    service.add_position("AAPL", 5, 110)
    service.add_position("MSFT", 2, 300)
    closed = service.add_position("KO", 20, 60).position
    service.close_position(closed.id, sell_price=62)
    return service


@pytest.mark.asyncio
async def test_refresh_applies_prices_and_reports_failures(seeded):
    provider = FakeQuoteProvider({"AAPL": [125.0], "KO": [70.0]})
    provider.fail.add("MSFT")

    result = await PriceRefreshJob(seeded, provider).run()

    assert result.total_symbols == 2
    assert result.priced_symbols == 1
    assert result.updated_positions == 2
    assert not result.success
    assert result.errors[0].startswith("MSFT:")
    assert sorted(provider.calls) == ["AAPL", "MSFT"]
    assert {p.current_price for p in seeded.active_positions if p.symbol == "AAPL"} == {125.0}


@pytest.mark.asyncio
async def test_demo_quotes_skipped_unless_allowed(seeded):
    provider = FakeQuoteProvider({"AAPL": [125.0], "MSFT": [320.0]})
    provider.source = QuoteSource.DEMO

    skipped = await PriceRefreshJob(seeded, provider).run()
    applied = await PriceRefreshJob(seeded, provider, allow_demo=True).run()

    assert skipped.updated_positions == 0
    assert len(skipped.errors) == 2
    assert applied.success
    assert applied.updated_positions == 3


@pytest.mark.asyncio
async def test_nothing_to_refresh(service):
    result = await PriceRefreshJob(service, FakeQuoteProvider()).run()

    assert result.success
    assert result.total_symbols == 0


@pytest.mark.asyncio
async def test_earlier_storage_error_does_not_fail_later_refresh(seeded):
    seeded.error_message = "Failed to save: disk I/O error"
    provider = FakeQuoteProvider({"AAPL": [125.0], "MSFT": [320.0]})

    result = await PriceRefreshJob(seeded, provider).run()

    assert result.success
    assert result.updated_positions == 3


@pytest.mark.asyncio
async def test_storage_failure_is_reported(seeded):
    provider = FakeQuoteProvider({"AAPL": [125.0], "MSFT": [320.0]})
    seeded.db.drop_tables()

    result = await PriceRefreshJob(seeded, provider).run()

    assert not result.success
    assert result.updated_positions == 0
    assert result.priced_symbols == 2
    assert result.errors
