import asyncio

import pytest

from alerts import AlertEngine, AlertState, AlertType
from alerts.engine import MONITOR_JOB_ID, _FireAlert
from config import AlertConfig
from data.types import QuoteSource
from tests.conftest import FakeQuoteProvider


async def wait_for_calls(provider: FakeQuoteProvider, count: int = 1) -> None:
    while len(provider.calls) < count:
        await asyncio.sleep(0)


def trigger_notifications(notifier, alert):
    return [n for n in notifier.history if n.id == alert.trigger_id]


@pytest.mark.asyncio
async def test_price_above_fires_once(notifier, alert_config):
    provider = FakeQuoteProvider({"AAPL": [95, 98, 101, 105, 90, 110]})

    async with AlertEngine(provider, notifier, alert_config) as engine:
        alert = await engine.add_alert("aapl", AlertType.PRICE_ABOVE, target_price=100)
        results = [await engine.tick() for _ in range(6)]

        fired = engine.get_alert(alert.id)

    assert results == [[], [], [alert.id], [], [], []]
    assert fired.state is AlertState.FIRED
    assert fired.triggered_price == 101
    assert fired.triggered_date is not None
    assert len(trigger_notifications(notifier, alert)) == 1
    notification = trigger_notifications(notifier, alert)[0]
    assert notification.title == "Price Alert: AAPL"
    assert notification.body == "AAPL has reached $101.00. Price alert for AAPL"


@pytest.mark.asyncio
async def test_price_below(notifier, alert_config):
    provider = FakeQuoteProvider({"TSLA": [190, 181, 179.5]})

    async with AlertEngine(provider, notifier, alert_config) as engine:
        alert = await engine.add_alert("TSLA", AlertType.PRICE_BELOW, target_price=180, message="Buy zone")
        results = [await engine.tick() for _ in range(3)]

    assert results == [[], [], [alert.id]]
    assert trigger_notifications(notifier, alert)[0].body == "TSLA has reached $179.50. Buy zone"


@pytest.mark.asyncio
async def test_add_schedules_confirmation(notifier, alert_config):
    async with AlertEngine(FakeQuoteProvider(), notifier, alert_config) as engine:
        alert = await engine.add_alert("AAPL", AlertType.PRICE_ABOVE, target_price=200)

    assert alert.state is AlertState.ARMED
    assert alert.confirmation_id == f"alert_set_{alert.id}"
    confirmation = notifier.pending[alert.confirmation_id]
    assert confirmation.title == "Price Alert Set"
    assert confirmation.body == "Monitoring AAPL for above $200.00"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs",
    [
        {"symbol": "", "alert_type": AlertType.PRICE_ABOVE, "target_price": 10},
        {"symbol": "AAPL", "alert_type": AlertType.PRICE_ABOVE, "target_price": 0},
        {"symbol": "AAPL", "alert_type": AlertType.PRICE_BELOW, "target_price": -1},
        {"symbol": "AAPL", "alert_type": AlertType.PERCENTAGE_CHANGE},
        {"symbol": "AAPL", "alert_type": AlertType.PERCENTAGE_CHANGE, "change_percent": 5, "baseline_price": 0},
    ],
)
async def test_add_rejects_invalid_alerts(notifier, alert_config, kwargs):
    async with AlertEngine(FakeQuoteProvider(), notifier, alert_config) as engine:
        with pytest.raises(ValueError):
            await engine.add_alert(**kwargs)
        assert engine.alerts == []


@pytest.mark.asyncio
async def test_disarm_cancels_notifications_and_stops_evaluation(notifier, alert_config):
    provider = FakeQuoteProvider({"AAPL": [150]})

    async with AlertEngine(provider, notifier, alert_config) as engine:
        alert = await engine.add_alert("AAPL", AlertType.PRICE_ABOVE, target_price=100)
        disarmed = await engine.toggle_alert(alert.id)
        fired = await engine.tick()

    assert disarmed.state is AlertState.DISARMED
    assert fired == []
    assert provider.calls == []
    assert set(alert.notification_ids) <= set(notifier.cancelled)
    assert notifier.pending == {}


@pytest.mark.asyncio
async def test_rearm_after_fire_starts_new_generation(notifier, alert_config):
    provider = FakeQuoteProvider({"AAPL": [101, 102]})

    async with AlertEngine(provider, notifier, alert_config) as engine:
        alert = await engine.add_alert("AAPL", AlertType.PRICE_ABOVE, target_price=100)
        assert await engine.tick() == [alert.id]

        rearmed = await engine.toggle_alert(alert.id)
        assert rearmed.state is AlertState.ARMED
        assert rearmed.generation == 2
        assert rearmed.triggered_price is None

        assert await engine.tick() == [alert.id]

    assert engine.get_alert(alert.id).triggered_price == 102
    assert len(trigger_notifications(notifier, alert)) == 2


@pytest.mark.asyncio
async def test_trigger_from_earlier_arming_is_dropped(notifier, alert_config):
    async with AlertEngine(FakeQuoteProvider(), notifier, alert_config) as engine:
        alert = await engine.add_alert("AAPL", AlertType.PRICE_ABOVE, target_price=100)
        await engine.toggle_alert(alert.id)
        await engine.toggle_alert(alert.id)

        applied = await engine._submit(_FireAlert(alert.id, generation=1, price=150))

        assert applied is False
        assert engine.get_alert(alert.id).state is AlertState.ARMED
    assert trigger_notifications(notifier, alert) == []


@pytest.mark.asyncio
async def test_remove_fired_alert(notifier, alert_config):
    provider = FakeQuoteProvider({"AAPL": [120]})

    async with AlertEngine(provider, notifier, alert_config) as engine:
        alert = await engine.add_alert("AAPL", AlertType.PRICE_ABOVE, target_price=100)
        await engine.tick()

        assert await engine.remove_alert(alert.id) is True
        assert await engine.remove_alert(alert.id) is False
        assert engine.alerts == []

    assert alert.trigger_id in notifier.cancelled
    assert alert.confirmation_id in notifier.cancelled
    assert notifier.pending == {}


@pytest.mark.asyncio
async def test_remove_during_lookup_abandons_it(notifier, alert_config):
    provider = FakeQuoteProvider({"AAPL": [150]})
    provider.block = asyncio.Event()

    async with AlertEngine(provider, notifier, alert_config) as engine:
        alert = await engine.add_alert("AAPL", AlertType.PRICE_ABOVE, target_price=100)
        tick = asyncio.create_task(engine.tick())
        await wait_for_calls(provider)

        assert await engine.remove_alert(alert.id) is True
        provider.block.set()
        fired = await tick

    assert fired == []
    assert engine.alerts == []
    assert trigger_notifications(notifier, alert) == []


@pytest.mark.asyncio
async def test_disarm_during_lookup_prevents_fire(notifier, alert_config):
    provider = FakeQuoteProvider({"AAPL": [150]})
    provider.block = asyncio.Event()

    async with AlertEngine(provider, notifier, alert_config) as engine:
        alert = await engine.add_alert("AAPL", AlertType.PRICE_ABOVE, target_price=100)
        tick = asyncio.create_task(engine.tick())
        await wait_for_calls(provider)

        await engine.toggle_alert(alert.id)
        provider.block.set()

        assert await tick == []
        assert engine.get_alert(alert.id).state is AlertState.DISARMED


@pytest.mark.asyncio
async def test_percentage_alert_measures_from_price_at_arming(notifier, alert_config):
    provider = FakeQuoteProvider({"NVDA": [100, 103, 104, 106]})

    async with AlertEngine(provider, notifier, alert_config) as engine:
        alert = await engine.add_alert("NVDA", AlertType.PERCENTAGE_CHANGE, change_percent=5)
        assert alert.baseline_price == 100
        results = [await engine.tick() for _ in range(3)]

    assert results == [[], [], [alert.id]]
    assert engine.get_alert(alert.id).triggered_price == 106


@pytest.mark.asyncio
async def test_negative_percentage_alert(notifier, alert_config):
    provider = FakeQuoteProvider({"NVDA": [195, 189]})

    async with AlertEngine(provider, notifier, alert_config) as engine:
        alert = await engine.add_alert(
            "NVDA", AlertType.PERCENTAGE_CHANGE, change_percent=-5, baseline_price=200
        )
        results = [await engine.tick() for _ in range(2)]

    assert alert.description == "-5.0%"
    assert results == [[], [alert.id]]


@pytest.mark.asyncio
async def test_percentage_baseline_captured_on_first_live_quote(notifier, alert_config):
    provider = FakeQuoteProvider({"AMD": [50, 52, 53]})
    provider.fail.add("AMD")

    async with AlertEngine(provider, notifier, alert_config) as engine:
        alert = await engine.add_alert("AMD", AlertType.PERCENTAGE_CHANGE, change_percent=5)
        assert alert.baseline_price is None

        provider.fail.clear()
        results = [await engine.tick() for _ in range(3)]
        captured = engine.get_alert(alert.id)

    assert captured.baseline_price == 50
    assert results == [[], [], [alert.id]]


@pytest.mark.asyncio
async def test_one_failing_symbol_does_not_block_others(notifier, alert_config):
    provider = FakeQuoteProvider({"AAPL": [101]})
    provider.fail.add("TSLA")

    async with AlertEngine(provider, notifier, alert_config) as engine:
        aapl = await engine.add_alert("AAPL", AlertType.PRICE_ABOVE, target_price=100)
        tsla = await engine.add_alert("TSLA", AlertType.PRICE_ABOVE, target_price=100)

        fired = await engine.tick()

        assert fired == [aapl.id]
        assert engine.get_alert(tsla.id).state is AlertState.ARMED


@pytest.mark.asyncio
async def test_lookup_timeout_leaves_alert_armed(notifier):
    provider = FakeQuoteProvider({"AAPL": [150]})
    provider.block = asyncio.Event()
    config = AlertConfig(poll_interval_seconds=3600, quote_timeout_seconds=0.05)

    async with AlertEngine(provider, notifier, config) as engine:
        alert = await engine.add_alert("AAPL", AlertType.PRICE_ABOVE, target_price=100)

        assert await engine.tick() == []
        assert engine.get_alert(alert.id).state is AlertState.ARMED


@pytest.mark.asyncio
async def test_non_live_quotes_are_not_evaluated(notifier, alert_config):
    provider = FakeQuoteProvider({"AAPL": [150]})
    provider.source = QuoteSource.DEMO

    async with AlertEngine(provider, notifier, alert_config) as engine:
        alert = await engine.add_alert("AAPL", AlertType.PRICE_ABOVE, target_price=100)

        assert await engine.tick() == []
        assert engine.get_alert(alert.id).state is AlertState.ARMED


@pytest.mark.asyncio
async def test_scheduled_monitor_fires(notifier):
    provider = FakeQuoteProvider({"AAPL": [120]})
    config = AlertConfig(poll_interval_seconds=0.05, quote_timeout_seconds=1.0)

    async with AlertEngine(provider, notifier, config) as engine:
        alert = await engine.add_alert("AAPL", AlertType.PRICE_ABOVE, target_price=100)
        for _ in range(200):
            if engine.get_alert(alert.id).state is AlertState.FIRED:
                break
            await asyncio.sleep(0.01)

        assert engine.get_alert(alert.id).state is AlertState.FIRED


@pytest.mark.asyncio
async def test_monitor_runs_as_single_instance_interval_job(notifier, alert_config):
    engine = AlertEngine(FakeQuoteProvider(), notifier, alert_config)
    await engine.start()

    job = engine._scheduler.get_job(MONITOR_JOB_ID)
    assert engine.is_monitoring
    assert job.max_instances == 1
    assert job.trigger.interval.total_seconds() == 3600

    await engine.stop()

    assert not engine.is_monitoring
    assert engine._scheduler is None


@pytest.mark.asyncio
async def test_manual_mode_has_no_scheduler(notifier, alert_config):
    async with AlertEngine(FakeQuoteProvider(), notifier, alert_config) as engine:
        await engine.stop()
        await engine.start(monitor=False)

        assert engine.is_running
        assert not engine.is_monitoring


@pytest.mark.asyncio
async def test_commands_require_running_engine(notifier, alert_config):
    engine = AlertEngine(FakeQuoteProvider(), notifier, alert_config)

    with pytest.raises(RuntimeError):
        await engine.add_alert("AAPL", AlertType.PRICE_ABOVE, target_price=100)

    await engine.start(monitor=False)
    await engine.stop()

    assert not engine.is_running
    with pytest.raises(RuntimeError):
        await engine.remove_alert("missing")


@pytest.mark.asyncio
async def test_trade_and_portfolio_notifications(notifier, alert_config):
    async with AlertEngine(FakeQuoteProvider(), notifier, alert_config) as engine:
        await engine.send_trade_alert("aapl", "BUY", 150)
        await engine.send_portfolio_update("Daily Summary", "Up 1.2% today")

    titles = [n.title for n in notifier.history]
    assert titles == ["Trade Alert: AAPL", "Daily Summary"]
    assert notifier.history[0].body == "BUY executed at $150.00"
