"""
Price Alert Engine.

Holds alert definitions, polls a quote provider on a fixed interval,
evaluates trigger conditions, fires each alert at most once per arming and
notifies through a Notifier.

Tasks:
- writer: the only code that mutates alert state. add / toggle / remove /
  fire / baseline capture are commands on an asyncio.Queue applied one at
  a time, so a toggle or remove racing a trigger resolves in queue order.
- monitor: an APScheduler interval job runs tick() every poll interval,
  never overlapping itself. tick() looks up a quote per armed alert
  concurrently (each bounded by a timeout) and posts fire commands tagged
  with the arming generation it evaluated.
- lookups: one task per armed alert per tick; removing the alert or
  stopping the engine cancels it.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from alerts.models import AlertState, AlertType, PriceAlert
from config import AlertConfig, config
from data.types import QuoteError, QuoteProvider
from services.notification_service import Notifier


logger = logging.getLogger(__name__)

MONITOR_JOB_ID = "alert_monitor_job"


# ──────────────────────────────────────────────────────────────────────────────
# Writer commands
# ──────────────────────────────────────────────────────────────────────────────


@dataclass
class _AddAlert:
    alert: PriceAlert


@dataclass
class _ToggleAlert:
    alert_id: str


@dataclass
class _RemoveAlert:
    alert_id: str


@dataclass
class _FireAlert:
    alert_id: str
    generation: int
    price: float


@dataclass
class _CaptureBaseline:
    alert_id: str
    generation: int
    price: float


class AlertEngine:
    """
    Asynchronous one-shot price alert monitor.

    Usage:
        async with AlertEngine(provider, notifier) as engine:
            alert = await engine.add_alert("AAPL", AlertType.PRICE_ABOVE, target_price=200)
            ...
    """

    def __init__(
        self,
        quote_provider: QuoteProvider,
        notifier: Notifier,
        alert_config: AlertConfig | None = None,
    ):
        self.quote_provider = quote_provider
        self.notifier = notifier
        self.config = alert_config or config.alerts

        self._alerts: dict[str, PriceAlert] = {}
        self._commands: asyncio.Queue | None = None
        self._writer_task: asyncio.Task | None = None
        self._scheduler: AsyncIOScheduler | None = None
        self._inflight: dict[str, asyncio.Task] = {}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._writer_task is not None and not self._writer_task.done()

    @property
    def is_monitoring(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    async def start(self, monitor: bool = True) -> None:
        """Start the writer and, unless monitor is False, the polling scheduler."""
        if self.is_running:
            return
        self._commands = asyncio.Queue()
        self._writer_task = asyncio.create_task(self._run_writer(), name="alert-writer")
        if monitor:
            self._start_scheduler()
        logger.info(
            f"Alert engine started (poll every {self.config.poll_interval_seconds:.0f}s, "
            f"monitor={'on' if monitor else 'off'})"
        )

    async def stop(self) -> None:
        """Stop polling, abandon in-flight lookups and shut down the writer."""
        self._shutdown_scheduler()
        for task in self._inflight.values():
            if not task.done():
                task.cancel()
        await asyncio.gather(*self._inflight.values(), return_exceptions=True)
        self._inflight.clear()

        if self._writer_task is not None:
            self._writer_task.cancel()
            await asyncio.gather(self._writer_task, return_exceptions=True)
            self._writer_task = None

        # Fail anything still queued so callers do not wait forever
        if self._commands is not None:
            while not self._commands.empty():
                _, future = self._commands.get_nowait()
                if not future.done():
                    future.set_exception(RuntimeError("Alert engine stopped"))
        logger.info("Alert engine stopped")

    async def __aenter__(self) -> "AlertEngine":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def alerts(self) -> list[PriceAlert]:
        """Snapshot copies of every alert, in creation order."""
        return [replace(alert) for alert in self._alerts.values()]

    @property
    def armed_alerts(self) -> list[PriceAlert]:
        return [alert for alert in self.alerts if alert.state is AlertState.ARMED]

    def get_alert(self, alert_id: str) -> PriceAlert | None:
        alert = self._alerts.get(alert_id)
        return replace(alert) if alert else None

    # ------------------------------------------------------------------
    # Public commands
    # ------------------------------------------------------------------

    async def add_alert(
        self,
        symbol: str,
        alert_type: AlertType | str,
        target_price: float = 0.0,
        change_percent: float | None = None,
        message: str | None = None,
        baseline_price: float | None = None,
    ) -> PriceAlert:
        """
        Create an armed alert and schedule its confirmation notification.

        PERCENTAGE_CHANGE alerts measure from baseline_price; when it is not
        given the current quote is requested, and if that fails the first
        live quote seen by the monitor becomes the baseline.

        Raises:
            ValueError: Blank symbol, non-positive target for price alerts,
                or a missing / zero change_percent for percentage alerts.
        """
        symbol = (symbol or "").strip().upper()
        alert_type = AlertType(alert_type)
        if not symbol:
            raise ValueError("Symbol is required")

        if alert_type is AlertType.PERCENTAGE_CHANGE:
            if not change_percent:
                raise ValueError("Percentage alerts need a non-zero change percent")
            if baseline_price is not None and baseline_price <= 0:
                raise ValueError("Baseline price must be positive")
            if baseline_price is None:
                baseline_price = await self._lookup_price(symbol, context="baseline")
        elif target_price is None or target_price <= 0:
            raise ValueError("Target price must be positive")

        alert = PriceAlert(
            id=str(uuid.uuid4()),
            symbol=symbol,
            alert_type=alert_type,
            message=message or f"Price alert for {symbol}",
            target_price=float(target_price or 0.0),
            change_percent=float(change_percent) if change_percent is not None else None,
            baseline_price=baseline_price,
        )
        return await self._submit(_AddAlert(alert))

    async def toggle_alert(self, alert_id: str) -> PriceAlert | None:
        """Disarm an armed alert, or re-arm a fired / disarmed one."""
        return await self._submit(_ToggleAlert(alert_id))

    async def remove_alert(self, alert_id: str) -> bool:
        """Delete an alert in any state. Returns False for unknown ids."""
        return await self._submit(_RemoveAlert(alert_id))

    async def tick(self) -> list[str]:
        """
        Run one evaluation pass over armed alerts.

        Returns:
            Ids of alerts that fired on this pass.
        """
        armed = [
            replace(alert)
            for alert in self._alerts.values()
            if alert.state is AlertState.ARMED and alert.id not in self._inflight
        ]
        if not armed:
            return []

        tasks = {
            alert.id: asyncio.create_task(self._lookup_price(alert.symbol, context=alert.id))
            for alert in armed
        }
        self._inflight.update(tasks)
        try:
            results = await asyncio.gather(*tasks.values(), return_exceptions=True)
        finally:
            for alert_id, task in tasks.items():
                if self._inflight.get(alert_id) is task:
                    del self._inflight[alert_id]

        fired = []
        for alert, result in zip(armed, results):
            if isinstance(result, asyncio.CancelledError):
                logger.debug(f"Lookup for alert {alert.id} abandoned")
                continue
            if isinstance(result, BaseException):
                logger.warning(f"⚠️ Alert check failed for {alert.symbol}: {result!r}")
                continue
            if result is None:
                continue

            if alert.alert_type is AlertType.PERCENTAGE_CHANGE and alert.baseline_price is None:
                await self._submit(_CaptureBaseline(alert.id, alert.generation, result))
                continue

            if alert.should_trigger(result):
                if await self._submit(_FireAlert(alert.id, alert.generation, result)):
                    fired.append(alert.id)

        return fired

    async def send_portfolio_update(self, title: str, message: str) -> None:
        await self._notify(f"portfolio_{uuid.uuid4()}", title, message)

    async def send_trade_alert(self, symbol: str, action: str, price: float) -> None:
        await self._notify(
            f"trade_{uuid.uuid4()}",
            f"Trade Alert: {symbol.upper()}",
            f"{action} executed at ${price:.2f}",
        )

    # ------------------------------------------------------------------
    # Writer
    # ------------------------------------------------------------------

    async def _submit(self, command: Any) -> Any:
        if not self.is_running or self._commands is None:
            raise RuntimeError("Alert engine is not running; call start() first")
        future = asyncio.get_running_loop().create_future()
        await self._commands.put((command, future))
        return await future

    async def _run_writer(self) -> None:
        while True:
            command, future = await self._commands.get()
            try:
                result = await self._apply(command)
            except asyncio.CancelledError:
                if not future.done():
                    future.cancel()
                raise
            except Exception as e:
                if not future.done():
                    future.set_exception(e)
            else:
                if not future.done():
                    future.set_result(result)
            finally:
                self._commands.task_done()

    async def _apply(self, command: Any) -> Any:
        if isinstance(command, _AddAlert):
            return await self._apply_add(command)
        if isinstance(command, _ToggleAlert):
            return await self._apply_toggle(command)
        if isinstance(command, _RemoveAlert):
            return await self._apply_remove(command)
        if isinstance(command, _FireAlert):
            return await self._apply_fire(command)
        if isinstance(command, _CaptureBaseline):
            return self._apply_capture_baseline(command)
        raise TypeError(f"Unknown alert command: {command!r}")

    async def _apply_add(self, command: _AddAlert) -> PriceAlert:
        alert = command.alert
        self._alerts[alert.id] = alert
        logger.info(f"Alert {alert.id} armed: {alert.symbol} {alert.condition_text}")
        await self._schedule_confirmation(alert)
        return replace(alert)

    async def _apply_toggle(self, command: _ToggleAlert) -> PriceAlert | None:
        alert = self._alerts.get(command.alert_id)
        if alert is None:
            return None

        if alert.state is AlertState.ARMED:
            alert.state = AlertState.DISARMED
            self._abandon_lookup(alert.id)
            await self._cancel(alert.notification_ids)
            logger.info(f"Alert {alert.id} disarmed ({alert.symbol})")
        else:
            alert.state = AlertState.ARMED
            alert.generation += 1
            alert.triggered_price = None
            alert.triggered_date = None
            if alert.alert_type is AlertType.PERCENTAGE_CHANGE:
                alert.baseline_price = None
            logger.info(f"Alert {alert.id} re-armed ({alert.symbol}, generation {alert.generation})")
            await self._schedule_confirmation(alert)

        return replace(alert)

    async def _apply_remove(self, command: _RemoveAlert) -> bool:
        self._abandon_lookup(command.alert_id)
        alert = self._alerts.pop(command.alert_id, None)
        if alert is None:
            return False
        await self._cancel(alert.notification_ids)
        logger.info(f"Alert {alert.id} removed ({alert.symbol}, was {alert.state.value})")
        return True

    async def _apply_fire(self, command: _FireAlert) -> bool:
        alert = self._alerts.get(command.alert_id)
        if (
            alert is None
            or alert.state is not AlertState.ARMED
            or alert.generation != command.generation
        ):
            logger.debug(f"Dropped stale trigger for alert {command.alert_id}")
            return False

        alert.state = AlertState.FIRED
        alert.triggered_price = command.price
        alert.triggered_date = datetime.now(timezone.utc)
        logger.info(f"🔔 Alert {alert.id} fired: {alert.symbol} @ ${command.price:.2f}")

        await self._notify(
            alert.trigger_id,
            f"Price Alert: {alert.symbol}",
            f"{alert.symbol} has reached ${command.price:.2f}. {alert.message}",
        )
        return True

    def _apply_capture_baseline(self, command: _CaptureBaseline) -> bool:
        alert = self._alerts.get(command.alert_id)
        if (
            alert is None
            or alert.state is not AlertState.ARMED
            or alert.generation != command.generation
            or alert.baseline_price is not None
        ):
            return False
        alert.baseline_price = command.price
        logger.info(f"Alert {alert.id} baseline set: {alert.symbol} @ ${command.price:.2f}")
        return True

    # ------------------------------------------------------------------
    # Monitor and lookups
    # ------------------------------------------------------------------

    def _start_scheduler(self) -> None:
        scheduler = AsyncIOScheduler()
        scheduler.add_job(
            self._run_monitor_tick,
            trigger=IntervalTrigger(seconds=self.config.poll_interval_seconds),
            id=MONITOR_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()
        self._scheduler = scheduler

    def _shutdown_scheduler(self) -> None:
        if self._scheduler is None:
            return
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None

    async def _run_monitor_tick(self) -> None:
        try:
            fired = await self.tick()
        except RuntimeError as e:
            logger.error(f"❌ Alert tick aborted: {e}")
            return
        if fired:
            logger.info(f"{len(fired)} alert(s) fired this tick")

    async def _lookup_price(self, symbol: str, context: str) -> float | None:
        """
        Bounded quote lookup. Returns None on any soft failure (timeout,
        provider error, non-live data) so the alert is retried next tick.
        """
        try:
            quote = await asyncio.wait_for(
                self.quote_provider.get_quote(symbol),
                timeout=self.config.quote_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(f"⚠️ Quote lookup for {symbol} timed out ({context})")
            return None
        except QuoteError as e:
            logger.warning(f"⚠️ Quote lookup for {symbol} failed ({context}): {e}")
            return None

        if not quote.is_live:
            logger.info(f"Skipping {quote.source.value} quote for {symbol} ({context})")
            return None
        return quote.price

    def _abandon_lookup(self, alert_id: str) -> None:
        task = self._inflight.pop(alert_id, None)
        if task is not None and not task.done():
            task.cancel()

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    async def _schedule_confirmation(self, alert: PriceAlert) -> None:
        await self._notify(
            alert.confirmation_id,
            "Price Alert Set",
            f"Monitoring {alert.symbol} for {alert.condition_text}",
        )

    async def _notify(self, notification_id: str, title: str, body: str) -> None:
        try:
            await asyncio.to_thread(self.notifier.schedule, notification_id, title, body)
        except Exception:
            logger.exception(f"Failed to schedule notification {notification_id}")

    async def _cancel(self, notification_ids: list[str]) -> None:
        try:
            await asyncio.to_thread(self.notifier.cancel, notification_ids)
        except Exception:
            logger.exception(f"Failed to cancel notifications {notification_ids}")
