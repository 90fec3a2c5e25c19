"""
Price alert definitions.

An alert is ARMED from creation until it fires (FIRED) or the user turns
it off (DISARMED). Either inactive state can be re-armed; every arming
bumps `generation`, which the engine uses to discard trigger results that
were computed for an earlier arming.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from config import config


class AlertType(str, Enum):
    """Trigger condition kind."""
    PRICE_ABOVE = "price_above"
    PRICE_BELOW = "price_below"
    PERCENTAGE_CHANGE = "percentage_change"


class AlertState(str, Enum):
    """Alert lifecycle state."""
    ARMED = "ARMED"
    FIRED = "FIRED"
    DISARMED = "DISARMED"


@dataclass
class PriceAlert:
    """
    A one-shot price alert.

    For PERCENTAGE_CHANGE alerts `change_percent` is the signed move that
    triggers, measured from `baseline_price` (the price when the alert was
    armed). A positive delta triggers on a rise of at least delta percent,
    a negative delta on a fall of at least |delta| percent.
    """
    id: str
    symbol: str
    alert_type: AlertType
    message: str
    target_price: float = 0.0
    change_percent: float | None = None
    baseline_price: float | None = None
    state: AlertState = AlertState.ARMED
    generation: int = 1
    created_date: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    triggered_price: float | None = None
    triggered_date: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.state is AlertState.ARMED

    @property
    def confirmation_id(self) -> str:
        """Notification id of the "alert set" confirmation."""
        return f"{config.alerts.confirmation_prefix}{self.id}"

    @property
    def trigger_id(self) -> str:
        """Notification id of the trigger notification."""
        return self.id

    @property
    def notification_ids(self) -> list[str]:
        return [self.trigger_id, self.confirmation_id]

    @property
    def description(self) -> str:
        if self.alert_type is AlertType.PRICE_ABOVE:
            return "above"
        if self.alert_type is AlertType.PRICE_BELOW:
            return "below"
        delta = self.change_percent or 0.0
        return f"{'+' if delta > 0 else ''}{delta:.1f}%"

    @property
    def condition_text(self) -> str:
        """Human readable trigger condition, used in confirmations."""
        if self.alert_type is AlertType.PERCENTAGE_CHANGE:
            if self.baseline_price is None:
                return f"a {self.description} move from the next quote"
            return f"a {self.description} move from ${self.baseline_price:.2f}"
        return f"{self.description} ${self.target_price:.2f}"

    def percent_change_from_baseline(self, price: float) -> float | None:
        if not self.baseline_price or self.baseline_price <= 0:
            return None
        return ((price - self.baseline_price) / self.baseline_price) * 100

    def should_trigger(self, price: float) -> bool:
        """Evaluate the trigger condition against an observed price."""
        if self.alert_type is AlertType.PRICE_ABOVE:
            return price >= self.target_price
        if self.alert_type is AlertType.PRICE_BELOW:
            return price <= self.target_price

        change = self.percent_change_from_baseline(price)
        if change is None or not self.change_percent:
            return False
        if self.change_percent > 0:
            return change >= self.change_percent
        return change <= self.change_percent
