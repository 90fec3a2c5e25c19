"""
SQLAlchemy ORM Models for the Stock Journal.

Defines the persisted trade journal entity:
- Positions (a single tracked trade, active or closed)

Every financial metric on a position is a read-only property computed from
the stored fields on each access; nothing derived is ever persisted.
"""

import math
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    Index,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from config import config


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


def finite_number(value, label: str) -> float:
    """
    Convert value to a finite float.

    Raises:
        ValueError: If value is None, not numeric, NaN or infinite.
    """
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{label} must be a number")
    if not math.isfinite(number):
        raise ValueError(f"{label} must be a finite number")
    return number


class PositionStateError(ValueError):
    """Raised when a lifecycle transition is not allowed (e.g. closing twice)."""


class Position(Base):
    """
    A single tracked trade.

    Lifecycle: created active, closed exactly once. Closing sets
    sell_price and sell_date together; a closed position is never
    re-opened and never re-closed.

    Fields:
        current_price: Last observed market price, floored at
            config.positions.min_current_price
        sell_price: 0 while active
        sell_date: NULL while active
    """
    __tablename__ = "positions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    symbol: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    sector: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    buy_price: Mapped[float] = mapped_column(Float, nullable=False)
    current_price: Mapped[float] = mapped_column(Float, nullable=False)
    stop_loss: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    price_target: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    thesis: Mapped[str] = mapped_column(Text, nullable=False, default="")
    tags: Mapped[Optional[str]] = mapped_column(String(255))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    date_added: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    sell_price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    sell_date: Mapped[Optional[datetime]] = mapped_column(DateTime)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_positions_quantity_positive"),
        CheckConstraint("buy_price > 0", name="ck_positions_buy_price_positive"),
        Index("idx_positions_date_added", "date_added"),
    )

    @classmethod
    def open(
        cls,
        symbol: str,
        quantity: float,
        buy_price: float,
        name: str = "",
        sector: str = "",
        stop_loss: float = 0.0,
        price_target: float = 0.0,
        thesis: str = "",
        tags: str = "",
        notes: str = "",
        date_added: datetime | None = None,
    ) -> "Position":
        """
        Validate input and build a new active position.

        Raises:
            ValueError: If symbol is blank, any number is missing or not
                finite, quantity/buy price are not positive, or stop
                loss/price target are negative.
        """
        symbol = (symbol or "").strip().upper()
        if not symbol:
            raise ValueError("Symbol is required")
        quantity = finite_number(quantity, "Quantity")
        buy_price = finite_number(buy_price, "Buy price")
        stop_loss = finite_number(stop_loss, "Stop loss")
        price_target = finite_number(price_target, "Price target")
        if quantity <= 0:
            raise ValueError("Quantity must be positive")
        if buy_price <= 0:
            raise ValueError("Buy price must be positive")
        if stop_loss < 0:
            raise ValueError("Stop loss cannot be negative")
        if price_target < 0:
            raise ValueError("Price target cannot be negative")

        return cls(
            id=str(uuid.uuid4()),
            symbol=symbol,
            name=name or "",
            sector=sector or "",
            quantity=quantity,
            buy_price=buy_price,
            current_price=buy_price,  # Initial price same as buy price
            stop_loss=stop_loss,
            price_target=price_target,
            thesis=thesis or "",
            tags=tags or "",
            notes=notes or "",
            date_added=date_added or datetime.now(timezone.utc).replace(tzinfo=None),
            is_active=True,
            sell_price=0.0,
            sell_date=None,
        )

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    def close(self, sell_price: float, sell_date: datetime | None = None) -> None:
        """
        Close the position at sell_price.

        Raises:
            PositionStateError: If the position is already closed.
            ValueError: If sell_price is not a positive finite number.
        """
        if not self.is_active:
            raise PositionStateError(f"Position {self.symbol} is already closed")
        sell_price = finite_number(sell_price, "Sell price")
        if sell_price <= 0:
            raise ValueError("Sell price must be positive")

        self.sell_price = sell_price
        self.sell_date = sell_date or datetime.now(timezone.utc).replace(tzinfo=None)
        self.is_active = False

    def update_current_price(self, price: float) -> None:
        """
        Set current price (floored); ignored once the position is closed.

        Raises:
            ValueError: If price is missing or not finite.
        """
        price = finite_number(price, "Price")
        if not self.is_active:
            return
        self.current_price = max(price, config.positions.min_current_price)

    # ------------------------------------------------------------------
    # Derived metrics
    # ------------------------------------------------------------------

    @property
    def is_closed(self) -> bool:
        return not self.is_active

    @property
    def status(self) -> str:
        return "Active" if self.is_active else "Closed"

    @property
    def total_investment(self) -> float:
        return self.quantity * self.buy_price

    @property
    def current_value(self) -> float:
        return self.quantity * self.current_price

    @property
    def unrealized_pnl(self) -> float:
        """Open P&L; zero once closed."""
        if not self.is_active:
            return 0.0
        return self.current_value - self.total_investment

    @property
    def unrealized_pnl_percent(self) -> float:
        if self.total_investment <= 0:
            return 0.0
        return (self.unrealized_pnl / self.total_investment) * 100

    @property
    def realized_pnl(self) -> float:
        """Closed P&L; zero while active."""
        if self.is_active:
            return 0.0
        return self.quantity * (self.sell_price - self.buy_price)

    @property
    def realized_pnl_percent(self) -> float:
        if self.is_active or self.total_investment <= 0:
            return 0.0
        return (self.realized_pnl / self.total_investment) * 100

    @property
    def pnl(self) -> float:
        """Unrealized P&L while active, realized P&L once closed."""
        return self.unrealized_pnl if self.is_active else self.realized_pnl

    @property
    def pnl_percent(self) -> float:
        return self.unrealized_pnl_percent if self.is_active else self.realized_pnl_percent

    @property
    def risk_amount(self) -> float:
        """Dollar exposure between entry and stop loss."""
        return self.quantity * abs(self.buy_price - self.stop_loss)

    @property
    def potential_reward(self) -> float:
        return self.quantity * abs(self.price_target - self.buy_price)

    @property
    def risk_reward_ratio(self) -> float:
        if self.risk_amount <= 0:
            return 0.0
        return self.potential_reward / self.risk_amount

    @property
    def stop_loss_percent(self) -> float:
        if self.buy_price <= 0:
            return 0.0
        return ((self.stop_loss - self.buy_price) / self.buy_price) * 100

    @property
    def price_target_percent(self) -> float:
        if self.buy_price <= 0:
            return 0.0
        return ((self.price_target - self.buy_price) / self.buy_price) * 100

    @property
    def progress_to_target(self) -> float:
        """Percent of the entry-to-target move covered so far."""
        if self.price_target <= self.buy_price:
            return 0.0
        total_move = self.price_target - self.buy_price
        current_move = self.current_price - self.buy_price
        return (current_move / total_move) * 100

    @property
    def tags_list(self) -> list[str]:
        if not self.tags:
            return []
        return [tag.strip() for tag in self.tags.split(",") if tag.strip()]

    def __repr__(self) -> str:
        return f"<Position(id={self.id}, symbol={self.symbol}, status={self.status})>"
