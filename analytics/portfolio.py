"""
Portfolio analytics module.

Portfolio Metrics
- Total value and invested capital
- Unrealized / realized / total P&L
- Closed-trade statistics (win rate, average win/loss, profit factor)
- Sector allocation
- Top / worst / largest position rankings
- Aggregate stop-loss risk

Every metric is recomputed from the position set on each read; the
Portfolio holds a read-only reference to positions owned by storage.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

from config import config
from db.models import Position


class ProfitFactor(str, Enum):
    """Sentinel for a profit factor with wins but no losses."""
    INFINITE = "INFINITE"


@dataclass
class PortfolioSummary:
    """Aggregated portfolio-level metrics (point-in-time snapshot)."""
    total_value: float
    total_investment: float
    total_unrealized_pnl: float
    total_realized_pnl: float
    total_pnl: float
    total_pnl_percent: float
    active_count: int
    closed_count: int
    win_rate: float
    average_win: float
    average_loss: float
    profit_factor: float | ProfitFactor
    portfolio_risk: float
    portfolio_risk_percent: float
    sector_allocation: dict[str, float] = field(default_factory=dict)
    sector_allocation_percent: dict[str, float] = field(default_factory=dict)


class Portfolio:
    """
    Rolls a position set (active and closed) into portfolio-level metrics.

    No caching: each property walks the current positions, so a price
    update or close is reflected on the next read.
    """

    def __init__(self, positions: Sequence[Position], ranking_size: int | None = None):
        self._positions = positions
        self.ranking_size = ranking_size or config.positions.ranking_size

    @property
    def positions(self) -> Sequence[Position]:
        return self._positions

    @property
    def active_positions(self) -> list[Position]:
        return [p for p in self._positions if p.is_active]

    @property
    def closed_positions(self) -> list[Position]:
        return [p for p in self._positions if not p.is_active]

    # ------------------------------------------------------------------
    # Value and P&L
    # ------------------------------------------------------------------

    @property
    def total_value(self) -> float:
        """Market value of active positions."""
        return sum(p.current_value for p in self.active_positions)

    @property
    def total_investment(self) -> float:
        """Capital committed across all positions, active and closed."""
        return sum(p.total_investment for p in self._positions)

    @property
    def total_unrealized_pnl(self) -> float:
        return sum(p.unrealized_pnl for p in self.active_positions)

    @property
    def total_realized_pnl(self) -> float:
        return sum(p.realized_pnl for p in self.closed_positions)

    @property
    def total_pnl(self) -> float:
        return self.total_unrealized_pnl + self.total_realized_pnl

    @property
    def total_pnl_percent(self) -> float:
        total_investment = self.total_investment
        if total_investment <= 0:
            return 0.0
        return (self.total_pnl / total_investment) * 100

    # ------------------------------------------------------------------
    # Closed-trade statistics
    # ------------------------------------------------------------------

    def _winning_pnls(self) -> list[float]:
        return [p.realized_pnl for p in self.closed_positions if p.realized_pnl > 0]

    def _losing_pnls(self) -> list[float]:
        return [p.realized_pnl for p in self.closed_positions if p.realized_pnl < 0]

    @property
    def win_rate(self) -> float:
        """Percent of closed positions with a positive realized P&L."""
        closed = self.closed_positions
        if not closed:
            return 0.0
        return (len(self._winning_pnls()) / len(closed)) * 100

    @property
    def average_win(self) -> float:
        wins = self._winning_pnls()
        if not wins:
            return 0.0
        return sum(wins) / len(wins)

    @property
    def average_loss(self) -> float:
        losses = self._losing_pnls()
        if not losses:
            return 0.0
        return sum(losses) / len(losses)

    @property
    def profit_factor(self) -> float | ProfitFactor:
        """
        Summed wins over absolute summed losses.

        Returns ProfitFactor.INFINITE when there are wins but no losses,
        and 0.0 when there are neither.
        """
        total_wins = sum(self._winning_pnls())
        total_losses = abs(sum(self._losing_pnls()))

        if total_losses == 0:
            return ProfitFactor.INFINITE if total_wins > 0 else 0.0
        return total_wins / total_losses

    # ------------------------------------------------------------------
    # Allocation
    # ------------------------------------------------------------------

    @property
    def sector_allocation(self) -> dict[str, float]:
        allocation: dict[str, float] = {}
        for position in self.active_positions:
            allocation[position.sector] = allocation.get(position.sector, 0.0) + position.current_value
        return allocation

    @property
    def sector_allocation_percent(self) -> dict[str, float]:
        total = self.total_value
        if total <= 0:
            return {}
        return {sector: (value / total) * 100 for sector, value in self.sector_allocation.items()}

    # ------------------------------------------------------------------
    # Rankings (stable: ties keep input order)
    # ------------------------------------------------------------------

    @property
    def top_performers(self) -> list[Position]:
        ranked = sorted(self.active_positions, key=lambda p: p.unrealized_pnl_percent, reverse=True)
        return ranked[: self.ranking_size]

    @property
    def worst_performers(self) -> list[Position]:
        ranked = sorted(self.active_positions, key=lambda p: p.unrealized_pnl_percent)
        return ranked[: self.ranking_size]

    @property
    def largest_positions(self) -> list[Position]:
        ranked = sorted(self.active_positions, key=lambda p: p.current_value, reverse=True)
        return ranked[: self.ranking_size]

    @property
    def best_performer(self) -> Position | None:
        top = self.top_performers
        return top[0] if top else None

    @property
    def worst_performer(self) -> Position | None:
        worst = self.worst_performers
        return worst[0] if worst else None

    @property
    def largest_position(self) -> Position | None:
        largest = self.largest_positions
        return largest[0] if largest else None

    @property
    def average_return(self) -> float | None:
        """Mean unrealized return of active positions, None when there are none."""
        active = self.active_positions
        if not active:
            return None
        return sum(p.unrealized_pnl_percent for p in active) / len(active)

    # ------------------------------------------------------------------
    # Risk
    # ------------------------------------------------------------------

    @property
    def portfolio_risk(self) -> float:
        return sum(p.risk_amount for p in self.active_positions)

    @property
    def portfolio_risk_percent(self) -> float:
        total_value = self.total_value
        if total_value <= 0:
            return 0.0
        return (self.portfolio_risk / total_value) * 100

    def summary(self) -> PortfolioSummary:
        """Snapshot every aggregate metric at once."""
        return PortfolioSummary(
            total_value=self.total_value,
            total_investment=self.total_investment,
            total_unrealized_pnl=self.total_unrealized_pnl,
            total_realized_pnl=self.total_realized_pnl,
            total_pnl=self.total_pnl,
            total_pnl_percent=self.total_pnl_percent,
            active_count=len(self.active_positions),
            closed_count=len(self.closed_positions),
            win_rate=self.win_rate,
            average_win=self.average_win,
            average_loss=self.average_loss,
            profit_factor=self.profit_factor,
            portfolio_risk=self.portfolio_risk,
            portfolio_risk_percent=self.portfolio_risk_percent,
            sector_allocation=self.sector_allocation,
            sector_allocation_percent=self.sector_allocation_percent,
        )


def compute_portfolio(positions: Sequence[Position]) -> PortfolioSummary:
    """Convenience function to summarize a position set."""
    return Portfolio(positions).summary()
