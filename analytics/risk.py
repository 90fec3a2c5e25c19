"""
Risk analytics module.

Position Sizing
- Shares to buy so that a stop-out loses a fixed share of the portfolio
- Resulting investment and portfolio allocation

Risk Constraints
- Explainable metrics only
- No probabilistic forecasting or VaR models
"""

from dataclasses import dataclass


@dataclass
class RiskCalculation:
    """Result of a fixed-fractional position sizing calculation."""
    recommended_shares: float
    total_investment: float
    max_risk_amount: float
    risk_per_share: float
    portfolio_risk_percent: float
    portfolio_allocation: float


class RiskCalculator:
    """
    Fixed-fractional position sizer.

    risk per share = |buy price - stop loss|
    max risk       = portfolio value * risk %
    shares         = max risk / risk per share
    """

    def calculate(
        self,
        portfolio_value: float,
        risk_percent: float,
        buy_price: float,
        stop_loss: float,
    ) -> RiskCalculation | None:
        """
        Size a position.

        Returns:
            RiskCalculation, or None when inputs are not positive or the
            stop loss equals the buy price.
        """
        if portfolio_value <= 0 or risk_percent <= 0 or buy_price <= 0:
            return None

        risk_per_share = abs(buy_price - stop_loss)
        if risk_per_share == 0:
            return None

        max_risk_amount = portfolio_value * (risk_percent / 100)
        recommended_shares = max_risk_amount / risk_per_share
        total_investment = recommended_shares * buy_price
        portfolio_allocation = (total_investment / portfolio_value) * 100

        return RiskCalculation(
            recommended_shares=recommended_shares,
            total_investment=total_investment,
            max_risk_amount=max_risk_amount,
            risk_per_share=risk_per_share,
            portfolio_risk_percent=risk_percent,
            portfolio_allocation=portfolio_allocation,
        )


def calculate_position_size(
    portfolio_value: float,
    risk_percent: float,
    buy_price: float,
    stop_loss: float,
) -> RiskCalculation | None:
    """Convenience function for one-off sizing."""
    return RiskCalculator().calculate(portfolio_value, risk_percent, buy_price, stop_loss)
