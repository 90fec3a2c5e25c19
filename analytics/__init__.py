"""
Analytics package initialization.

Exports commonly used analytics functions for convenient imports:
    from analytics import Portfolio, filter_and_sort_positions, etc.
"""

from analytics.portfolio import (
    Portfolio,
    PortfolioSummary,
    ProfitFactor,
    compute_portfolio,
)
from analytics.pipeline import (
    PositionFilter,
    PositionPipeline,
    SortOption,
    filter_and_sort_positions,
    matches_search,
)
from analytics.risk import (
    RiskCalculation,
    RiskCalculator,
    calculate_position_size,
)
from analytics.formatting import (
    format_currency,
    format_percentage,
    format_profit_factor,
    format_signed_currency,
)

__all__ = [
    # Portfolio
    "Portfolio",
    "PortfolioSummary",
    "ProfitFactor",
    "compute_portfolio",
    # Pipeline
    "PositionFilter",
    "PositionPipeline",
    "SortOption",
    "filter_and_sort_positions",
    "matches_search",
    # Risk
    "RiskCalculation",
    "RiskCalculator",
    "calculate_position_size",
    # Formatting
    "format_currency",
    "format_percentage",
    "format_profit_factor",
    "format_signed_currency",
]
