"""
Alerts package initialization.

Exports the price alert model and engine:
    from alerts import AlertEngine, AlertType
"""

from alerts.models import (
    AlertState,
    AlertType,
    PriceAlert,
)
from alerts.engine import AlertEngine

__all__ = [
    "AlertEngine",
    "AlertState",
    "AlertType",
    "PriceAlert",
]
