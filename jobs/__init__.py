"""
Jobs package initialization.

Exports scheduled / on-demand job runners.
"""

from jobs.price_refresh import JobResult, PriceRefreshJob

__all__ = [
    "JobResult",
    "PriceRefreshJob",
]
