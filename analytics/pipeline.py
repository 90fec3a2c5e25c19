"""
Position search, filter and sort pipeline.

Derives the displayed subset of positions from four inputs: the position
set, a search string, a filter and a sort option. Stages always run in the
order search -> filter -> sort, and every stage builds a new list; the
input sequence is never reordered or mutated.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Sequence

from db.models import Position


logger = logging.getLogger(__name__)


class PositionFilter(str, Enum):
    """Subset selector for the position list."""
    ALL = "all"
    ACTIVE = "active"
    CLOSED = "closed"
    PROFITABLE = "profitable"
    UNPROFITABLE = "unprofitable"

    @property
    def display_name(self) -> str:
        return "At Loss" if self is PositionFilter.UNPROFITABLE else self.value.title()


class SortOption(str, Enum):
    """Ordering of the position list."""
    DATE_ADDED = "date_added"
    SYMBOL = "symbol"
    PERFORMANCE = "performance"
    VALUE = "value"
    RISK = "risk"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()


def matches_search(position: Position, search_text: str) -> bool:
    """Case-insensitive substring match on symbol, name or sector."""
    if not search_text:
        return True
    needle = search_text.casefold()
    return (
        needle in (position.symbol or "").casefold()
        or needle in (position.name or "").casefold()
        or needle in (position.sector or "").casefold()
    )


_FILTERS: dict[PositionFilter, Callable[[Position], bool]] = {
    PositionFilter.ALL: lambda p: True,
    PositionFilter.ACTIVE: lambda p: p.is_active,
    PositionFilter.CLOSED: lambda p: not p.is_active,
    PositionFilter.PROFITABLE: lambda p: p.pnl > 0,
    PositionFilter.UNPROFITABLE: lambda p: p.pnl < 0,
}


def _date_key(position: Position) -> datetime:
    return position.date_added or datetime.min


# (key, reverse) per sort option; sorted() stays stable with reverse=True
_SORTS: dict[SortOption, tuple[Callable[[Position], object], bool]] = {
    SortOption.DATE_ADDED: (_date_key, True),
    SortOption.SYMBOL: (lambda p: p.symbol, False),
    SortOption.PERFORMANCE: (lambda p: p.pnl_percent, True),
    SortOption.VALUE: (lambda p: p.current_value, True),
    SortOption.RISK: (lambda p: p.risk_amount, True),
}


def filter_and_sort_positions(
    positions: Sequence[Position],
    search_text: str = "",
    position_filter: PositionFilter = PositionFilter.ALL,
    sort_option: SortOption = SortOption.DATE_ADDED,
) -> list[Position]:
    """
    Apply search, then filter, then sort.

    Args:
        positions: Full position set (not modified).
        search_text: Case-insensitive substring; empty passes everything.
        position_filter: Subset selector.
        sort_option: Ordering of the result.

    Returns:
        New ordered list, a subset of positions.
    """
    searched = [p for p in positions if matches_search(p, search_text or "")]

    predicate = _FILTERS[PositionFilter(position_filter)]
    filtered = [p for p in searched if predicate(p)]

    key, reverse = _SORTS[SortOption(sort_option)]
    return sorted(filtered, key=key, reverse=reverse)


class PositionPipeline:
    """
    Reactive view over a position set.

    Each setter recomputes the view before returning, so `view` is always
    consistent with the current four inputs.

    Usage:
        pipeline = PositionPipeline(positions)
        pipeline.set_filter(PositionFilter.ACTIVE)
        pipeline.view  # recomputed
    """

    def __init__(
        self,
        positions: Sequence[Position] = (),
        search_text: str = "",
        position_filter: PositionFilter = PositionFilter.ALL,
        sort_option: SortOption = SortOption.DATE_ADDED,
    ):
        self._positions: Sequence[Position] = positions
        self._search_text = search_text
        self._filter = PositionFilter(position_filter)
        self._sort = SortOption(sort_option)
        self._view: list[Position] = []
        self._listeners: list[Callable[[list[Position]], None]] = []
        self._recompute()

    @property
    def view(self) -> list[Position]:
        """Current derived view (a copy; callers may not alter the pipeline through it)."""
        return list(self._view)

    @property
    def positions(self) -> Sequence[Position]:
        return self._positions

    @property
    def search_text(self) -> str:
        return self._search_text

    @property
    def position_filter(self) -> PositionFilter:
        return self._filter

    @property
    def sort_option(self) -> SortOption:
        return self._sort

    def subscribe(self, listener: Callable[[list[Position]], None]) -> None:
        """Register a callback invoked with every recomputed view."""
        self._listeners.append(listener)

    def set_positions(self, positions: Sequence[Position]) -> list[Position]:
        self._positions = positions
        return self._recompute()

    def set_search_text(self, search_text: str) -> list[Position]:
        self._search_text = search_text or ""
        return self._recompute()

    def set_filter(self, position_filter: PositionFilter | str) -> list[Position]:
        self._filter = PositionFilter(position_filter)
        return self._recompute()

    def set_sort(self, sort_option: SortOption | str) -> list[Position]:
        self._sort = SortOption(sort_option)
        return self._recompute()

    def refresh(self) -> list[Position]:
        """Recompute after positions changed in place (e.g. price updates)."""
        return self._recompute()

    def _recompute(self) -> list[Position]:
        self._view = filter_and_sort_positions(
            self._positions,
            search_text=self._search_text,
            position_filter=self._filter,
            sort_option=self._sort,
        )
        logger.debug(
            f"Pipeline recomputed: {len(self._view)}/{len(self._positions)} positions "
            f"(search={self._search_text!r}, filter={self._filter.value}, sort={self._sort.value})"
        )
        for listener in self._listeners:
            listener(self.view)
        return self.view
