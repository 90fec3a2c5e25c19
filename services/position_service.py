"""
Position Service - single owner of the position set.

This service layer provides functionality for:
- Opening, editing, closing and deleting positions
- Applying market prices to active positions
- Portfolio metrics and the filtered / sorted position view
- CSV export

Mutations and reads are serialized by one lock. After every committed
mutation the snapshot is re-fetched from storage and the pipeline view
recomputed before the lock is released, so a reader never sees a
half-applied change. Storage failures never raise out of the service: they
are logged, kept in `error_message` and returned as a retryable result.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError

from analytics.pipeline import PositionFilter, PositionPipeline, SortOption
from analytics.portfolio import Portfolio, PortfolioSummary
from db import DatabaseManager, Position, PositionRepository, PositionStateError, finite_number
from services.export_service import export_positions_csv


logger = logging.getLogger(__name__)


EDITABLE_FIELDS = frozenset(
    {"name", "sector", "stop_loss", "price_target", "thesis", "tags", "notes"}
)


@dataclass
class PositionResult:
    """
    Result object for position operations (add/update/close/delete).

    `retryable` is True for storage failures, where repeating the same
    call may succeed; validation failures are not retryable.
    `updated_count` is only set by bulk price updates.
    """

    position: Position | None
    success: bool
    errors: list[str] = field(default_factory=list)
    status_message: str = ""
    retryable: bool = False
    updated_count: int = 0


class PositionService:
    """
    Owns the authoritative in-memory snapshot of positions.

    Usage:
        service = PositionService(init_db())
        result = service.add_position(symbol="AAPL", quantity=10, buy_price=150)
        service.set_filter(PositionFilter.ACTIVE)
        service.filtered_positions
    """

    def __init__(self, db: DatabaseManager):
        self.db = db
        self._lock = threading.RLock()
        self._positions: list[Position] = []
        self.pipeline = PositionPipeline()
        self.error_message: str | None = None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def refresh(self) -> bool:
        """Reload positions from storage. Returns False on a fetch failure."""
        with self._lock:
            return self._reload()

    @property
    def positions(self) -> list[Position]:
        """All positions, newest first."""
        with self._lock:
            return list(self._positions)

    @property
    def active_positions(self) -> list[Position]:
        return [p for p in self.positions if p.is_active]

    @property
    def closed_positions(self) -> list[Position]:
        return [p for p in self.positions if not p.is_active]

    def get_position(self, position_id: str) -> Position | None:
        with self._lock:
            for position in self._positions:
                if position.id == position_id:
                    return position
        return None

    @property
    def portfolio(self) -> Portfolio:
        return Portfolio(self.positions)

    def summary(self) -> PortfolioSummary:
        return self.portfolio.summary()

    @property
    def filtered_positions(self) -> list[Position]:
        with self._lock:
            return self.pipeline.view

    def export_csv(self) -> str:
        return export_positions_csv(self.positions)

    def clear_error(self) -> None:
        self.error_message = None

    # ------------------------------------------------------------------
    # View inputs
    # ------------------------------------------------------------------

    def set_search_text(self, search_text: str) -> list[Position]:
        with self._lock:
            return self.pipeline.set_search_text(search_text)

    def set_filter(self, position_filter: PositionFilter | str) -> list[Position]:
        with self._lock:
            return self.pipeline.set_filter(position_filter)

    def set_sort(self, sort_option: SortOption | str) -> list[Position]:
        with self._lock:
            return self.pipeline.set_sort(sort_option)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_position(
        self,
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
    ) -> PositionResult:
        """
        Open a new active position.

        Example:
            >>> result = service.add_position("AAPL", 100, 150.00, stop_loss=140, price_target=170)
        """
        def create(repo: PositionRepository) -> PositionResult:
            position = repo.create(
                symbol=symbol,
                quantity=quantity,
                buy_price=buy_price,
                name=name,
                sector=sector,
                stop_loss=stop_loss,
                price_target=price_target,
                thesis=thesis,
                tags=tags,
                notes=notes,
            )
            return PositionResult(
                position=position,
                success=True,
                status_message=(
                    f"✅ Opened {position.symbol}: {position.quantity:g} @ ${position.buy_price:.2f}"
                ),
            )

        return self._mutate("add position", create)

    def update_position(self, position_id: str, **changes) -> PositionResult:
        """
        Edit descriptive fields and trade plan of a position.

        Only name, sector, stop_loss, price_target, thesis, tags and notes
        can change; quantity, prices and lifecycle fields cannot.
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            return self._invalid(f"Cannot edit field(s): {', '.join(sorted(unknown))}")
        for key in ("stop_loss", "price_target"):
            if key not in changes:
                continue
            label = key.replace("_", " ").capitalize()
            try:
                changes[key] = finite_number(changes[key], label)
            except ValueError as e:
                return self._invalid(str(e))
            if changes[key] < 0:
                return self._invalid(f"{label} cannot be negative")

        def apply(position: Position) -> None:
            for key, value in changes.items():
                setattr(position, key, value)

        return self._update(position_id, "update position", apply, "✏️ Updated")

    def close_position(self, position_id: str, sell_price: float | None = None) -> PositionResult:
        """
        Close an active position at sell_price (defaults to its current price).

        Closing an already closed position is rejected.
        """
        def apply(position: Position) -> None:
            position.close(position.current_price if sell_price is None else sell_price)

        return self._update(position_id, "close position", apply, "🔒 Closed")

    def delete_position(self, position_id: str) -> PositionResult:
        def delete(repo: PositionRepository) -> PositionResult:
            if not repo.delete(position_id):
                return PositionResult(
                    position=None,
                    success=False,
                    errors=[f"Position not found: {position_id}"],
                    status_message=f"❌ Position not found: {position_id}",
                )
            return PositionResult(
                position=None,
                success=True,
                status_message=f"🗑️ Deleted position {position_id}",
            )

        return self._mutate("delete position", delete)

    def apply_prices(self, prices: dict[str, float]) -> PositionResult:
        """
        Set current price on every active position of each symbol.

        Missing or non-finite prices are skipped with a warning; the other
        symbols are still applied.

        Returns:
            PositionResult whose updated_count is the number of positions
            repriced (0 on storage failure).
        """
        valid: dict[str, float] = {}
        for symbol, price in prices.items():
            try:
                valid[symbol.upper()] = finite_number(price, f"Price for {symbol.upper()}")
            except ValueError as e:
                logger.warning(f"⚠️ Skipping price: {e}")

        if not valid:
            return PositionResult(position=None, success=True, status_message="No prices to apply")

        def apply(repo: PositionRepository) -> PositionResult:
            updated = 0
            for position in repo.get_active():
                price = valid.get(position.symbol)
                if price is None:
                    continue
                position.update_current_price(price)
                updated += 1
            return PositionResult(
                position=None,
                success=True,
                status_message=f"📈 Updated prices on {updated} position(s)",
                updated_count=updated,
            )

        return self._mutate("update prices", apply)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _update(
        self,
        position_id: str,
        action: str,
        mutation: Callable[[Position], None],
        verb: str,
    ) -> PositionResult:
        def run(repo: PositionRepository) -> PositionResult:
            position = repo.update(position_id, mutation)
            if position is None:
                return PositionResult(
                    position=None,
                    success=False,
                    errors=[f"Position not found: {position_id}"],
                    status_message=f"❌ Position not found: {position_id}",
                )
            message = f"{verb} {position.symbol}"
            if not position.is_active:
                message += f" @ ${position.sell_price:.2f} (P&L ${position.realized_pnl:+,.2f})"
            return PositionResult(position=position, success=True, status_message=message)

        return self._mutate(action, run)

    def _mutate(
        self,
        action: str,
        operation: Callable[[PositionRepository], PositionResult],
    ) -> PositionResult:
        with self._lock:
            try:
                with self.db.session() as session:
                    result = operation(PositionRepository(session))
            except (PositionStateError, ValueError) as e:
                logger.warning(f"Rejected {action}: {e}")
                return self._invalid(str(e))
            except SQLAlchemyError as e:
                logger.error(f"❌ Failed to {action}: {e}")
                self.error_message = f"Failed to save: {e}"
                return PositionResult(
                    position=None,
                    success=False,
                    errors=[str(e)],
                    status_message=f"❌ Failed to {action}: {e}",
                    retryable=True,
                )

            if result.success:
                logger.info(result.status_message)
                self._reload()
            return result

    def _reload(self) -> bool:
        try:
            with self.db.session() as session:
                positions = list(PositionRepository(session).get_all())
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to fetch positions: {e}")
            self.error_message = f"Failed to fetch positions: {e}"
            return False

        self._positions = positions
        self.pipeline.set_positions(positions)
        return True

    @staticmethod
    def _invalid(message: str) -> PositionResult:
        return PositionResult(
            position=None,
            success=False,
            errors=[message],
            status_message=f"❌ {message}",
        )


def print_position_result(result: PositionResult) -> None:
    """
    Print a formatted position result to console.

    Helper function for CLI usage to display results in a user-friendly way.
    """
    print(result.status_message)

    if result.success and result.position:
        position = result.position
        print(f"   ID: {position.id}")
        if position.is_active and position.stop_loss:
            print(
                f"   Risk: ${position.risk_amount:,.2f} | Reward: ${position.potential_reward:,.2f}"
                f" | R:R {position.risk_reward_ratio:.2f}"
            )
    if result.retryable:
        print("   Storage error; try again.")
