"""
Repository pattern for data access operations.

Provides a clean abstraction layer between business logic and database operations.
Supports future extensions (caching, different backends, etc.).
"""

from typing import Callable, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models import Position


class PositionRepository:
    """Repository for Position storage operations."""

    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, position_id: str) -> Position | None:
        """Get position by ID."""
        return self.session.get(Position, position_id)

    def get_all(self) -> Sequence[Position]:
        """Get all positions, newest first."""
        stmt = select(Position).order_by(Position.date_added.desc())
        return self.session.scalars(stmt).all()

    def get_active(self) -> Sequence[Position]:
        """Get active positions, newest first."""
        stmt = (
            select(Position)
            .where(Position.is_active.is_(True))
            .order_by(Position.date_added.desc())
        )
        return self.session.scalars(stmt).all()

    def create(self, **fields) -> Position:
        """
        Validate fields and persist a new active position.

        Raises:
            ValueError: If the fields fail Position.open validation.
        """
        position = Position.open(**fields)
        self.session.add(position)
        self.session.flush()
        return position

    def update(
        self,
        position_id: str,
        mutation: Callable[[Position], None],
    ) -> Position | None:
        """
        Apply mutation to the managed position and flush.

        Returns:
            The updated position, or None if it does not exist.
        """
        position = self.get_by_id(position_id)
        if position is None:
            return None
        mutation(position)
        self.session.flush()
        return position

    def delete(self, position_id: str) -> bool:
        """Delete a position. Returns True if a row was removed."""
        position = self.get_by_id(position_id)
        if position is None:
            return False
        self.session.delete(position)
        self.session.flush()
        return True
