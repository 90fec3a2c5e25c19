"""
Database package initialization.

Exports commonly used components for convenient imports:
    from db import DatabaseManager, Position, PositionRepository, etc.
"""

from db.models import (
    Base,
    Position,
    PositionStateError,
    finite_number,
)
from db.session import (
    DatabaseManager,
    init_db,
)
from db.repositories import (
    PositionRepository,
)

__all__ = [
    # Models
    "Base",
    "Position",
    "PositionStateError",
    "finite_number",
    # Session management
    "DatabaseManager",
    "init_db",
    # Repositories
    "PositionRepository",
]
