"""
Services layer for business logic orchestration.

Provides reusable services that can be consumed by the CLI, jobs, etc.
"""

from services.position_service import (
    PositionResult,
    PositionService,
    print_position_result,
)
from services.export_service import (
    CSV_HEADER,
    export_positions_csv,
    write_positions_csv,
)
from services.notification_service import (
    InMemoryNotifier,
    Notifier,
    TelegramNotifier,
    build_notifier,
)

__all__ = [
    # Position service
    "PositionResult",
    "PositionService",
    "print_position_result",
    # Export service
    "CSV_HEADER",
    "export_positions_csv",
    "write_positions_csv",
    # Notification service
    "InMemoryNotifier",
    "Notifier",
    "TelegramNotifier",
    "build_notifier",
]
