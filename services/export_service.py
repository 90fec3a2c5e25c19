"""
Export Service - CSV export of the position journal.

One row per position in the order given, numbers unformatted, P&L by the
active / closed rule (unrealized while active, realized once closed).
"""

import csv
import io
from pathlib import Path
from typing import Sequence

from db.models import Position


CSV_HEADER = [
    "Symbol",
    "Name",
    "Quantity",
    "Buy Price",
    "Current Price",
    "P&L",
    "P&L %",
    "Status",
    "Date Added",
]


def position_to_row(position: Position) -> list[str]:
    return [
        position.symbol,
        position.name,
        str(position.quantity),
        str(position.buy_price),
        str(position.current_price),
        str(position.pnl),
        str(position.pnl_percent),
        position.status,
        position.date_added.isoformat() if position.date_added else "",
    ]


def export_positions_csv(positions: Sequence[Position]) -> str:
    """Render positions as CSV text (header included)."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for position in positions:
        writer.writerow(position_to_row(position))
    return buffer.getvalue()


def write_positions_csv(positions: Sequence[Position], out_file: str | Path) -> Path:
    """Write the CSV export to a file, creating parent directories."""
    out_path = Path(out_file)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(export_positions_csv(positions), encoding="utf-8")
    return out_path
