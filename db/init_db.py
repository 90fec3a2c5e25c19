"""
Database initialization script.

Creates all tables and optionally seeds with sample data.
Safe to run multiple times (idempotent).
"""

import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from db.session import DatabaseManager, init_db
from services.position_service import PositionService


SAMPLE_POSITIONS = [
    {
        "symbol": "AAPL",
        "name": "Apple Inc.",
        "quantity": 100,
        "buy_price": 150.0,
        "stop_loss": 140.0,
        "price_target": 170.0,
        "sector": "Technology",
        "thesis": (
            "Long-term growth potential with strong iPhone sales and expanding services revenue. "
            "Apple's ecosystem creates high customer retention and pricing power."
        ),
        "tags": "Growth, Large Cap, Dividend",
        "notes": "Added on earnings dip, expecting recovery",
    },
    {
        "symbol": "MSFT",
        "name": "Microsoft Corporation",
        "quantity": 30,
        "buy_price": 375.0,
        "stop_loss": 350.0,
        "price_target": 420.0,
        "sector": "Technology",
        "thesis": "Cloud and AI tailwinds.",
        "tags": "Growth, Large Cap",
    },
]


def create_sample_data(db: DatabaseManager) -> int:
    """
    Create sample positions for testing/demo purposes.

    Skips symbols that already have a position. Returns the number created.
    """
    service = PositionService(db)
    service.refresh()
    existing = {p.symbol for p in service.positions}

    created = 0
    for fields in SAMPLE_POSITIONS:
        if fields["symbol"] in existing:
            continue
        result = service.add_position(**fields)
        if result.success:
            created += 1
            print(f"  Added position: {fields['symbol']} {fields['quantity']} @ ${fields['buy_price']}")
    return created


def main():
    """Initialize database and optionally create sample data."""
    import argparse

    parser = argparse.ArgumentParser(description="Initialize journal database")
    parser.add_argument(
        "--sample-data",
        action="store_true",
        help="Create sample data for testing",
    )
    args = parser.parse_args()

    # Initialize database with tables
    db = init_db()
    print("✅ Database initialized")
    print(f"   Location: {db.db_url}")

    if args.sample_data:
        print("\n📦 Creating sample data...")
        create_sample_data(db)
        print("✅ Sample data created")


if __name__ == "__main__":
    main()
