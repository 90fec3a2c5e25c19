import csv
import io

from services.export_service import CSV_HEADER, export_positions_csv, write_positions_csv


def test_rows_follow_active_closed_pnl_rule(position_factory):
    active = position_factory("AAPL", name="Apple Inc.", quantity=10, buy_price=100, current_price=110)
    closed = position_factory("XOM", name="Exxon Mobil", quantity=5, buy_price=50, sell_price=40)

    text = export_positions_csv([active, closed])

    assert text.splitlines() == [
        "Symbol,Name,Quantity,Buy Price,Current Price,P&L,P&L %,Status,Date Added",
        "AAPL,Apple Inc.,10.0,100.0,110.0,100.0,10.0,Active,2024-06-01T00:00:00",
        "XOM,Exxon Mobil,5.0,50.0,50.0,-50.0,-20.0,Closed,2024-06-01T00:00:00",
    ]


def test_fields_with_commas_are_quoted(position_factory):
    position = position_factory("BRK", name='Berkshire "B", Hathaway')

    rows = list(csv.reader(io.StringIO(export_positions_csv([position]))))

    assert rows[0] == CSV_HEADER
    assert rows[1][1] == 'Berkshire "B", Hathaway'


def test_empty_export_has_header_only():
    assert export_positions_csv([]) == ",".join(CSV_HEADER) + "\n"


def test_write_creates_parent_directories(tmp_path, position_factory):
    out = write_positions_csv([position_factory()], tmp_path / "exports" / "positions.csv")

    assert out.exists()
    assert out.read_text(encoding="utf-8").startswith("Symbol,")
