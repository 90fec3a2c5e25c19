"""
Stock Journal - Main Entry Point.

A local-first trade journal: track positions with a trade plan (stop loss,
price target, thesis), review portfolio metrics, refresh prices and watch
one-shot price alerts.

Usage:
    # Initialize database (optionally with sample positions)
    python main.py init --sample-data

    # Open / close / delete positions
    python main.py add AAPL --quantity 100 --price 150 --stop-loss 140 --target 170 --tags "Growth, Large Cap"
    python main.py close 3f2a --price 172.50
    python main.py delete 3f2a

    # Review
    python main.py list --search tech --filter active --sort performance
    python main.py summary
    python main.py export --out exports/positions.csv

    # Market data
    python main.py refresh
    python main.py quote NVDA
    python main.py history NVDA --timeframe 1M
    python main.py search apple

    # Position sizing
    python main.py size --portfolio-value 50000 --risk-percent 1 --buy-price 150 --stop-loss 140

    # Price alerts (polls until every alert fired or --ticks reached)
    python main.py watch --above AAPL:200 --below TSLA:180 --change NVDA:-5 --interval 60
"""

import argparse
import asyncio
import logging
import sys

from alerts import AlertEngine, AlertType
from analytics.formatting import (
    format_currency,
    format_percentage,
    format_profit_factor,
    format_signed_currency,
)
from analytics.pipeline import PositionFilter, SortOption
from analytics.risk import calculate_position_size
from config import AlertConfig, config
from data import ChartTimeframe, FallbackQuoteProvider, YahooQuoteProvider
from db import Position, init_db
from jobs.price_refresh import PriceRefreshJob
from services import (
    PositionService,
    build_notifier,
    print_position_result,
    write_positions_csv,
)


def _service(args) -> PositionService:
    service = PositionService(init_db(args.db_url))
    if not service.refresh():
        print(f"❌ {service.error_message}")
    return service


def _quote_provider() -> FallbackQuoteProvider:
    return FallbackQuoteProvider(YahooQuoteProvider())


def _resolve_position(service: PositionService, ref: str) -> Position | None:
    """Find a position by full id or unique id prefix."""
    exact = service.get_position(ref)
    if exact is not None:
        return exact
    matches = [p for p in service.positions if p.id.startswith(ref)]
    if len(matches) == 1:
        return matches[0]
    if matches:
        print(f"⚠️ Ambiguous id prefix {ref!r} matches {len(matches)} positions")
    else:
        print(f"❌ Position not found: {ref}")
    return None


def cmd_init(args):
    """Initialize the database."""
    db = init_db(args.db_url, if_drop=args.if_drop)
    if args.if_drop:
        print("⚠️ Existing tables dropped.")
    print("✅ Database initialized successfully")
    print(f"   Location: {db.db_url}")

    if args.sample_data:
        from db.init_db import create_sample_data

        created = create_sample_data(db)
        print(f"📦 Created {created} sample position(s)")


def cmd_add(args):
    """Open a new position."""
    service = _service(args)
    result = service.add_position(
        symbol=args.symbol,
        quantity=args.quantity,
        buy_price=args.price,
        name=args.name or "",
        sector=args.sector or "",
        stop_loss=args.stop_loss,
        price_target=args.target,
        thesis=args.thesis or "",
        tags=args.tags or "",
        notes=args.notes or "",
    )
    print_position_result(result)
    return 0 if result.success else 1


def cmd_close(args):
    """Close an active position."""
    service = _service(args)
    position = _resolve_position(service, args.id)
    if position is None:
        return 1
    result = service.close_position(position.id, sell_price=args.price)
    print_position_result(result)
    return 0 if result.success else 1


def cmd_delete(args):
    """Delete a position (active or closed)."""
    service = _service(args)
    position = _resolve_position(service, args.id)
    if position is None:
        return 1
    result = service.delete_position(position.id)
    print_position_result(result)
    return 0 if result.success else 1


def cmd_list(args):
    """List positions through the search / filter / sort pipeline."""
    service = _service(args)
    service.set_search_text(args.search or "")
    service.set_filter(args.filter)
    positions = service.set_sort(args.sort)

    if not positions:
        print("No positions found.")
        return

    position_filter = PositionFilter(args.filter)
    print(f"\n📋 Positions ({position_filter.display_name}, by {SortOption(args.sort).display_name})")
    print("-" * 92)
    print(
        f"{'ID':<9} {'Symbol':<7} {'Status':<7} {'Qty':>9} {'Buy':>10} {'Current':>10} "
        f"{'P&L':>13} {'P&L %':>9}  {'Sector':<12}"
    )
    print("-" * 92)

    for position in positions:
        price = position.current_price if position.is_active else position.sell_price
        print(
            f"{position.id[:8]:<9} {position.symbol:<7} {position.status:<7} {position.quantity:>9.2f} "
            f"{format_currency(position.buy_price):>10} {format_currency(price):>10} "
            f"{format_signed_currency(position.pnl):>13} {format_percentage(position.pnl_percent):>9}  "
            f"{(position.sector or '-')[:12]:<12}"
        )


def cmd_summary(args):
    """Show portfolio summary."""
    service = _service(args)
    portfolio = service.portfolio
    summary = portfolio.summary()

    print("\n" + "=" * 50)
    print("📊 PORTFOLIO SUMMARY")
    print("=" * 50)

    print(f"\n💰 Value")
    print(f"   Market Value:    {format_currency(summary.total_value):>14}")
    print(f"   Invested:        {format_currency(summary.total_investment):>14}")

    print(f"\n📈 P&L")
    print(f"   Unrealized:      {format_signed_currency(summary.total_unrealized_pnl):>14}")
    print(f"   Realized:        {format_signed_currency(summary.total_realized_pnl):>14}")
    print(f"   Total P&L:       {format_signed_currency(summary.total_pnl):>14}")
    print(f"   Total Return:    {format_percentage(summary.total_pnl_percent):>14}")

    print(f"\n🎯 Closed Trades ({summary.closed_count})")
    print(f"   Win Rate:        {format_percentage(summary.win_rate, signed=False):>14}")
    print(f"   Avg Win:         {format_signed_currency(summary.average_win):>14}")
    print(f"   Avg Loss:        {format_signed_currency(summary.average_loss):>14}")
    print(f"   Profit Factor:   {format_profit_factor(summary.profit_factor):>14}")

    print(f"\n⚠️ Risk")
    print(f"   At Stop Loss:    {format_currency(summary.portfolio_risk):>14}")
    print(f"   % of Value:      {format_percentage(summary.portfolio_risk_percent, signed=False):>14}")

    if summary.sector_allocation_percent:
        print(f"\n🏷️ Sectors")
        for sector, percent in sorted(
            summary.sector_allocation_percent.items(), key=lambda item: item[1], reverse=True
        ):
            print(f"   {(sector or 'Unassigned'):<16} {format_percentage(percent, signed=False):>14}")

    if portfolio.active_positions:
        print(f"\n📍 Active Positions ({summary.active_count})")
        best = portfolio.best_performer
        worst = portfolio.worst_performer
        largest = portfolio.largest_position
        print(f"   Best:    {best.symbol} {format_percentage(best.unrealized_pnl_percent)}")
        print(f"   Worst:   {worst.symbol} {format_percentage(worst.unrealized_pnl_percent)}")
        print(f"   Largest: {largest.symbol} {format_currency(largest.current_value)}")
        print(f"   Average Return: {format_percentage(portfolio.average_return)}")

    print("\n" + "=" * 50)


def cmd_export(args):
    """Export positions to CSV."""
    service = _service(args)
    if args.out:
        out_path = write_positions_csv(service.positions, args.out)
        print(f"✅ Exported {len(service.positions)} position(s) to {out_path}")
    else:
        sys.stdout.write(service.export_csv())


def cmd_refresh(args):
    """Refresh current prices of active positions."""
    service = _service(args)
    job = PriceRefreshJob(service, _quote_provider(), allow_demo=args.allow_demo)
    result = asyncio.run(job.run())

    print(f"📈 Priced {result.priced_symbols}/{result.total_symbols} symbol(s), "
          f"updated {result.updated_positions} position(s)")
    for error in result.errors:
        print(f"   ⚠️ {error}")
    return 0 if result.success else 1


def cmd_quote(args):
    """Show a current quote."""
    quote = asyncio.run(_quote_provider().get_quote(args.symbol))
    source = "" if quote.is_live else f" [{quote.source.value}]"
    print(f"{quote.symbol} {quote.name}{source}")
    print(f"   Price:  {format_currency(quote.price)}")
    print(f"   Change: {format_signed_currency(quote.change)} ({format_percentage(quote.change_percent)})")
    if quote.sector:
        print(f"   Sector: {quote.sector}")


def cmd_history(args):
    """Show OHLCV history."""
    timeframe = ChartTimeframe(args.timeframe)
    points = asyncio.run(_quote_provider().get_history(args.symbol, timeframe))
    if not points:
        print("No history available.")
        return

    print(f"\n📉 {args.symbol.upper()} ({timeframe.value}, {len(points)} bars)")
    print(f"{'Date':<17} {'Open':>10} {'High':>10} {'Low':>10} {'Close':>10} {'Volume':>12}")
    for point in points[-args.limit:]:
        date_format = "%Y-%m-%d %H:%M" if timeframe.is_intraday else "%Y-%m-%d"
        print(
            f"{point.date.strftime(date_format):<17} {point.open:>10.2f} {point.high:>10.2f} "
            f"{point.low:>10.2f} {point.close:>10.2f} {point.volume:>12,}"
        )


def cmd_search(args):
    """Search symbols by ticker or company name."""
    matches = asyncio.run(_quote_provider().search(args.query))
    if not matches:
        print("No matches.")
        return
    for match in matches:
        print(f"   {match.symbol:<8} {match.name[:40]:<40} {match.sector}")


def cmd_size(args):
    """Fixed-fractional position sizing."""
    calculation = calculate_position_size(
        portfolio_value=args.portfolio_value,
        risk_percent=args.risk_percent,
        buy_price=args.buy_price,
        stop_loss=args.stop_loss,
    )
    if calculation is None:
        print("❌ Invalid inputs: values must be positive and stop loss must differ from buy price")
        return 1

    print("\n🧮 Position Size")
    print(f"   Shares:          {calculation.recommended_shares:>14,.2f}")
    print(f"   Investment:      {format_currency(calculation.total_investment):>14}")
    print(f"   Max Risk:        {format_currency(calculation.max_risk_amount):>14}")
    print(f"   Risk / Share:    {format_currency(calculation.risk_per_share):>14}")
    print(f"   Allocation:      {format_percentage(calculation.portfolio_allocation, signed=False):>14}")


def _parse_alert(definition: str) -> tuple[str, float]:
    symbol, sep, value = definition.partition(":")
    if not sep or not symbol:
        raise argparse.ArgumentTypeError(f"Expected SYMBOL:VALUE, got {definition!r}")
    try:
        return symbol, float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid number in {definition!r}")


async def _watch(args) -> int:
    alert_config = AlertConfig(
        poll_interval_seconds=args.interval,
        quote_timeout_seconds=config.alerts.quote_timeout_seconds,
        confirmation_prefix=config.alerts.confirmation_prefix,
    )
    engine = AlertEngine(_quote_provider(), build_notifier(), alert_config)
    # Ticks are driven here so --ticks can bound the run
    await engine.start(monitor=False)
    try:
        definitions = (
            [(AlertType.PRICE_ABOVE, d) for d in args.above]
            + [(AlertType.PRICE_BELOW, d) for d in args.below]
            + [(AlertType.PERCENTAGE_CHANGE, d) for d in args.change]
        )
        for alert_type, (symbol, value) in definitions:
            try:
                if alert_type is AlertType.PERCENTAGE_CHANGE:
                    alert = await engine.add_alert(symbol, alert_type, change_percent=value)
                else:
                    alert = await engine.add_alert(symbol, alert_type, target_price=value)
            except ValueError as e:
                print(f"❌ {symbol}: {e}")
                continue
            print(f"🔔 Watching {alert.symbol} {alert.condition_text}")

        ticks = 0
        while engine.armed_alerts:
            for alert_id in await engine.tick():
                alert = engine.get_alert(alert_id)
                print(f"🔔 {alert.symbol} hit {format_currency(alert.triggered_price)}: {alert.message}")
            ticks += 1
            if args.ticks and ticks >= args.ticks:
                break
            if engine.armed_alerts:
                await asyncio.sleep(alert_config.poll_interval_seconds)
    finally:
        await engine.stop()

    fired = [a for a in engine.alerts if a.triggered_price is not None]
    print(f"✅ {len(fired)}/{len(engine.alerts)} alert(s) fired")
    return 0


def cmd_watch(args):
    """Run the price alert monitor."""
    if not (args.above or args.below or args.change):
        print("⚠️ No alerts given; use --above, --below or --change")
        return 1
    try:
        return asyncio.run(_watch(args))
    except KeyboardInterrupt:
        print("\n⏹️ Stopped")
        return 0


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Stock Journal",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--db-url", help="Custom database URL", default=None)
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # init command
    init = subparsers.add_parser("init", help="Initialize database")
    init.add_argument("--if-drop", action="store_true", help="Drop existing tables before creating")
    init.add_argument("--sample-data", action="store_true", help="Create sample positions")

    # add command
    add = subparsers.add_parser("add", help="Open a position")
    add.add_argument("symbol", help="Stock ticker symbol")
    add.add_argument("--quantity", type=float, required=True, help="Number of shares")
    add.add_argument("--price", type=float, required=True, help="Buy price per share")
    add.add_argument("--stop-loss", type=float, default=0.0, help="Stop loss price")
    add.add_argument("--target", type=float, default=0.0, help="Price target")
    add.add_argument("--name", help="Company name")
    add.add_argument("--sector", help="Sector")
    add.add_argument("--thesis", help="Investment thesis")
    add.add_argument("--tags", help="Comma-separated tags")
    add.add_argument("--notes", help="Notes")

    # close command
    close = subparsers.add_parser("close", help="Close an active position")
    close.add_argument("id", help="Position id (or unique prefix)")
    close.add_argument("--price", type=float, help="Sell price (default: current price)")

    # delete command
    delete = subparsers.add_parser("delete", help="Delete a position")
    delete.add_argument("id", help="Position id (or unique prefix)")

    # list command
    list_ = subparsers.add_parser("list", help="List positions")
    list_.add_argument("--search", help="Match symbol, name or sector")
    list_.add_argument(
        "--filter", choices=[f.value for f in PositionFilter], default=PositionFilter.ALL.value
    )
    list_.add_argument(
        "--sort", choices=[s.value for s in SortOption], default=SortOption.DATE_ADDED.value
    )

    # summary command
    subparsers.add_parser("summary", help="Show portfolio summary")

    # export command
    export = subparsers.add_parser("export", help="Export positions to CSV")
    export.add_argument("--out", help="Output file (default: stdout)")

    # refresh command
    refresh = subparsers.add_parser("refresh", help="Refresh prices of active positions")
    refresh.add_argument("--allow-demo", action="store_true", help="Apply demo prices when live data is unavailable")

    # quote command
    quote = subparsers.add_parser("quote", help="Show a current quote")
    quote.add_argument("symbol", help="Stock ticker symbol")

    # history command
    history = subparsers.add_parser("history", help="Show price history")
    history.add_argument("symbol", help="Stock ticker symbol")
    history.add_argument(
        "--timeframe", choices=[t.value for t in ChartTimeframe], default=ChartTimeframe.ONE_MONTH.value
    )
    history.add_argument("--limit", type=int, default=20, help="Max bars to show")

    # search command
    search = subparsers.add_parser("search", help="Search symbols")
    search.add_argument("query", help="Ticker or company name")

    # size command
    size = subparsers.add_parser("size", help="Position size calculator")
    size.add_argument("--portfolio-value", type=float, required=True)
    size.add_argument("--risk-percent", type=float, required=True)
    size.add_argument("--buy-price", type=float, required=True)
    size.add_argument("--stop-loss", type=float, required=True)

    # watch command
    watch = subparsers.add_parser("watch", help="Monitor price alerts")
    watch.add_argument("--above", type=_parse_alert, action="append", default=[], metavar="SYMBOL:PRICE")
    watch.add_argument("--below", type=_parse_alert, action="append", default=[], metavar="SYMBOL:PRICE")
    watch.add_argument("--change", type=_parse_alert, action="append", default=[], metavar="SYMBOL:PERCENT")
    watch.add_argument("--interval", type=float, default=config.alerts.poll_interval_seconds, help="Seconds between polls")
    watch.add_argument("--ticks", type=int, default=0, help="Stop after N polls (0 = until all fired)")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "init": cmd_init,
        "add": cmd_add,
        "close": cmd_close,
        "delete": cmd_delete,
        "list": cmd_list,
        "summary": cmd_summary,
        "export": cmd_export,
        "refresh": cmd_refresh,
        "quote": cmd_quote,
        "history": cmd_history,
        "search": cmd_search,
        "size": cmd_size,
        "watch": cmd_watch,
    }

    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main() or 0)
