#!/usr/bin/env python3
"""
BACKTESTING RUNNER
Collect historical candles and replay them through registered strategies

Usage:
    # Collect 60 days of 30-minute KRW-BTC candles (skipped if already stored)
    python run_backtest.py collect --market KRW-BTC --interval 30 --days 60

    # Re-collect from scratch
    python run_backtest.py collect --force

    # Backtest every registered strategy on stored data
    python run_backtest.py backtest

    # Backtest selected strategies with a trade breakdown
    python run_backtest.py backtest --strategy MomentumBreak --strategy MeanReversion --verbose

    # Collect (if needed) then backtest
    python run_backtest.py full --verbose
"""

import argparse
import asyncio
import sys
from typing import List

from core.backtesting_engine import BacktestResult, OpenPositionPolicy
from core.exceptions import BacktesterError
from core.logger import get_logger
from core.settings import settings
from core.strategy_engine import list_strategies
from services.backtesting_service import COMPLETED, BacktestingService
from services.data_service import DataService

logger = get_logger(__name__)


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Collect candle data and backtest trading strategies'
    )

    parser.add_argument(
        'command',
        choices=['collect', 'backtest', 'full'],
        help='collect: fetch candles, backtest: run on stored candles, full: both'
    )

    parser.add_argument(
        '--market',
        type=str,
        default='KRW-BTC',
        help='Market code (default: KRW-BTC)'
    )

    parser.add_argument(
        '--interval',
        type=int,
        default=30,
        help='Candle interval in minutes (default: 30)'
    )

    parser.add_argument(
        '--days',
        type=int,
        default=60,
        help='Days of history to collect (default: 60)'
    )

    parser.add_argument(
        '--capital',
        type=float,
        default=settings.DEFAULT_INITIAL_CAPITAL,
        help=f'Capital per trade (default: {settings.DEFAULT_INITIAL_CAPITAL:,.0f})'
    )

    parser.add_argument(
        '--commission',
        type=float,
        default=settings.DEFAULT_COMMISSION_RATE,
        help=f'Commission per side as a fraction (default: {settings.DEFAULT_COMMISSION_RATE})'
    )

    parser.add_argument(
        '--strategy',
        action='append',
        choices=list_strategies(),
        help='Strategy to run; repeat for several (default: all registered)'
    )

    parser.add_argument(
        '--force',
        action='store_true',
        help='Delete stored data and collect again'
    )

    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Print average, best and worst trade returns'
    )

    parser.add_argument(
        '--force-close',
        action='store_true',
        help='Close a position still open at the end of data instead of discarding it'
    )

    return parser.parse_args(argv)


def print_result(result: BacktestResult, verbose: bool = False):
    """Print one strategy's summary."""
    print(f"\n🔧 Strategy: {result.strategy_name}")
    print(f"Total trades: {result.total_trades}")
    print(f"Win rate: {result.win_rate * 100:.1f}%")
    print(f"Net profit: {result.net_profit:,.0f}")
    print(f"Return: {result.net_profit / result.initial_capital * 100:.2f}%")

    if result.total_trades > 0:
        print(f"Profit factor: {result.profit_factor:.2f}")
        print(f"Max drawdown: {result.max_drawdown * 100:.2f}%")

        if verbose:
            stats = result.performance_metrics
            print(f"Average trade: {stats['avg_profit_percent'] * 100:.2f}%")
            print(f"Best trade: {stats['best_trade_percent'] * 100:.2f}%")
            print(f"Worst trade: {stats['worst_trade_percent'] * 100:.2f}%")


async def collect(args, data_service: DataService) -> bool:
    print(f"\n📥 Collecting {args.market} {args.interval}min candles ({args.days} days)")
    summary = await data_service.collect(args.market, args.interval, args.days, force=args.force)

    if summary["skipped"]:
        print(f"Data already stored ({summary.get('row_count', 0)} candles); use --force to re-collect")
    else:
        print(f"Collected {summary['collected']} candles")
    return data_service.storage.exists(args.market, args.interval)


async def backtest(args, backtesting_service: BacktestingService) -> bool:
    strategy_names: List[str] = args.strategy or list_strategies()
    policy = OpenPositionPolicy.FORCE_CLOSE if args.force_close else OpenPositionPolicy.DISCARD

    print(f"\n📊 {args.market} backtest results")
    print("=" * 50)

    runs = await backtesting_service.run_many(
        strategy_names,
        args.market,
        args.interval,
        initial_capital=args.capital,
        commission_rate=args.commission,
        open_position_policy=policy,
    )

    ok = True
    for run in runs:
        if run.status == COMPLETED:
            print_result(run.result, args.verbose)
        else:
            ok = False
            print(f"\n❌ {run.strategy_name} {run.status}: {run.error or run.message}")
    return ok


async def run(args) -> int:
    data_service = DataService()
    backtesting_service = BacktestingService(data_service.storage)

    try:
        if args.command in ('collect', 'full'):
            if not await collect(args, data_service):
                print("❌ No candle data available")
                return 1
        if args.command in ('backtest', 'full'):
            if not await backtest(args, backtesting_service):
                return 1
    except (BacktesterError, ValueError) as e:
        logger.error(str(e))
        print(f"❌ {e}")
        return 1
    return 0


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)
    sys.exit(asyncio.run(run(args)))


if __name__ == '__main__':
    main()
