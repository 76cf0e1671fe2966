# core/backtesting_engine/__init__.py
"""
Backtesting Engine - Candle-by-candle replay of stored market data through a strategy

This engine is kept separate from the Strategy Engine: strategies decide,
the backtester walks the data, books trades and reports statistics.
"""
from .engine import BacktestEngine, BacktestResult, BacktestConfig, OpenPositionPolicy, run_backtest
from .position import Trade, EquityState
from .metrics import PerformanceMetrics

__all__ = [
    "BacktestEngine",
    "BacktestResult",
    "BacktestConfig",
    "OpenPositionPolicy",
    "run_backtest",
    "Trade",
    "EquityState",
    "PerformanceMetrics"
]
