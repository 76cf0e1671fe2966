"""
Strategy Engine - strategy contract, indicators and concrete strategies

This module provides:
- Strategy: capability protocol consumed by the backtesting engine
- IndicatorState and streaming indicators for incremental updates
- Execution sinks injected into strategies (paper sink for backtests)
- Concrete strategies and a registry that builds fresh instances per run
"""

from .contracts import Strategy, CandleWindow, IndicatorState
from .indicators import EMA, RSI
from .execution import (
    ExecutionSink,
    PaperExecutionSink,
    NullExecutionSink,
    OrderRequest,
    OrderSide,
    OrderType,
    OrderStatus
)
from .strategies import (
    MomentumBreak,
    MomentumBreakConfig,
    MeanReversion,
    MeanReversionConfig,
    take_profit_stop_loss
)
from .registry import (
    STRATEGY_REGISTRY,
    create_strategy,
    list_strategies,
    get_strategy_parameters,
    register_strategy
)

__all__ = [
    # Contract
    "Strategy",
    "CandleWindow",
    "IndicatorState",

    # Indicators
    "EMA",
    "RSI",

    # Execution
    "ExecutionSink",
    "PaperExecutionSink",
    "NullExecutionSink",
    "OrderRequest",
    "OrderSide",
    "OrderType",
    "OrderStatus",

    # Strategies
    "MomentumBreak",
    "MomentumBreakConfig",
    "MeanReversion",
    "MeanReversionConfig",
    "take_profit_stop_loss",

    # Registry
    "STRATEGY_REGISTRY",
    "create_strategy",
    "list_strategies",
    "get_strategy_parameters",
    "register_strategy"
]
