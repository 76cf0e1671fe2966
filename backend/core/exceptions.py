# core/exceptions.py
"""
Error taxonomy shared by the data engine and the backtesting engine.

Every error here is fatal to the run that raised it. Nothing in core retries;
callers (services, API, CLI) decide how to report.
"""
from typing import Optional


class BacktesterError(Exception):
    """Base class for all core errors"""


class NotFoundError(BacktesterError):
    """No stored candles for a (market, interval) key"""

    def __init__(self, market: str, interval: int, path: Optional[str] = None):
        self.market = market
        self.interval = interval
        self.path = path
        message = f"No candle data stored for {market} ({interval}min)"
        if path:
            message += f" at {path}"
        super().__init__(message)


class CorruptDataError(BacktesterError):
    """Stored candle records cannot be parsed"""


class InvalidCandleError(BacktesterError):
    """A candle violates the OHLCV invariants (e.g. high < low)"""


class InsufficientDataError(BacktesterError):
    """Fewer candles than the lookback window requires"""

    def __init__(self, required: int, available: int, market: Optional[str] = None):
        self.required = required
        self.available = available
        self.market = market
        prefix = f"{market}: " if market else ""
        super().__init__(
            f"{prefix}insufficient candle data: {required} candles required, {available} available"
        )


class StrategyError(BacktesterError):
    """A strategy call raised during the walk"""

    def __init__(self, strategy_name: str, operation: str, step: int, timestamp: int, original: BaseException):
        self.strategy_name = strategy_name
        self.operation = operation
        self.step = step
        self.timestamp = timestamp
        self.original = original
        super().__init__(
            f"Strategy '{strategy_name}' failed in {operation} at candle {step} "
            f"(timestamp {timestamp}): {original}"
        )


class BacktestCancelledError(BacktesterError):
    """The run was cancelled between candles"""


class ExchangeError(BacktesterError):
    """The exchange client could not return candles"""
