# core/strategy_engine/contracts.py
"""
Strategy contract consumed by the backtesting engine.

Time semantics (explicit to avoid lookahead bugs):
- A strategy sees a trailing window of candles; the last element is the
  current candle and nothing after it exists as far as the strategy knows.
- Windows are tuples. Strategies must not mutate candles (they are frozen).
- Strategy calls are awaited one at a time, in candle order, exactly once per
  step. A strategy instance belongs to a single run.
"""
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, Tuple, runtime_checkable

from core.data_engine.candles import Candle

CandleWindow = Tuple[Candle, ...]


@runtime_checkable
class Strategy(Protocol):
    """Capability interface every strategy variant implements"""

    name: str

    async def should_enter(self, window: CandleWindow) -> bool:
        ...

    async def should_exit(self, window: CandleWindow, entry_price: float) -> bool:
        ...

    async def execute(self, market: str, volume: float, window: CandleWindow) -> None:
        ...


@dataclass
class IndicatorState:
    """
    Incremental-update bookkeeping owned by one strategy instance.

    Tracks the newest candle already folded into the indicators so every
    candle is processed once, in order, even though consecutive windows
    overlap almost entirely.
    """
    last_processed_timestamp: Optional[int] = None

    def pending(self, window: Sequence[Candle]) -> List[Candle]:
        """Candles of `window` not yet fed to the indicators"""
        if self.last_processed_timestamp is None:
            return list(window)
        return [c for c in window if c.timestamp > self.last_processed_timestamp]

    def mark_processed(self, candle: Candle) -> None:
        self.last_processed_timestamp = candle.timestamp
