# core/strategy_engine/strategies.py
"""
Concrete strategy variants.

Each class implements the Strategy protocol directly and composes its own
IndicatorState, indicators and injected ExecutionSink. Nothing is inherited.
"""
from dataclasses import dataclass
from typing import Tuple

from core.logger import get_logger
from .contracts import CandleWindow, IndicatorState
from .execution import ExecutionSink, OrderRequest, OrderSide, OrderType
from .indicators import EMA, RSI

logger = get_logger(__name__)


def take_profit_stop_loss(
    window: CandleWindow,
    entry_price: float,
    take_profit: float = 0.06,
    stop_loss: float = 0.03
) -> bool:
    """Exit once the current close is take_profit above or stop_loss below entry (fractions)"""
    current_price = window[-1].close
    return current_price >= entry_price * (1 + take_profit) or current_price <= entry_price * (1 - stop_loss)


def target_levels(entry_price: float, take_profit: float, stop_loss: float) -> Tuple[float, float]:
    return entry_price * (1 + take_profit), entry_price * (1 - stop_loss)


async def place_bracket_orders(
    sink: ExecutionSink,
    market: str,
    volume: float,
    entry_price: float,
    take_profit: float,
    stop_loss: float
) -> None:
    """Market buy followed by take-profit and stop-loss limit sells"""
    target_price, stop_price = target_levels(entry_price, take_profit, stop_loss)
    await sink.place_order(OrderRequest(market, OrderSide.BID, OrderType.MARKET, volume))
    await sink.place_order(OrderRequest(market, OrderSide.ASK, OrderType.LIMIT, volume, price=target_price))
    await sink.place_order(OrderRequest(market, OrderSide.ASK, OrderType.LIMIT, volume, price=stop_price))


@dataclass
class MomentumBreakConfig:
    short_ema_period: int = 3
    long_ema_period: int = 10
    min_price_change: float = 0.05  # percent
    profit_factor: float = 1.5      # take profit, percent
    stop_factor: float = 1.0        # stop loss, percent


class MomentumBreak:
    """Buy when the short EMA is above the long EMA on a rising, traded candle"""

    name = "MomentumBreak"

    def __init__(self, sink: ExecutionSink, config: MomentumBreakConfig = None):
        self.sink = sink
        self.config = config or MomentumBreakConfig()
        self.state = IndicatorState()
        self.short_ema = EMA(self.config.short_ema_period)
        self.long_ema = EMA(self.config.long_ema_period)

    def _update_indicators(self, window: CandleWindow) -> None:
        for candle in self.state.pending(window):
            self.short_ema.update(candle.close)
            self.long_ema.update(candle.close)
            self.state.mark_processed(candle)

    async def should_enter(self, window: CandleWindow) -> bool:
        required = max(self.config.short_ema_period, self.config.long_ema_period) + 2
        if len(window) < required:
            return False

        self._update_indicators(window)
        if self.short_ema.result is None or self.long_ema.result is None:
            return False

        golden_cross = self.short_ema.result > self.long_ema.result

        current, previous = window[-1], window[-2]
        price_change = (current.close - previous.close) / previous.close * 100
        has_min_price_change = price_change >= self.config.min_price_change

        has_volume = current.volume > 0

        return golden_cross and has_min_price_change and has_volume

    async def should_exit(self, window: CandleWindow, entry_price: float) -> bool:
        self._update_indicators(window)
        return take_profit_stop_loss(
            window, entry_price,
            take_profit=self.config.profit_factor / 100,
            stop_loss=self.config.stop_factor / 100
        )

    async def execute(self, market: str, volume: float, window: CandleWindow) -> None:
        entry_price = window[-1].close
        logger.debug(f"{self.name}: {market} buy signal at {entry_price}")
        await place_bracket_orders(
            self.sink, market, volume, entry_price,
            self.config.profit_factor / 100, self.config.stop_factor / 100
        )


@dataclass
class MeanReversionConfig:
    ema_period: int = 20
    deviation_threshold: float = 1.0  # percent below the EMA
    rsi_period: int = 14
    rsi_oversold: float = 50.0
    profit_factor: float = 1.5        # take profit, percent
    stop_factor: float = 2.0          # stop loss, percent


class MeanReversion:
    """Buy a falling candle that closes well below its EMA while RSI is oversold"""

    name = "MeanReversion"

    def __init__(self, sink: ExecutionSink, config: MeanReversionConfig = None):
        self.sink = sink
        self.config = config or MeanReversionConfig()
        self.state = IndicatorState()
        self.ema = EMA(self.config.ema_period)
        self.rsi = RSI(self.config.rsi_period)

    def _update_indicators(self, window: CandleWindow) -> None:
        for candle in self.state.pending(window):
            self.ema.update(candle.close)
            self.rsi.update(candle.close)
            self.state.mark_processed(candle)

    async def should_enter(self, window: CandleWindow) -> bool:
        required = max(self.config.ema_period, self.config.rsi_period) + 5
        if len(window) < required:
            return False

        self._update_indicators(window)
        if self.ema.result is None or self.rsi.result is None:
            return False

        current, previous = window[-1], window[-2]

        deviation = (current.close - self.ema.result) / self.ema.result * 100
        is_oversold = deviation <= -self.config.deviation_threshold
        rsi_oversold = self.rsi.result <= self.config.rsi_oversold
        has_volume = current.volume > 0
        is_falling = current.close < previous.close

        return is_oversold and rsi_oversold and has_volume and is_falling

    async def should_exit(self, window: CandleWindow, entry_price: float) -> bool:
        self._update_indicators(window)
        return take_profit_stop_loss(
            window, entry_price,
            take_profit=self.config.profit_factor / 100,
            stop_loss=self.config.stop_factor / 100
        )

    async def execute(self, market: str, volume: float, window: CandleWindow) -> None:
        entry_price = window[-1].close
        logger.debug(f"{self.name}: {market} buy signal at {entry_price}")
        await place_bracket_orders(
            self.sink, market, volume, entry_price,
            self.config.profit_factor / 100, self.config.stop_factor / 100
        )
