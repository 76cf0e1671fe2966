# core/backtesting_engine/position.py
"""
Round-trip trade record and equity tracking for a single-position backtest
"""
from dataclasses import dataclass, asdict
from typing import Literal, Optional

from core.data_engine.candles import Candle

TradeSide = Literal["long", "short"]


@dataclass
class Trade:
    """
    One round trip. Created open at entry, closed exactly once at exit,
    then only read.
    """
    entry_time: int
    entry_price: float
    side: TradeSide = "long"
    exit_time: Optional[int] = None
    exit_price: Optional[float] = None
    profit: Optional[float] = None
    profit_percent: Optional[float] = None  # net return as a fraction

    @classmethod
    def open(cls, candle: Candle) -> "Trade":
        """Long entry at the candle's close"""
        return cls(entry_time=candle.timestamp, entry_price=candle.close, side="long")

    @property
    def is_open(self) -> bool:
        return self.exit_time is None

    def close(self, candle: Candle, capital: float, commission_rate: float) -> "Trade":
        """
        Exit at the candle's close. Commission is charged on entry and on exit,
        each as a fraction of notional, so the net return is gross - 2 * rate.
        """
        if not self.is_open:
            raise ValueError(f"Trade opened at {self.entry_time} is already closed")

        exit_price = candle.close
        if self.side == "long":
            gross_return = (exit_price - self.entry_price) / self.entry_price
        else:
            gross_return = (self.entry_price - exit_price) / self.entry_price

        net_return = gross_return - commission_rate * 2

        self.exit_time = candle.timestamp
        self.exit_price = exit_price
        self.profit_percent = net_return
        self.profit = capital * net_return
        return self

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class EquityState:
    """Running capital, its peak, and the worst fractional decline from that peak"""
    equity: float
    high_water_mark: float
    drawdown: float = 0.0

    @classmethod
    def start(cls, initial_capital: float) -> "EquityState":
        return cls(equity=initial_capital, high_water_mark=initial_capital)

    def apply(self, profit: float) -> None:
        """Book a closed trade's profit; only called at trade exit"""
        self.equity += profit
        if self.equity > self.high_water_mark:
            self.high_water_mark = self.equity
        else:
            decline = (self.high_water_mark - self.equity) / self.high_water_mark
            if decline > self.drawdown:
                self.drawdown = decline
