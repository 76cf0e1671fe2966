# core/strategy_engine/indicators.py
"""
Streaming technical indicators - each update() consumes one new value
"""
from typing import List, Optional


class EMA:
    """Exponential moving average seeded with the simple average of the first `period` values"""

    def __init__(self, period: int):
        if period <= 0:
            raise ValueError("EMA period must be positive")
        self.period = period
        self.multiplier = 2 / (period + 1)
        self._seed: List[float] = []
        self.result: Optional[float] = None

    def update(self, value: float) -> Optional[float]:
        if self.result is None:
            self._seed.append(value)
            if len(self._seed) == self.period:
                self.result = sum(self._seed) / self.period
                self._seed = []
            return self.result

        self.result = (value - self.result) * self.multiplier + self.result
        return self.result

    @property
    def is_stable(self) -> bool:
        return self.result is not None


class RSI:
    """Relative Strength Index with Wilder smoothing"""

    def __init__(self, period: int = 14):
        if period <= 0:
            raise ValueError("RSI period must be positive")
        self.period = period
        self._previous: Optional[float] = None
        self._gains: List[float] = []
        self._losses: List[float] = []
        self._avg_gain: Optional[float] = None
        self._avg_loss: Optional[float] = None
        self.result: Optional[float] = None

    def update(self, value: float) -> Optional[float]:
        if self._previous is None:
            self._previous = value
            return None

        change = value - self._previous
        self._previous = value
        gain = max(change, 0.0)
        loss = max(-change, 0.0)

        if self._avg_gain is None:
            self._gains.append(gain)
            self._losses.append(loss)
            if len(self._gains) < self.period:
                return None
            self._avg_gain = sum(self._gains) / self.period
            self._avg_loss = sum(self._losses) / self.period
        else:
            self._avg_gain = (self._avg_gain * (self.period - 1) + gain) / self.period
            self._avg_loss = (self._avg_loss * (self.period - 1) + loss) / self.period

        if self._avg_loss == 0:
            # Neutral when flat, maxed out when there were only gains
            self.result = 100.0 if self._avg_gain > 0 else 50.0
        else:
            rs = self._avg_gain / self._avg_loss
            self.result = 100.0 - (100.0 / (1.0 + rs))
        return self.result

    @property
    def is_stable(self) -> bool:
        return self.result is not None
