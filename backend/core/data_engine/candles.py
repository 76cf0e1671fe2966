# core/data_engine/candles.py
"""
OHLCV candle record and sequence validation
"""
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from core.exceptions import InvalidCandleError

CANDLE_COLUMNS = ("timestamp", "open", "high", "low", "close", "volume")


@dataclass(frozen=True)
class Candle:
    """One price bar. timestamp is epoch milliseconds (UTC)."""
    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: Optional[float] = 0.0

    def __post_init__(self):
        if isinstance(self.timestamp, bool) or not isinstance(self.timestamp, int):
            raise InvalidCandleError(f"timestamp must be an integer epoch-ms value, got {self.timestamp!r}")

        for field_name in ("open", "high", "low", "close"):
            value = getattr(self, field_name)
            if not _is_finite_number(value) or value <= 0:
                raise InvalidCandleError(
                    f"candle {self.timestamp}: {field_name} must be finite and positive, got {value!r}"
                )
            object.__setattr__(self, field_name, float(value))

        if self.high < self.low:
            raise InvalidCandleError(f"candle {self.timestamp}: high {self.high} < low {self.low}")

        volume = 0.0 if self.volume is None else self.volume
        if not _is_finite_number(volume) or volume < 0:
            raise InvalidCandleError(
                f"candle {self.timestamp}: volume must be finite and non-negative, got {volume!r}"
            )
        object.__setattr__(self, "volume", float(volume))

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }


def _is_finite_number(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def validate_sequence(candles: Sequence[Candle]) -> None:
    """Raise InvalidCandleError unless timestamps are strictly ascending"""
    for previous, current in zip(candles, candles[1:]):
        if current.timestamp <= previous.timestamp:
            raise InvalidCandleError(
                f"candles out of order: {current.timestamp} follows {previous.timestamp}"
            )


def sort_and_dedupe(candles: Iterable[Candle]) -> List[Candle]:
    """Ascending by timestamp; on duplicate timestamps the last one wins"""
    by_timestamp = {}
    for candle in candles:
        by_timestamp[candle.timestamp] = candle
    return [by_timestamp[ts] for ts in sorted(by_timestamp)]
