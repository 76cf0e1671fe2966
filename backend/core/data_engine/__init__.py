"""
Data Engine - candle persistence and historical collection

- CandleStorage: CSV files keyed by (market, interval)
- CandleCollector: paged historical download through an ExchangeClient
"""
from .candles import Candle, CANDLE_COLUMNS, validate_sequence, sort_and_dedupe
from .storage import CandleStorage
from .collector import CandleCollector, parse_raw_candle
from .exchange import ExchangeClient, UpbitClient, MAX_CANDLES_PER_REQUEST

__all__ = [
    "Candle",
    "CANDLE_COLUMNS",
    "validate_sequence",
    "sort_and_dedupe",
    "CandleStorage",
    "CandleCollector",
    "parse_raw_candle",
    "ExchangeClient",
    "UpbitClient",
    "MAX_CANDLES_PER_REQUEST"
]
