# core/data_engine/collector.py
"""
Historical candle collection - pages backwards from "now" through an exchange
client and stitches the batches into one ascending sequence.
"""
import asyncio
import math
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from core.exceptions import InvalidCandleError
from core.logger import get_logger
from .candles import Candle, sort_and_dedupe
from .exchange import MAX_CANDLES_PER_REQUEST, ExchangeClient
from .storage import CandleStorage

logger = get_logger(__name__)

MINUTES_PER_DAY = 24 * 60


def parse_raw_candle(record: Dict[str, Any]) -> Candle:
    """Convert an Upbit minute-candle record into a Candle"""
    try:
        opened_at = datetime.fromisoformat(record["candle_date_time_utc"])
        if opened_at.tzinfo is None:
            opened_at = opened_at.replace(tzinfo=timezone.utc)

        return Candle(
            timestamp=int(opened_at.timestamp() * 1000),
            open=float(record["opening_price"]),
            high=float(record["high_price"]),
            low=float(record["low_price"]),
            close=float(record["trade_price"]),
            volume=float(record.get("candle_acc_trade_volume") or 0),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidCandleError(f"Malformed candle record {record!r}: {e}") from e


class CandleCollector:
    """
    Collects `days` worth of candles in batches of at most `batch_size`,
    sleeping `batch_delay` seconds between requests to stay under the
    exchange rate limit.
    """

    def __init__(
        self,
        storage: CandleStorage,
        batch_size: int = MAX_CANDLES_PER_REQUEST,
        batch_delay: float = 0.3,
    ):
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.storage = storage
        self.batch_size = min(batch_size, MAX_CANDLES_PER_REQUEST)
        self.batch_delay = batch_delay

    async def collect(
        self,
        client: ExchangeClient,
        market: str,
        interval: int,
        days: int = 30,
        now_ms: Optional[int] = None,
    ) -> List[Candle]:
        """
        Fetch, stitch and persist historical candles.

        Pagination stops early on an empty or short batch (end of available
        history) and on the first failed batch; whatever was gathered until
        then is still sorted, saved and returned.
        """
        if interval <= 0 or days <= 0:
            raise ValueError("interval and days must be positive")

        total_candles = (days * MINUTES_PER_DAY) // interval
        batch_count = math.ceil(total_candles / self.batch_size)
        before = now_ms if now_ms is not None else int(time.time() * 1000)

        logger.info(f"Collecting {market} {interval}min candles ({days} days, {total_candles} candles)")

        collected: List[Candle] = []
        remaining = total_candles
        batch_number = 0

        while remaining > 0:
            batch_number += 1
            count = min(self.batch_size, remaining)
            logger.info(f"Batch {batch_number}/{batch_count}: requesting {count} candles before {before}")

            try:
                records = await client.fetch_candles(market, interval, count, before)
                batch = [parse_raw_candle(record) for record in records]
            except Exception:
                logger.exception(f"Batch {batch_number} failed, stopping collection for {market}")
                break

            if not batch:
                logger.info("No more history available")
                break

            collected.extend(batch)
            remaining -= len(batch)
            before = min(candle.timestamp for candle in batch)

            if len(batch) < count:
                logger.info(f"Short batch ({len(batch)}/{count}), reached end of history")
                break

            if remaining > 0:
                await asyncio.sleep(self.batch_delay)

        candles = sort_and_dedupe(collected)
        logger.info(f"Collection finished: {len(candles)} candles for {market}")

        if candles:
            self.storage.save_candles(market, interval, candles)
        else:
            logger.warning(f"Nothing collected for {market} ({interval}min), storage left untouched")

        return candles
