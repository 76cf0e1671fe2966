# services/data_service.py - Data engine service layer
"""
Service layer for candle data operations.
Wraps the candle store and the collector so the API and the CLI share one
way of listing, loading and collecting market data.
"""
# Standard library imports
from pathlib import Path
from typing import Dict, List, Optional

# Local imports
from core.data_engine import Candle, CandleCollector, CandleStorage, ExchangeClient, UpbitClient
from core.logger import get_logger
from core.settings import settings

logger = get_logger(__name__)


class DataService:
    """
    Service for stored candle data and historical collection.
    """

    def __init__(
        self,
        storage: Optional[CandleStorage] = None,
        client: Optional[ExchangeClient] = None,
    ):
        self.storage = storage or CandleStorage(Path(settings.DATA_ROOT))
        self._client = client
        self.collector = CandleCollector(
            self.storage,
            batch_size=settings.COLLECT_BATCH_SIZE,
            batch_delay=settings.COLLECT_BATCH_DELAY,
        )

    def list_datasets(self) -> List[Dict]:
        """All stored (market, interval) datasets with row counts and time range"""
        return self.storage.list_datasets()

    def get_candles(self, market: str, interval: int, limit: Optional[int] = None) -> List[Candle]:
        """
        Load stored candles, oldest first.

        Args:
            market: Market code (e.g. 'KRW-BTC')
            interval: Candle length in minutes
            limit: Return only the most recent `limit` candles

        Raises:
            NotFoundError, CorruptDataError, InvalidCandleError from the store
        """
        candles = self.storage.load_candles(market, interval)
        if limit is not None:
            candles = candles[-limit:] if limit > 0 else []
        return candles

    async def collect(self, market: str, interval: int, days: int = 30, force: bool = False) -> Dict:
        """
        Collect candles from the exchange into the store.

        Existing data is left untouched unless `force` is set. A forced
        collection overwrites the stored file only when it gathers candles.
        """
        if self.storage.exists(market, interval):
            if not force:
                logger.info(f"{market} {interval}min already stored, skipping collection")
                return self._collect_summary(market, interval, skipped=True)

        if self._client is not None:
            candles = await self.collector.collect(self._client, market, interval, days)
        else:
            async with UpbitClient(settings.EXCHANGE_BASE_URL, settings.EXCHANGE_TIMEOUT) as client:
                candles = await self.collector.collect(client, market, interval, days)

        logger.info(f"Collected {len(candles)} candles for {market} {interval}min")
        return self._collect_summary(market, interval, skipped=False, collected=len(candles))

    async def ensure_data(self, market: str, interval: int, days: int = 30) -> bool:
        """Collect when nothing is stored yet; returns True if data is available afterwards"""
        if not self.storage.exists(market, interval):
            logger.info(f"No stored data for {market} {interval}min, collecting")
            await self.collect(market, interval, days)
        return self.storage.exists(market, interval)

    def _collect_summary(self, market: str, interval: int, skipped: bool, collected: int = 0) -> Dict:
        file_path = self.storage.get_file_path(market, interval)
        return {
            "market": market,
            "interval": interval,
            "skipped": skipped,
            "collected": collected,
            **self.storage.get_file_info(file_path),
        }
