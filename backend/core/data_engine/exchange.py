# core/data_engine/exchange.py
"""
Exchange client boundary used by historical candle collection.

Only the public candle endpoint lives here. Order placement, request signing
and private WebSocket streams belong to live trading and are not modelled.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

import httpx

from core.exceptions import ExchangeError
from core.logger import get_logger

logger = get_logger(__name__)

# Upbit caps minute-candle requests at 200 records
MAX_CANDLES_PER_REQUEST = 200


class ExchangeClient(Protocol):
    async def fetch_candles(
        self,
        market: str,
        interval_minutes: int,
        count: int,
        before: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Return at most ``count`` raw candle records ending before ``before`` (epoch ms)"""
        ...


class UpbitClient:
    """Async client for Upbit's public minute-candle REST endpoint"""

    def __init__(self, base_url: str = "https://api.upbit.com/v1", timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def fetch_candles(
        self,
        market: str,
        interval_minutes: int = 1,
        count: int = MAX_CANDLES_PER_REQUEST,
        before: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """GET /candles/minutes/{unit}; records come back newest first"""
        params: Dict[str, Any] = {"market": market, "count": min(count, MAX_CANDLES_PER_REQUEST)}
        if before is not None:
            params["to"] = datetime.fromtimestamp(before / 1000, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

        try:
            response = await self._client.get(f"/candles/minutes/{interval_minutes}", params=params)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Candle request failed for {market} ({interval_minutes}min): {e}")
            raise ExchangeError(f"Failed to fetch candles for {market}: {e}") from e

        data = response.json()
        if not isinstance(data, list):
            raise ExchangeError(f"Unexpected candle response for {market}: {data!r}")
        return data

    async def aclose(self):
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
