# tests/data_engine/test_data_service.py
"""
Tests for the data service layer
"""
from datetime import datetime, timezone

import pytest

from core.exceptions import NotFoundError
from services.data_service import DataService


class StubExchange:
    """Returns `available` flat candles ending just before `before`"""

    def __init__(self, available=50):
        self.available = available
        self.calls = 0

    async def fetch_candles(self, market, interval_minutes, count, before=None):
        self.calls += 1
        step_ms = interval_minutes * 60_000
        end = before - step_ms
        n = min(count, self.available)
        self.available -= n
        return [
            {
                "candle_date_time_utc": datetime.fromtimestamp((end - i * step_ms) // 1000, tz=timezone.utc)
                .strftime("%Y-%m-%dT%H:%M:%S"),
                "opening_price": 100.0,
                "high_price": 101.0,
                "low_price": 99.0,
                "trade_price": 100.0,
                "candle_acc_trade_volume": 2.0,
            }
            for i in range(n)
        ]



class DownExchange:
    """Every request fails"""

    async def fetch_candles(self, market, interval_minutes, count, before=None):
        raise ConnectionError("exchange unavailable")

@pytest.fixture
def exchange():
    return StubExchange()


@pytest.fixture
def data_service(storage, exchange):
    service = DataService(storage=storage, client=exchange)
    service.collector.batch_delay = 0
    return service


class TestDataService:
    """Test DataService operations"""

    @pytest.mark.asyncio
    async def test_collect_stores_candles(self, data_service, exchange):
        summary = await data_service.collect("KRW-BTC", 60, days=1)

        assert summary["skipped"] is False
        assert summary["collected"] == 24
        assert summary["row_count"] == 24
        assert len(data_service.get_candles("KRW-BTC", 60)) == 24

    @pytest.mark.asyncio
    async def test_collect_skips_existing_data(self, data_service, exchange):
        await data_service.collect("KRW-BTC", 60, days=1)
        calls = exchange.calls

        summary = await data_service.collect("KRW-BTC", 60, days=1)

        assert summary["skipped"] is True
        assert exchange.calls == calls

    @pytest.mark.asyncio
    async def test_forced_collect_replaces_data(self, data_service, exchange, make_candles):
        data_service.storage.save_candles("KRW-BTC", 60, make_candles([5.0] * 3))

        summary = await data_service.collect("KRW-BTC", 60, days=1, force=True)

        assert summary["skipped"] is False
        assert all(c.close == 100.0 for c in data_service.get_candles("KRW-BTC", 60))

    @pytest.mark.asyncio
    async def test_forced_collect_keeps_data_when_exchange_is_down(self, storage, make_candles):
        storage.save_candles("KRW-BTC", 1, make_candles([5.0] * 150))
        service = DataService(storage=storage, client=DownExchange())

        summary = await service.collect("KRW-BTC", 1, days=1, force=True)

        assert summary["collected"] == 0
        assert storage.exists("KRW-BTC", 1)
        assert len(storage.load_candles("KRW-BTC", 1)) == 150

    @pytest.mark.asyncio
    async def test_ensure_data(self, data_service, exchange):
        assert await data_service.ensure_data("KRW-ETH", 30, days=1) is True
        calls = exchange.calls

        assert await data_service.ensure_data("KRW-ETH", 30, days=1) is True
        assert exchange.calls == calls

    @pytest.mark.asyncio
    async def test_ensure_data_when_exchange_has_nothing(self, storage):
        service = DataService(storage=storage, client=StubExchange(available=0))

        assert await service.ensure_data("KRW-ETH", 30, days=1) is False

    def test_get_candles_limit(self, data_service, make_candles):
        data_service.storage.save_candles("KRW-BTC", 1, make_candles([1.0, 2.0, 3.0, 4.0]))

        assert [c.close for c in data_service.get_candles("KRW-BTC", 1, limit=2)] == [3.0, 4.0]
        assert len(data_service.get_candles("KRW-BTC", 1)) == 4

    def test_get_candles_missing(self, data_service):
        with pytest.raises(NotFoundError):
            data_service.get_candles("KRW-NONE", 1)

    def test_list_datasets(self, data_service, make_candles):
        data_service.storage.save_candles("KRW-BTC", 1, make_candles([1.0, 2.0]))

        datasets = data_service.list_datasets()

        assert len(datasets) == 1
        assert datasets[0]["market"] == "KRW-BTC"
        assert datasets[0]["row_count"] == 2
