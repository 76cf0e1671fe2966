# tests/data_engine/test_collector.py
"""
Tests for historical candle collection and the Upbit client
"""
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import httpx
import pytest

from core.data_engine import CandleCollector, UpbitClient, parse_raw_candle
from core.data_engine import collector as collector_module
from core.exceptions import ExchangeError, InvalidCandleError


def to_record(candle):
    """Upbit-shaped raw record for a candle"""
    return {
        "market": "KRW-BTC",
        "candle_date_time_utc": datetime.fromtimestamp(candle.timestamp / 1000, tz=timezone.utc)
        .strftime("%Y-%m-%dT%H:%M:%S"),
        "opening_price": candle.open,
        "high_price": candle.high,
        "low_price": candle.low,
        "trade_price": candle.close,
        "candle_acc_trade_volume": candle.volume,
        "unit": 1,
    }


class FakeExchange:
    """Serves a fixed ascending history newest-first, like the real endpoint"""

    def __init__(self, history, fail_on_call=None, bad_record_on_call=None):
        self.history = history
        self.fail_on_call = fail_on_call
        self.bad_record_on_call = bad_record_on_call
        self.calls = []

    async def fetch_candles(self, market, interval_minutes, count, before=None):
        self.calls.append({"market": market, "interval": interval_minutes, "count": count, "before": before})
        if self.fail_on_call == len(self.calls):
            raise ExchangeError("exchange unavailable")
        if self.bad_record_on_call == len(self.calls):
            return [{"candle_date_time_utc": "not a date"}]

        eligible = [c for c in self.history if before is None or c.timestamp < before]
        batch = eligible[-count:] if count else []
        return [to_record(c) for c in reversed(batch)]


@pytest.fixture
def no_sleep(monkeypatch):
    sleep = AsyncMock()
    monkeypatch.setattr(collector_module.asyncio, "sleep", sleep)
    return sleep


def now_after(candles):
    return candles[-1].timestamp + 60_000


class TestParseRawCandle:
    def test_parse_record(self, make_candles):
        candle = make_candles([100.5])[0]

        parsed = parse_raw_candle(to_record(candle))

        assert parsed == candle

    def test_missing_volume_is_zero(self, make_candles):
        record = to_record(make_candles([100])[0])
        record["candle_acc_trade_volume"] = None

        assert parse_raw_candle(record).volume == 0.0

    def test_malformed_record(self):
        with pytest.raises(InvalidCandleError):
            parse_raw_candle({"candle_date_time_utc": "2024-01-01T00:00:00"})


class TestCandleCollector:
    """Test CandleCollector pagination"""

    @pytest.mark.asyncio
    async def test_collects_full_range_in_batches(self, storage, make_candles, no_sleep):
        history = make_candles([100 + i % 7 for i in range(2000)])
        client = FakeExchange(history)
        collector = CandleCollector(storage, batch_size=200, batch_delay=0.3)

        candles = await collector.collect(client, "KRW-BTC", 1, days=1, now_ms=now_after(history))

        # 1 day of 1-minute candles = 1440 = 7 full batches + 40
        assert [call["count"] for call in client.calls] == [200] * 7 + [40]
        assert client.calls[0]["before"] == now_after(history)
        assert client.calls[1]["before"] == history[-200].timestamp
        assert candles == history[-1440:]
        assert storage.load_candles("KRW-BTC", 1) == candles

        # Fixed delay between batches, none after the last
        assert no_sleep.await_count == 7
        no_sleep.assert_awaited_with(0.3)

    @pytest.mark.asyncio
    async def test_short_batch_ends_collection(self, storage, make_candles, no_sleep):
        history = make_candles([100.0] * 300)
        client = FakeExchange(history)

        candles = await CandleCollector(storage).collect(client, "KRW-BTC", 1, days=1, now_ms=now_after(history))

        assert len(client.calls) == 2
        assert candles == history
        assert no_sleep.await_count == 1

    @pytest.mark.asyncio
    async def test_empty_batch_ends_collection(self, storage, make_candles, no_sleep):
        history = make_candles([100.0] * 400)
        client = FakeExchange(history)

        candles = await CandleCollector(storage).collect(client, "KRW-BTC", 1, days=1, now_ms=now_after(history))

        assert len(client.calls) == 3
        assert len(candles) == 400

    @pytest.mark.asyncio
    async def test_failed_batch_stops_and_keeps_progress(self, storage, make_candles, no_sleep):
        history = make_candles([100.0] * 1000)
        client = FakeExchange(history, fail_on_call=2)

        candles = await CandleCollector(storage).collect(client, "KRW-BTC", 1, days=1, now_ms=now_after(history))

        assert len(client.calls) == 2
        assert candles == history[-200:]
        assert storage.load_candles("KRW-BTC", 1) == candles

    @pytest.mark.asyncio
    async def test_malformed_batch_stops_collection(self, storage, make_candles, no_sleep):
        history = make_candles([100.0] * 1000)
        client = FakeExchange(history, bad_record_on_call=3)

        candles = await CandleCollector(storage).collect(client, "KRW-BTC", 1, days=1, now_ms=now_after(history))

        assert len(client.calls) == 3
        assert len(candles) == 400

    @pytest.mark.asyncio
    async def test_nothing_collected_leaves_storage_untouched(self, storage, make_candles, no_sleep):
        existing = make_candles([1.0, 2.0])
        storage.save_candles("KRW-BTC", 1, existing)
        client = FakeExchange([], fail_on_call=1)

        candles = await CandleCollector(storage).collect(client, "KRW-BTC", 1, days=1)

        assert candles == []
        assert storage.load_candles("KRW-BTC", 1) == existing

    @pytest.mark.asyncio
    async def test_rejects_bad_arguments(self, storage):
        collector = CandleCollector(storage)
        with pytest.raises(ValueError):
            await collector.collect(FakeExchange([]), "KRW-BTC", 0, days=1)
        with pytest.raises(ValueError):
            await collector.collect(FakeExchange([]), "KRW-BTC", 1, days=0)

    def test_batch_size_capped(self, storage):
        assert CandleCollector(storage, batch_size=500).batch_size == 200


class TestUpbitClient:
    """Test UpbitClient against a mocked transport"""

    @pytest.mark.asyncio
    async def test_fetch_candles_request(self):
        seen = {}

        def handler(request: httpx.Request):
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=[{"candle_date_time_utc": "2024-01-01T00:00:00"}])

        async with UpbitClient("https://api.upbit.com/v1", transport=httpx.MockTransport(handler)) as client:
            records = await client.fetch_candles("KRW-BTC", 15, 500, before=1_704_067_200_000)

        assert records == [{"candle_date_time_utc": "2024-01-01T00:00:00"}]
        assert seen["path"] == "/v1/candles/minutes/15"
        assert seen["params"] == {"market": "KRW-BTC", "count": "200", "to": "2024-01-01T00:00:00Z"}

    @pytest.mark.asyncio
    async def test_http_error_becomes_exchange_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(429, json={"error": "too many"}))

        async with UpbitClient(transport=transport) as client:
            with pytest.raises(ExchangeError):
                await client.fetch_candles("KRW-BTC", 1, 10)

    @pytest.mark.asyncio
    async def test_unexpected_payload(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"error": "bad market"}))

        async with UpbitClient(transport=transport) as client:
            with pytest.raises(ExchangeError):
                await client.fetch_candles("KRW-NOPE", 1, 10)
