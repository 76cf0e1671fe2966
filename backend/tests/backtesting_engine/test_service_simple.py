# tests/backtesting_engine/test_service_simple.py
"""
Tests for the backtesting service layer
"""
import math
from dataclasses import dataclass

import pytest

from core.backtesting_engine import OpenPositionPolicy
from core.exceptions import NotFoundError
from core.strategy_engine import PaperExecutionSink, register_strategy
from core.strategy_engine import registry
from services.backtesting_service import (
    CANCELLED, COMPLETED, FAILED, BacktestingService
)

MARKET = "KRW-BTC"
INTERVAL = 15


@dataclass
class RecorderConfig:
    fail: bool = False


@dataclass
class FailingRecorderConfig:
    fail: bool = True


class Recorder:
    """Enters every other candle and remembers which instance did the work"""

    name = "Recorder"
    active_instances = []

    def __init__(self, sink, config=None):
        self.sink = sink
        self.config = config or RecorderConfig()

    async def should_enter(self, window):
        if self not in Recorder.active_instances:
            Recorder.active_instances.append(self)
        if self.config.fail:
            raise RuntimeError("recorder failure")
        return True

    async def should_exit(self, window, entry_price):
        return True

    async def execute(self, market, volume, window):
        return None


@pytest.fixture
def recorder_registered(monkeypatch):
    monkeypatch.setattr(registry, "STRATEGY_REGISTRY", dict(registry.STRATEGY_REGISTRY))
    monkeypatch.setattr(Recorder, "active_instances", [])
    register_strategy("Recorder", Recorder, RecorderConfig)
    register_strategy("FailingRecorder", Recorder, FailingRecorderConfig)


@pytest.fixture
def service(storage, make_candles):
    closes = [100 + 3 * math.sin(i / 4) + i * 0.05 for i in range(120)]
    storage.save_candles(MARKET, INTERVAL, make_candles(closes, step=15 * 60_000))
    return BacktestingService(storage, lookback=10)


class TestBacktestingService:
    """Test BacktestingService run tracking"""

    @pytest.mark.asyncio
    async def test_run_completes(self, service):
        run = await service.run("MomentumBreak", MARKET, INTERVAL, initial_capital=500_000, commission_rate=0.001)

        assert run.status == COMPLETED
        assert run.progress == 100
        assert run.result.strategy_name == "MomentumBreak"
        assert run.result.initial_capital == 500_000
        assert run.result.run_id == run.run_id
        assert service.get_run(run.run_id) is run

    @pytest.mark.asyncio
    async def test_run_failure_is_recorded_and_raised(self, service):
        with pytest.raises(NotFoundError):
            await service.run("MomentumBreak", "KRW-NONE", INTERVAL)

        run = service.list_runs()[0]
        assert run.status == FAILED
        assert run.error_type == "NotFoundError"
        assert run.result is None

    def test_unknown_strategy_rejected_before_registration(self, service):
        with pytest.raises(ValueError):
            service.create_run("Nope", MARKET, INTERVAL)

        assert service.list_runs() == []

    def test_invalid_capital_rejected(self, service):
        with pytest.raises(ValueError):
            service.create_run("MomentumBreak", MARKET, INTERVAL, initial_capital=0)

    @pytest.mark.asyncio
    async def test_start_runs_in_background(self, service):
        run_id = service.start("MeanReversion", MARKET, INTERVAL)

        assert service.get_run(run_id).status == "pending"

        run = await service.wait(run_id)
        assert run.status == COMPLETED
        assert run.result is not None

    @pytest.mark.asyncio
    async def test_cancel_before_start(self, service):
        run_id = service.start("MomentumBreak", MARKET, INTERVAL)

        assert service.cancel(run_id) is True
        run = await service.wait(run_id)

        assert run.status == CANCELLED
        assert run.result is None
        assert service.cancel(run_id) is False

    def test_cancel_unknown_run(self, service):
        assert service.cancel("bt_missing") is False

    @pytest.mark.asyncio
    async def test_run_many_uses_fresh_strategies(self, service, recorder_registered):
        runs = await service.run_many(["Recorder", "Recorder", "Recorder"], MARKET, INTERVAL)

        assert [r.status for r in runs] == [COMPLETED] * 3
        assert len({r.run_id for r in runs}) == 3
        assert len(Recorder.active_instances) == 3
        assert len({id(s.sink) for s in Recorder.active_instances}) == 3
        assert all(isinstance(s.sink, PaperExecutionSink) for s in Recorder.active_instances)

        # Same data, same decisions
        assert len({r.result.total_trades for r in runs}) == 1

    @pytest.mark.asyncio
    async def test_run_many_isolates_failures(self, service, recorder_registered):
        runs = await service.run_many(["FailingRecorder", "MomentumBreak"], MARKET, INTERVAL)

        assert runs[0].status == FAILED
        assert runs[0].error_type == "StrategyError"
        assert runs[1].status == COMPLETED

    @pytest.mark.asyncio
    async def test_force_close_policy(self, service, recorder_registered):
        run = await service.run("Recorder", MARKET, INTERVAL, open_position_policy=OpenPositionPolicy.FORCE_CLOSE)

        assert run.result.open_position_policy == "force_close"

    @pytest.mark.asyncio
    async def test_list_runs_filters_by_status(self, service):
        await service.run("MomentumBreak", MARKET, INTERVAL)
        with pytest.raises(NotFoundError):
            await service.run("MomentumBreak", "KRW-NONE", INTERVAL)

        assert len(service.list_runs()) == 2
        assert [r.status for r in service.list_runs(COMPLETED)] == [COMPLETED]
        assert [r.status for r in service.list_runs(FAILED)] == [FAILED]

    @pytest.mark.asyncio
    async def test_finished_runs_are_capped(self, storage, service):
        service = BacktestingService(storage, lookback=10, max_finished_runs=3)
        pending = service.create_run("MomentumBreak", MARKET, INTERVAL)

        runs = [await service.run("MomentumBreak", MARKET, INTERVAL) for _ in range(5)]

        assert len(service.list_runs(COMPLETED)) == 3
        assert len(service.list_runs()) == 4
        assert service.get_run(pending.run_id) is pending
        assert service.get_run(runs[0].run_id) is None
        assert service.get_run(runs[1].run_id) is None
        assert all(service.get_run(r.run_id) is r for r in runs[2:])
