# services/backtesting_service.py
"""
Backtesting service layer - business logic for backtesting operations
Follows service layer pattern: builds strategies, tracks runs and orchestrates the engine
"""
import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.backtesting_engine import BacktestConfig, BacktestEngine, BacktestResult, OpenPositionPolicy
from core.data_engine import CandleStorage
from core.exceptions import BacktestCancelledError
from core.logger import get_logger
from core.settings import settings
from core.strategy_engine import PaperExecutionSink, Strategy, create_strategy

logger = get_logger(__name__)

PENDING = "pending"
RUNNING = "running"
COMPLETED = "completed"
FAILED = "failed"
CANCELLED = "cancelled"

ACTIVE_STATUSES = (PENDING, RUNNING)


@dataclass
class BacktestRun:
    """Book-keeping for one backtest run"""
    run_id: str
    strategy_name: str
    market: str
    interval: int
    config: BacktestConfig
    parameters: Dict[str, Any] = field(default_factory=dict)
    status: str = PENDING
    progress: int = 0
    message: str = ""
    result: Optional[BacktestResult] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event, repr=False)
    task: Optional[asyncio.Task] = field(default=None, repr=False)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


class BacktestingService:
    """
    Runs backtests and keeps an in-memory registry of them.

    Every run gets a fresh strategy instance with its own paper execution
    sink; strategies keep indicator state and must never be shared between
    runs.
    """

    def __init__(
        self,
        storage: Optional[CandleStorage] = None,
        lookback: Optional[int] = None,
        max_finished_runs: Optional[int] = None,
    ):
        self.storage = storage or CandleStorage(Path(settings.DATA_ROOT))
        self.engine = BacktestEngine(self.storage, lookback or settings.LOOKBACK_WINDOW)
        self.max_finished_runs = settings.MAX_FINISHED_RUNS if max_finished_runs is None else max_finished_runs
        self._runs: Dict[str, BacktestRun] = {}

    def create_run(
        self,
        strategy_name: str,
        market: str,
        interval: int,
        initial_capital: Optional[float] = None,
        commission_rate: Optional[float] = None,
        open_position_policy: OpenPositionPolicy = OpenPositionPolicy.DISCARD,
        parameters: Optional[Dict[str, Any]] = None,
    ) -> BacktestRun:
        """Validate the request and register a pending run"""
        config = BacktestConfig(
            initial_capital=settings.DEFAULT_INITIAL_CAPITAL if initial_capital is None else initial_capital,
            commission_rate=settings.DEFAULT_COMMISSION_RATE if commission_rate is None else commission_rate,
            open_position_policy=open_position_policy,
        )
        # Fail fast on unknown strategies or parameters
        create_strategy(strategy_name, PaperExecutionSink(), **(parameters or {}))

        run = BacktestRun(
            run_id=f"bt_{uuid.uuid4().hex[:12]}",
            strategy_name=strategy_name,
            market=market,
            interval=interval,
            config=config,
            parameters=dict(parameters or {}),
        )
        self._evict_finished_runs()
        self._runs[run.run_id] = run
        return run

    async def run(self, strategy_name: str, market: str, interval: int, **options) -> BacktestRun:
        """
        Run one backtest to completion.

        Engine errors are recorded on the run and re-raised to the caller.
        """
        run = self.create_run(strategy_name, market, interval, **options)
        await self.execute(run)
        return run

    def start(self, strategy_name: str, market: str, interval: int, **options) -> str:
        """Launch a backtest as a background task and return its run id"""
        run = self.create_run(strategy_name, market, interval, **options)
        run.task = asyncio.create_task(self.execute(run, raise_errors=False))
        logger.info(f"Backtest {run.run_id} scheduled: {strategy_name} - {market} {interval}min")
        return run.run_id

    async def run_many(self, strategy_names: List[str], market: str, interval: int, **options) -> List[BacktestRun]:
        """
        Run independent backtests concurrently over the same data.

        A failing run does not affect the others; inspect each run's status.
        """
        runs = [self.create_run(name, market, interval, **options) for name in strategy_names]
        await asyncio.gather(*(self.execute(run, raise_errors=False) for run in runs))
        return runs

    def get_run(self, run_id: str) -> Optional[BacktestRun]:
        return self._runs.get(run_id)

    def list_runs(self, status: Optional[str] = None) -> List[BacktestRun]:
        runs = sorted(self._runs.values(), key=lambda r: r.created_at, reverse=True)
        if status:
            runs = [r for r in runs if r.status == status]
        return runs

    def cancel(self, run_id: str) -> bool:
        """Request cancellation; returns False for unknown or finished runs"""
        run = self._runs.get(run_id)
        if run is None or not run.is_active:
            return False
        run.cancel_event.set()
        logger.info(f"Cancellation requested for backtest {run_id}")
        return True

    async def wait(self, run_id: str) -> Optional[BacktestRun]:
        """Wait for a background run to finish"""
        run = self._runs.get(run_id)
        if run is not None and run.task is not None:
            await run.task
        return run

    async def execute(self, run: BacktestRun, raise_errors: bool = True) -> None:
        """Execute a registered run, recording its outcome on the run"""
        if run.cancel_event.is_set():
            self._mark_finished(run, CANCELLED, message="Cancelled before start")
            return

        strategy: Strategy = create_strategy(run.strategy_name, PaperExecutionSink(), **run.parameters)
        run.status = RUNNING
        run.started_at = datetime.now(timezone.utc)

        async def progress_callback(progress: int, message: str):
            if progress >= 0:
                run.progress = progress
            run.message = message

        try:
            run.result = await self.engine.run_backtest(
                strategy,
                run.market,
                run.interval,
                config=run.config,
                progress_callback=progress_callback,
                cancel_event=run.cancel_event,
                run_id=run.run_id,
            )
        except BacktestCancelledError as e:
            self._mark_finished(run, CANCELLED, message=str(e))
            if raise_errors:
                raise
        except Exception as e:
            self._mark_finished(run, FAILED, message=f"Backtest failed: {e}", error=e)
            if raise_errors:
                raise
        else:
            self._mark_finished(run, COMPLETED, message="Backtest completed successfully")

    def _evict_finished_runs(self):
        """Drop the oldest finished runs beyond `max_finished_runs`; active runs are never evicted"""
        finished = [run_id for run_id, run in self._runs.items() if not run.is_active]
        excess = len(finished) - self.max_finished_runs
        for run_id in finished[:max(excess, 0)]:
            del self._runs[run_id]
        if excess > 0:
            logger.debug(f"Evicted {excess} finished backtest runs")

    def _mark_finished(self, run: BacktestRun, status: str, message: str, error: Optional[Exception] = None):
        run.status = status
        run.message = message
        run.completed_at = datetime.now(timezone.utc)
        if status == COMPLETED:
            run.progress = 100
        if error is not None:
            run.error = str(error)
            run.error_type = type(error).__name__
        logger.info(f"Backtest {run.run_id} {status}")
        self._evict_finished_runs()
