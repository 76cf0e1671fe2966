# core/backtesting_engine/engine.py
"""
Main backtesting engine - replays stored candles through a strategy
"""
import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from core.data_engine.candles import Candle, validate_sequence
from core.data_engine.storage import CandleStorage
from core.exceptions import BacktestCancelledError, InsufficientDataError, StrategyError
from core.logger import get_logger, run_id_ctx_var
from core.settings import settings
from core.strategy_engine.contracts import Strategy
from .metrics import PerformanceMetrics
from .position import EquityState, Trade

logger = get_logger(__name__)

ProgressCallback = Callable[[int, str], Awaitable[None]]

# Give other runs (and cancel requests) a turn on the event loop this often
YIELD_EVERY = 100


class OpenPositionPolicy(str, Enum):
    DISCARD = "discard"          # drop the in-flight trade from statistics
    FORCE_CLOSE = "force_close"  # close it at the last candle's close


@dataclass
class BacktestConfig:
    """Configuration for backtest execution"""
    initial_capital: float = 1_000_000.0
    commission_rate: float = 0.0005  # charged on entry and again on exit
    open_position_policy: OpenPositionPolicy = OpenPositionPolicy.DISCARD

    def __post_init__(self):
        if self.initial_capital <= 0:
            raise ValueError("initial_capital must be positive")
        if not 0 <= self.commission_rate < 0.5:
            raise ValueError("commission_rate must be a fraction in [0, 0.5)")
        self.open_position_policy = OpenPositionPolicy(self.open_position_policy)


@dataclass(frozen=True)
class BacktestResult:
    """Results of a completed backtest"""
    market: str
    strategy_name: str

    # Trade statistics
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float
    profit_factor: float
    net_profit: float
    max_drawdown: float  # fraction, not percent
    trades: Tuple[Trade, ...]

    # Run metadata
    interval: int = 0
    initial_capital: float = 0.0
    commission_rate: float = 0.0
    candle_count: int = 0
    open_position_policy: str = OpenPositionPolicy.DISCARD.value
    performance_metrics: Dict[str, Any] = field(default_factory=dict)
    run_id: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    execution_duration: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "market": self.market,
            "strategy_name": self.strategy_name,
            "interval": self.interval,
            "initial_capital": self.initial_capital,
            "commission_rate": self.commission_rate,
            "candle_count": self.candle_count,
            "open_position_policy": self.open_position_policy,
            "total_trades": self.total_trades,
            "winning_trades": self.winning_trades,
            "losing_trades": self.losing_trades,
            "win_rate": self.win_rate,
            "profit_factor": self.profit_factor,
            "net_profit": self.net_profit,
            "max_drawdown": self.max_drawdown,
            "performance_metrics": dict(self.performance_metrics),
            "trades": [trade.to_dict() for trade in self.trades],
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "execution_duration": self.execution_duration,
        }


@dataclass
class _WalkOutcome:
    trades: List[Trade]
    equity: EquityState
    discarded_trade: Optional[Trade] = None


class BacktestEngine:
    """
    Walks a candle sequence one step at a time, holding at most one long
    position.

    The walk is strictly sequential: each strategy call is awaited before the
    next candle is looked at, because strategies update their indicators
    incrementally. Independent runs may share an engine and its storage, but
    each run needs its own strategy instance.
    """

    def __init__(self, storage: CandleStorage, lookback: int = 100):
        if lookback <= 0:
            raise ValueError("lookback must be positive")
        self.storage = storage
        self.lookback = lookback
        self.metrics = PerformanceMetrics()

    async def run_backtest(
        self,
        strategy: Strategy,
        market: str,
        interval: int,
        initial_capital: float = 1_000_000.0,
        commission_rate: float = 0.0005,
        config: Optional[BacktestConfig] = None,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
        run_id: Optional[str] = None,
    ) -> BacktestResult:
        """
        Execute one backtest. Any failure (missing or bad data, a strategy
        error, cancellation) propagates and no result is produced; trades
        gathered before the failure are dropped.
        """
        if config is None:
            config = BacktestConfig(initial_capital=initial_capital, commission_rate=commission_rate)

        run_id = run_id or f"bt_{uuid.uuid4().hex[:12]}"
        token = run_id_ctx_var.set(run_id)
        start_time = datetime.now(timezone.utc)

        try:
            if progress_callback:
                await progress_callback(0, f"Loading {market} {interval}min candles...")

            # Blocking pandas read, kept off the event loop
            candles = await asyncio.to_thread(self.storage.load_candles, market, interval)
            validate_sequence(candles)
            required = self.lookback + 1
            if len(candles) < required:
                raise InsufficientDataError(required, len(candles), market)

            logger.info(
                f"Backtest started: {strategy.name} - {market} ({len(candles)} candles)",
                extra={"market": market, "interval": interval, "strategy": strategy.name}
            )

            outcome = await self._walk(strategy, market, candles, config, progress_callback, cancel_event)

            summary = self.metrics.calculate_summary(outcome.trades, outcome.equity.drawdown)
            performance = self.metrics.calculate_trade_statistics(outcome.trades, config.initial_capital)
            performance.update({
                "final_equity": outcome.equity.equity,
                "high_water_mark": outcome.equity.high_water_mark,
                "discarded_open_trade": outcome.discarded_trade.to_dict() if outcome.discarded_trade else None,
            })

            end_time = datetime.now(timezone.utc)
            result = BacktestResult(
                market=market,
                strategy_name=strategy.name,
                trades=tuple(outcome.trades),
                interval=interval,
                initial_capital=config.initial_capital,
                commission_rate=config.commission_rate,
                candle_count=len(candles),
                open_position_policy=config.open_position_policy.value,
                performance_metrics=performance,
                run_id=run_id,
                start_time=start_time,
                end_time=end_time,
                execution_duration=(end_time - start_time).total_seconds(),
                **summary
            )

            logger.info(
                f"Backtest finished: {strategy.name} - {market} trades={result.total_trades} "
                f"win_rate={result.win_rate:.2%} net_profit={result.net_profit:.2f} "
                f"max_drawdown={result.max_drawdown:.2%}",
                extra={"market": market, "interval": interval, "strategy": strategy.name}
            )

            if progress_callback:
                await progress_callback(100, "Backtest completed successfully")

            return result

        except Exception as e:
            logger.error(f"Backtest failed: {strategy.name} - {market}: {e}")
            if progress_callback:
                try:
                    await progress_callback(-1, f"Backtest failed: {str(e)}")
                except Exception:
                    logger.exception("Progress callback failed while reporting a failed backtest")
            raise
        finally:
            run_id_ctx_var.reset(token)

    async def _walk(
        self,
        strategy: Strategy,
        market: str,
        candles: Sequence[Candle],
        config: BacktestConfig,
        progress_callback: Optional[ProgressCallback],
        cancel_event: Optional[asyncio.Event],
    ) -> _WalkOutcome:
        lookback = self.lookback
        total_steps = len(candles) - lookback
        report_every = max(1, total_steps // 10)

        trades: List[Trade] = []
        equity = EquityState.start(config.initial_capital)
        open_trade: Optional[Trade] = None

        for step, i in enumerate(range(lookback, len(candles))):
            if cancel_event is not None and cancel_event.is_set():
                raise BacktestCancelledError(f"Backtest cancelled at candle {i}")

            current = candles[i]
            # Current candle is the last element; nothing after index i is visible
            window = tuple(candles[i - lookback:i + 1])

            if open_trade is None:
                if await self._call_strategy(strategy, "should_enter", i, current, window):
                    await self._call_strategy(strategy, "execute", i, current, market, current.volume, window)
                    open_trade = Trade.open(current)
                    logger.debug(f"[{_iso(current.timestamp)}] entry: {current.close}")
            else:
                if await self._call_strategy(strategy, "should_exit", i, current, window, open_trade.entry_price):
                    self._close_trade(open_trade, current, config, equity, trades)
                    open_trade = None

            if step % YIELD_EVERY == 0:
                await asyncio.sleep(0)

            if progress_callback and step % report_every == 0:
                progress = int(100 * step / total_steps)
                await progress_callback(progress, f"Processing candle {step + 1}/{total_steps}...")

        discarded = None
        if open_trade is not None:
            if config.open_position_policy == OpenPositionPolicy.FORCE_CLOSE:
                logger.debug("Force-closing open position at end of data")
                self._close_trade(open_trade, candles[-1], config, equity, trades)
            else:
                logger.info(f"Discarding open position entered at {_iso(open_trade.entry_time)}")
                discarded = open_trade

        return _WalkOutcome(trades=trades, equity=equity, discarded_trade=discarded)

    def _close_trade(
        self,
        trade: Trade,
        candle: Candle,
        config: BacktestConfig,
        equity: EquityState,
        trades: List[Trade],
    ) -> None:
        trade.close(candle, config.initial_capital, config.commission_rate)
        equity.apply(trade.profit)
        trades.append(trade)
        logger.debug(f"[{_iso(candle.timestamp)}] exit: {candle.close} ({trade.profit_percent * 100:.2f}%)")

    async def _call_strategy(self, strategy: Strategy, operation: str, step: int, candle: Candle, *args):
        """Await one strategy call; any exception becomes a StrategyError"""
        method = getattr(strategy, operation)
        try:
            result = await method(*args)
        except Exception as e:
            raise StrategyError(strategy.name, operation, step, candle.timestamp, e) from e
        return bool(result) if operation != "execute" else None


def _iso(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).isoformat()


async def run_backtest(
    strategy: Strategy,
    market: str,
    interval: int,
    initial_capital: float = 1_000_000.0,
    commission_rate: float = 0.0005,
    storage: Optional[CandleStorage] = None,
    lookback: Optional[int] = None,
) -> BacktestResult:
    """Run one backtest against the configured candle store"""
    storage = storage or CandleStorage(Path(settings.DATA_ROOT))
    engine = BacktestEngine(storage, lookback or settings.LOOKBACK_WINDOW)
    return await engine.run_backtest(strategy, market, interval, initial_capital, commission_rate)
