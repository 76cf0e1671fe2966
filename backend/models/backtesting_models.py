# models/backtesting_models.py
"""
Pydantic models for Backtesting API requests and responses
"""
from datetime import datetime
from typing import Dict, List, Optional, Any
from pydantic import BaseModel, Field, field_validator

from core.backtesting_engine import OpenPositionPolicy


# Request Models
class BacktestRequest(BaseModel):
    strategy_name: str = Field(..., min_length=1, description="Registered strategy name")
    market: str = Field(..., min_length=1, max_length=20, description="Market code, e.g. KRW-BTC")
    interval: int = Field(..., gt=0, le=1440, description="Candle length in minutes")
    initial_capital: Optional[float] = Field(None, gt=0, description="Capital per trade (default from settings)")
    commission_rate: Optional[float] = Field(None, ge=0, lt=0.5, description="Commission per side as a fraction")
    open_position_policy: OpenPositionPolicy = Field(
        OpenPositionPolicy.DISCARD, description="What to do with a position still open at end of data"
    )
    parameters: Dict[str, Any] = Field(default_factory=dict, description="Strategy parameter overrides")

    @field_validator('market')
    @classmethod
    def validate_market(cls, v):
        v = v.strip().upper()
        if "-" not in v:
            raise ValueError("Market must look like QUOTE-BASE, e.g. KRW-BTC")
        return v


class BacktestBatchRequest(BaseModel):
    strategy_names: List[str] = Field(..., min_length=1, max_length=20, description="Strategies to compare")
    market: str = Field(..., min_length=1, max_length=20, description="Market code, e.g. KRW-BTC")
    interval: int = Field(..., gt=0, le=1440, description="Candle length in minutes")
    initial_capital: Optional[float] = Field(None, gt=0)
    commission_rate: Optional[float] = Field(None, ge=0, lt=0.5)
    open_position_policy: OpenPositionPolicy = OpenPositionPolicy.DISCARD

    @field_validator('market')
    @classmethod
    def validate_market(cls, v):
        return BacktestRequest.validate_market(v)


# Response Models
class TradeResponse(BaseModel):
    entry_time: int
    entry_price: float
    side: str
    exit_time: Optional[int]
    exit_price: Optional[float]
    profit: Optional[float]
    profit_percent: Optional[float]


class BacktestResultResponse(BaseModel):
    market: str
    strategy_name: str
    interval: int
    initial_capital: float
    commission_rate: float
    candle_count: int
    open_position_policy: str

    # Summary metrics
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float
    win_rate_percent: float
    profit_factor: float
    net_profit: float
    max_drawdown: float
    max_drawdown_percent: float

    # Detailed results
    performance_metrics: Dict[str, Any]
    trades: List[TradeResponse]
    execution_duration: float

    @classmethod
    def from_result(cls, result) -> "BacktestResultResponse":
        data = result.to_dict()
        data["win_rate_percent"] = result.win_rate * 100
        data["max_drawdown_percent"] = result.max_drawdown * 100
        return cls(**data)


class BacktestRunResponse(BaseModel):
    run_id: str
    strategy_name: str
    market: str
    interval: int
    status: str
    progress_percent: int
    message: str
    error: Optional[str] = None
    error_type: Optional[str] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    result: Optional[BacktestResultResponse] = None

    @classmethod
    def from_run(cls, run, include_result: bool = True) -> "BacktestRunResponse":
        return cls(
            run_id=run.run_id,
            strategy_name=run.strategy_name,
            market=run.market,
            interval=run.interval,
            status=run.status,
            progress_percent=run.progress,
            message=run.message,
            error=run.error,
            error_type=run.error_type,
            created_at=run.created_at,
            started_at=run.started_at,
            completed_at=run.completed_at,
            result=BacktestResultResponse.from_result(run.result) if include_result and run.result else None,
        )


class BacktestListResponse(BaseModel):
    backtests: List[BacktestRunResponse]
    total_count: int


class BacktestStartResponse(BaseModel):
    run_id: str
    status: str
    message: str


class BacktestCancelResponse(BaseModel):
    run_id: str
    cancelled: bool
    status: str
