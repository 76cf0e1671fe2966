# api/backtesting.py
"""
Backtesting API endpoints - start, run, inspect and cancel backtests
"""
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Path, Query

from models.backtesting_models import (
    BacktestBatchRequest, BacktestCancelResponse, BacktestListResponse,
    BacktestRequest, BacktestRunResponse, BacktestStartResponse
)
from services.backtesting_service import BacktestingService

router = APIRouter()

# Global service instance
backtesting_service = BacktestingService()


def get_backtesting_service() -> BacktestingService:
    return backtesting_service


def _run_options(request) -> dict:
    return {
        "initial_capital": request.initial_capital,
        "commission_rate": request.commission_rate,
        "open_position_policy": request.open_position_policy,
    }


@router.post("/backtests", response_model=BacktestStartResponse, status_code=202)
async def start_backtest_endpoint(
    request: BacktestRequest,
    service: BacktestingService = Depends(get_backtesting_service)
):
    """Start a backtest in the background; poll GET /backtests/{run_id} for the result"""
    try:
        run_id = service.start(
            request.strategy_name, request.market, request.interval,
            parameters=request.parameters, **_run_options(request)
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return BacktestStartResponse(run_id=run_id, status="pending", message="Backtest execution started")


@router.post("/backtests/run", response_model=BacktestRunResponse)
async def run_backtest_endpoint(
    request: BacktestRequest,
    service: BacktestingService = Depends(get_backtesting_service)
):
    """
    Run a backtest and wait for the result

    Data and strategy errors are mapped by the application's exception handlers.
    """
    try:
        run = service.create_run(
            request.strategy_name, request.market, request.interval,
            parameters=request.parameters, **_run_options(request)
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    await service.execute(run)
    return BacktestRunResponse.from_run(run)


@router.post("/backtests/batch", response_model=BacktestListResponse)
async def run_batch_endpoint(
    request: BacktestBatchRequest,
    service: BacktestingService = Depends(get_backtesting_service)
):
    """Run several strategies concurrently over the same market data"""
    try:
        runs = await service.run_many(
            request.strategy_names, request.market, request.interval, **_run_options(request)
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return BacktestListResponse(
        backtests=[BacktestRunResponse.from_run(run) for run in runs],
        total_count=len(runs)
    )


@router.get("/backtests", response_model=BacktestListResponse)
async def list_backtests(
    status: Optional[str] = Query(None, pattern="^(pending|running|completed|failed|cancelled)$",
                                  description="Filter by status"),
    service: BacktestingService = Depends(get_backtesting_service)
):
    """List backtest runs, newest first (results omitted)"""
    runs = service.list_runs(status)
    return BacktestListResponse(
        backtests=[BacktestRunResponse.from_run(run, include_result=False) for run in runs],
        total_count=len(runs)
    )


@router.get("/backtests/{run_id}", response_model=BacktestRunResponse)
async def get_backtest_endpoint(
    run_id: str = Path(..., description="Backtest run ID"),
    service: BacktestingService = Depends(get_backtesting_service)
):
    """Get a backtest run with its result once completed"""
    run = service.get_run(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail=f"Backtest {run_id} not found")
    return BacktestRunResponse.from_run(run)


@router.post("/backtests/{run_id}/cancel", response_model=BacktestCancelResponse)
async def cancel_backtest_endpoint(
    run_id: str = Path(..., description="Backtest run ID"),
    service: BacktestingService = Depends(get_backtesting_service)
):
    """Cancel a pending or running backtest"""
    run = service.get_run(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail=f"Backtest {run_id} not found")

    if not service.cancel(run_id):
        raise HTTPException(status_code=400, detail=f"Backtest cannot be cancelled (status: {run.status})")

    return BacktestCancelResponse(run_id=run_id, cancelled=True, status=run.status)
