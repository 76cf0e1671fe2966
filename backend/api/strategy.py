# api/strategy.py
"""
Strategy API endpoints - registered strategies and their default parameters
"""
from typing import Any, Dict, List
from fastapi import APIRouter, HTTPException, Path
from pydantic import BaseModel

from core.strategy_engine import get_strategy_parameters, list_strategies

router = APIRouter()


class StrategyInfoResponse(BaseModel):
    name: str
    parameters: Dict[str, Any]


class StrategyListResponse(BaseModel):
    strategies: List[StrategyInfoResponse]
    total_count: int


@router.get("/strategies", response_model=StrategyListResponse)
async def list_strategies_endpoint():
    """List registered strategies with their default parameters"""
    strategies = [
        StrategyInfoResponse(name=name, parameters=get_strategy_parameters(name))
        for name in list_strategies()
    ]
    return StrategyListResponse(strategies=strategies, total_count=len(strategies))


@router.get("/strategies/{name}", response_model=StrategyInfoResponse)
async def get_strategy_endpoint(name: str = Path(..., description="Strategy name")):
    """Get one registered strategy"""
    try:
        return StrategyInfoResponse(name=name, parameters=get_strategy_parameters(name))
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
