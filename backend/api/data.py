# api/data.py - Candle data API endpoints
"""
Infrastructure-level API for stored candle data and collection.
"""
# Standard library imports
from typing import Optional

# Third-party imports
from fastapi import APIRouter, Depends, HTTPException, Path, Query

# Local imports
from core.logger import get_logger
from models.data_models import (
    CandleListResponse, CandleResponse, CollectRequest, CollectResponse,
    DatasetListResponse, DatasetResponse
)
from services.data_service import DataService

router = APIRouter()
logger = get_logger(__name__)

# Global service instance
data_service = DataService()


def get_data_service() -> DataService:
    return data_service


@router.get("/data/candles", response_model=DatasetListResponse)
async def list_datasets(service: DataService = Depends(get_data_service)):
    """List stored (market, interval) datasets"""
    datasets = [DatasetResponse(**d) for d in service.list_datasets()]
    return DatasetListResponse(datasets=datasets, total=len(datasets))


@router.get("/data/candles/{market}/{interval}", response_model=CandleListResponse)
async def get_candles(
    market: str = Path(..., description="Market code, e.g. KRW-BTC"),
    interval: int = Path(..., gt=0, description="Candle length in minutes"),
    limit: Optional[int] = Query(None, ge=1, le=10000, description="Most recent N candles"),
    service: DataService = Depends(get_data_service)
):
    """
    Get stored candles for a market, oldest first

    Missing data is a 404; corrupt or invalid stored data is a 422.
    """
    candles = service.get_candles(market, interval, limit)
    return CandleListResponse(
        market=market,
        interval=interval,
        count=len(candles),
        candles=[CandleResponse(**c.to_dict()) for c in candles]
    )


@router.post("/data/collect", response_model=CollectResponse)
async def collect_candles(
    request: CollectRequest,
    service: DataService = Depends(get_data_service)
):
    """
    Collect historical candles from the exchange

    - **market**: Market code, e.g. 'KRW-BTC'
    - **interval**: Candle length in minutes (default: 60)
    - **days**: Days of history (1-365, default: 30)
    - **force**: Re-collect even if data is stored (default: false)
    """
    try:
        summary = await service.collect(request.market, request.interval, request.days, request.force)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return CollectResponse(**summary)
