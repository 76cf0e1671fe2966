# models/data_models.py - Data API request/response models
"""
Pydantic models for candle data API endpoints.
Defines request and response schemas for data operations.
"""
# Standard library imports
from typing import List, Optional

# Third-party imports
from pydantic import BaseModel, Field


class CollectRequest(BaseModel):
    """Request model for candle collection"""
    market: str = Field(..., min_length=1, max_length=20, description="Market code, e.g. KRW-BTC")
    interval: int = Field(60, gt=0, le=1440, description="Candle length in minutes")
    days: int = Field(30, ge=1, le=365, description="Days of history to collect")
    force: bool = Field(False, description="Delete stored data and collect again")


class CollectResponse(BaseModel):
    """Response model for candle collection"""
    market: str
    interval: int
    skipped: bool
    collected: int
    row_count: Optional[int] = None
    first_timestamp: Optional[int] = None
    last_timestamp: Optional[int] = None


class DatasetResponse(BaseModel):
    """One stored (market, interval) dataset"""
    market: str
    interval: int
    file_size: Optional[int] = None
    row_count: Optional[int] = None
    first_timestamp: Optional[int] = None
    last_timestamp: Optional[int] = None


class DatasetListResponse(BaseModel):
    datasets: List[DatasetResponse]
    total: int


class CandleResponse(BaseModel):
    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float


class CandleListResponse(BaseModel):
    market: str
    interval: int
    count: int
    candles: List[CandleResponse]
