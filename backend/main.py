# main.py
# Standard library imports
import uuid

# Third-party imports
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import JSONResponse

# Local imports
from api import backtesting, data, strategy
from core.exceptions import (
    BacktestCancelledError, BacktesterError, CorruptDataError, ExchangeError,
    InsufficientDataError, InvalidCandleError, NotFoundError, StrategyError
)
from core.logger import get_logger, run_id_ctx_var
from core.settings import settings

logger = get_logger(__name__)

# Most specific first
ERROR_STATUS_CODES = (
    (NotFoundError, 404),
    (InsufficientDataError, 422),
    (InvalidCandleError, 422),
    (CorruptDataError, 422),
    (BacktestCancelledError, 409),
    (ExchangeError, 502),
    (StrategyError, 500),
)

app = FastAPI(title="Candle Backtester")

# Mount routers first
app.include_router(data.router, tags=["Data APIs"])
app.include_router(strategy.router, tags=["Strategy APIs"])
app.include_router(backtesting.router, tags=["Backtesting APIs"])


@app.exception_handler(BacktesterError)
async def backtester_exception_handler(request: Request, exc: BacktesterError):
    status_code = next((code for cls, code in ERROR_STATUS_CODES if isinstance(exc, cls)), 500)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error_type": type(exc).__name__}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal Server Error"}
    )


@app.middleware("http")
async def add_run_id(request: Request, call_next):
    run_id = request.headers.get("X-Run-ID", str(uuid.uuid4()))
    token = run_id_ctx_var.set(run_id)
    request.state.run_id = run_id
    try:
        response = await call_next(request)
    finally:
        run_id_ctx_var.reset(token)
    response.headers["X-Run-ID"] = run_id
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_ORIGIN],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
